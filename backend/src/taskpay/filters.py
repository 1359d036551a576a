"""
Client-side filtering of transaction history for display.

Every predicate is optional and they combine with AND. The result keeps
the input order; nothing is re-sorted.
"""
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from taskpay.config import config
from taskpay.errors import ValidationError
from taskpay.logging import logger
from taskpay.transactions import Transaction
from taskpay.utils import to_decimal

# Sentinel accepted by the UI for "no status/type filter"
ALL = 'all'


@dataclass(frozen=True)
class DateRange:
    """
    Calendar-day bounds in the viewer's local time, both inclusive.

    Either side may be open. `start` covers the whole of its day from
    midnight; `end` covers the whole of its day up to the last instant.
    """
    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self):
        for bound in (self.start, self.end):
            if bound is not None and not isinstance(bound, date):
                raise ValidationError(f"Date range bounds must be dates, got {bound!r}")
        # datetime is a date subclass; keep only the calendar day
        if isinstance(self.start, datetime):
            object.__setattr__(self, 'start', self.start.date())
        if isinstance(self.end, datetime):
            object.__setattr__(self, 'end', self.end.date())
        if self.start and self.end and self.start > self.end:
            raise ValidationError(f"Date range starts after it ends: {self.start} > {self.end}")

    @classmethod
    def parse(cls, start: Optional[str], end: Optional[str]) -> Optional['DateRange']:
        """
        Build a range from 'YYYY-MM-DD' strings; blank sides are open.

        Raises:
            ValidationError: a side is not a calendar date, or start > end
        """
        if not start and not end:
            return None
        try:
            start_day = date.fromisoformat(start) if start else None
            end_day = date.fromisoformat(end) if end else None
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Malformed date range {start!r}..{end!r}: {e}") from e
        return cls(start_day, end_day)

    def contains(self, moment: datetime, tz: tzinfo) -> bool:
        local_day = moment.astimezone(tz).date()
        if self.start and local_day < self.start:
            return False
        if self.end and local_day > self.end:
            return False
        return True


def parse_amount_bound(value: Any, strict: bool = False) -> Optional[Decimal]:
    """
    Read one side of an amount range.

    Blank means no bound. A value that is not a finite number is also
    treated as no bound, so a half-typed field never hides the whole list;
    with strict=True it is rejected instead.

    Raises:
        ValidationError: strict mode and the value is not a number
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    bound = to_decimal(value)
    if bound is None:
        if strict:
            raise ValidationError(f"Amount bound {value!r} is not a number")
        logger.info(f"Ignoring unparseable amount bound {value!r}")
    return bound


def resolve_timezone(tz: Union[tzinfo, str, None]) -> tzinfo:
    """Viewer zone from an object, an IANA name, or config.VIEWER_TIMEZONE."""
    if isinstance(tz, tzinfo):
        return tz
    name = tz or config.VIEWER_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone {name!r}") from e


def filter_transactions(
    transactions: Iterable[Transaction],
    status: Optional[str] = None,
    date_range: Optional[DateRange] = None,
    min_amount: Any = None,
    max_amount: Any = None,
    transaction_type: Optional[str] = None,
    tz: Union[tzinfo, str, None] = None,
    strict_amounts: bool = False
) -> List[Transaction]:
    """
    Filter a transaction list for display.

    Args:
        transactions: Entries in display order
        status: Keep only this status ('all' or None = any)
        date_range: Inclusive local calendar days
        min_amount: Lower amount bound, number or text
        max_amount: Upper amount bound, number or text
        transaction_type: Keep only this type ('all' or None = any)
        tz: Viewer timezone for the date range (defaults to config.VIEWER_TIMEZONE)
        strict_amounts: Reject unparseable amount bounds instead of ignoring them

    Returns:
        Matching entries in their original relative order
    """
    low = parse_amount_bound(min_amount, strict_amounts)
    high = parse_amount_bound(max_amount, strict_amounts)
    zone = resolve_timezone(tz) if date_range else None
    status = None if status == ALL else status
    transaction_type = None if transaction_type == ALL else transaction_type

    def matches(txn: Transaction) -> bool:
        if status and txn.status != status:
            return False
        if transaction_type and txn.type != transaction_type:
            return False
        if date_range and not date_range.contains(txn.created_at, zone):
            return False
        if low is not None and txn.amount < low:
            return False
        if high is not None and txn.amount > high:
            return False
        return True

    return [txn for txn in transactions if matches(txn)]
