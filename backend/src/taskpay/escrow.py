"""
Escrow ledger model.

One Escrow per task-payment relationship. The remote payment service owns
the ledger; this module only reads its records, checks them against the
lifecycle rules and describes legal status moves:

    pending → held → released
                   ↘ refunded

Released and refunded are absorbing.
"""
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from taskpay.config import config
from taskpay.errors import DataIntegrityError, InvalidTransitionError, ValidationError
from taskpay.logging import logger
from taskpay.models import EscrowStatus
from taskpay.utils import format_timestamp, parse_timestamp, to_decimal


ESCROW_TRANSITIONS = {
    EscrowStatus.PENDING: (EscrowStatus.HELD,),
    EscrowStatus.HELD: (EscrowStatus.RELEASED, EscrowStatus.REFUNDED),
    EscrowStatus.RELEASED: (),
    EscrowStatus.REFUNDED: (),
}

# Progression rank; a newer snapshot may never have a lower rank
STATUS_RANK = {
    EscrowStatus.PENDING: 0,
    EscrowStatus.HELD: 1,
    EscrowStatus.RELEASED: 2,
    EscrowStatus.REFUNDED: 2,
}

# Which timestamp is stamped on entering each status
STATUS_TIMESTAMP = {
    EscrowStatus.HELD: 'held_at',
    EscrowStatus.RELEASED: 'released_at',
    EscrowStatus.REFUNDED: 'refunded_at',
}

ESCROW_STATUS_INFO = {
    EscrowStatus.PENDING: {
        'label': 'Pending Payment',
        'description': 'Awaiting payment to hold funds in escrow',
        'color': 'yellow',
        'icon': 'clock',
    },
    EscrowStatus.HELD: {
        'label': 'Funds Held',
        'description': 'Payment secured in escrow',
        'color': 'blue',
        'icon': 'lock',
    },
    EscrowStatus.RELEASED: {
        'label': 'Released',
        'description': 'Funds released to tasker',
        'color': 'green',
        'icon': 'check',
    },
    EscrowStatus.REFUNDED: {
        'label': 'Refunded',
        'description': 'Funds returned to poster',
        'color': 'gray',
        'icon': 'refund',
    },
}

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class Escrow:
    """Funds held for one task, as last reported by the payment service."""
    id: str
    task_id: str
    poster_uid: str
    performer_uid: str
    amount_in_rupees: Decimal
    status: str
    held_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    auto_release_enabled: bool = False
    auto_release_date: Optional[datetime] = None
    refund_reason: Optional[str] = None
    application_id: Optional[str] = None
    currency: str = 'INR'
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def amount_in_paise(self) -> int:
        return int((self.amount_in_rupees * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Escrow':
        """
        Build an Escrow from the payment service's JSON shape.

        Raises:
            DataIntegrityError: unknown status, bad amount, unreadable
                timestamps or terminal-field violations
        """
        if not isinstance(data, dict):
            raise DataIntegrityError(f"Escrow record must be an object, got {type(data).__name__}")

        escrow_id = data.get('escrowId') or data.get('_id') or data.get('id')
        if not escrow_id:
            raise DataIntegrityError("Escrow record has no id")

        amount = to_decimal(data.get('amountInRupees'))
        if amount is None and data.get('amount') is not None:
            paise = to_decimal(data.get('amount'))
            amount = paise / 100 if paise is not None else None
        if amount is None:
            raise DataIntegrityError(f"Escrow {escrow_id} has no readable amount")

        try:
            stamps = {
                'held_at': parse_timestamp(data.get('heldAt')),
                'released_at': parse_timestamp(data.get('releasedAt')),
                'refunded_at': parse_timestamp(data.get('refundedAt')),
                'auto_release_date': parse_timestamp(data.get('autoReleaseDate')),
                'created_at': parse_timestamp(data.get('createdAt')),
                'updated_at': parse_timestamp(data.get('updatedAt')),
            }
        except (TypeError, ValueError) as e:
            raise DataIntegrityError(f"Escrow {escrow_id} has an unreadable timestamp: {e}") from e

        escrow = cls(
            id=str(escrow_id),
            task_id=data.get('taskId', ''),
            poster_uid=data.get('posterUid', ''),
            performer_uid=data.get('performerUid', ''),
            amount_in_rupees=amount,
            status=data.get('status'),
            auto_release_enabled=bool(data.get('autoReleaseEnabled', False)),
            refund_reason=data.get('refundReason') or None,
            application_id=data.get('applicationId') or None,
            currency=data.get('currency') or config.CURRENCY,
            **stamps
        )
        check_escrow_integrity(escrow)
        return escrow

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape; amounts travel as strings so nothing is lost."""
        return {
            'escrowId': self.id,
            'taskId': self.task_id,
            'posterUid': self.poster_uid,
            'performerUid': self.performer_uid,
            'applicationId': self.application_id,
            'amountInRupees': str(self.amount_in_rupees),
            'amount': self.amount_in_paise,
            'currency': self.currency,
            'status': self.status,
            'heldAt': format_timestamp(self.held_at),
            'releasedAt': format_timestamp(self.released_at),
            'refundedAt': format_timestamp(self.refunded_at),
            'autoReleaseEnabled': self.auto_release_enabled,
            'autoReleaseDate': format_timestamp(self.auto_release_date),
            'refundReason': self.refund_reason,
            'createdAt': format_timestamp(self.created_at),
            'updatedAt': format_timestamp(self.updated_at),
        }


def check_escrow_integrity(escrow: Escrow, require_refund_reason: bool = None) -> None:
    """
    Verify an escrow record against the lifecycle rules.

    - status is one of the four known values
    - amount is positive
    - each stamp belongs to a status the escrow has reached
    - the stamp of the current status is present
    - stamps never go backwards (held_at <= released_at / refunded_at)
    - released and refunded are mutually exclusive

    Raises:
        DataIntegrityError: on the first violation found
    """
    if require_refund_reason is None:
        require_refund_reason = config.REQUIRE_REFUND_REASON

    if escrow.status not in EscrowStatus.ALL:
        raise DataIntegrityError(f"Escrow {escrow.id} has unknown status {escrow.status!r}")

    if escrow.amount_in_rupees is None or escrow.amount_in_rupees <= 0:
        raise DataIntegrityError(f"Escrow {escrow.id} amount must be positive")

    rank = STATUS_RANK[escrow.status]
    if escrow.released_at and escrow.refunded_at:
        raise DataIntegrityError(f"Escrow {escrow.id} is stamped both released and refunded")

    if rank < 1 and escrow.held_at:
        raise DataIntegrityError(f"Escrow {escrow.id} is pending but has heldAt")
    if escrow.status != EscrowStatus.RELEASED and escrow.released_at:
        raise DataIntegrityError(f"Escrow {escrow.id} is {escrow.status} but has releasedAt")
    if escrow.status != EscrowStatus.REFUNDED and escrow.refunded_at:
        raise DataIntegrityError(f"Escrow {escrow.id} is {escrow.status} but has refundedAt")

    if escrow.status == EscrowStatus.RELEASED and not escrow.released_at:
        raise DataIntegrityError(f"Escrow {escrow.id} is released without releasedAt")
    if escrow.status == EscrowStatus.REFUNDED:
        if not escrow.refunded_at:
            raise DataIntegrityError(f"Escrow {escrow.id} is refunded without refundedAt")
        if require_refund_reason and not escrow.refund_reason:
            raise DataIntegrityError(f"Escrow {escrow.id} is refunded without a refund reason")

    closed_at = escrow.released_at or escrow.refunded_at
    if escrow.held_at and closed_at and closed_at < escrow.held_at:
        raise DataIntegrityError(f"Escrow {escrow.id} was closed before it was held")


def can_transition(current: str, requested: str) -> bool:
    """True if the lifecycle allows moving directly from current to requested."""
    return requested in ESCROW_TRANSITIONS.get(current, ())


def can_release_escrow(status: str) -> bool:
    """Only held funds can be released."""
    return status == EscrowStatus.HELD


def can_refund_escrow(status: str) -> bool:
    """Only held funds can be refunded."""
    return status == EscrowStatus.HELD


def transition_escrow(
    escrow: Escrow,
    new_status: str,
    at: datetime,
    refund_reason: Optional[str] = None
) -> Escrow:
    """
    Return a copy of the escrow moved to new_status and stamped at `at`.

    Nothing here talks to the ledger; this is the rulebook used to check
    sequences of snapshots and to model the lifecycle in tests.

    Raises:
        ValidationError: unknown status or a timestamp earlier than the last stamp
        InvalidTransitionError: the move is not allowed from the current status
    """
    if new_status not in EscrowStatus.ALL:
        raise ValidationError(f"Unknown escrow status {new_status!r}")
    if not can_transition(escrow.status, new_status):
        raise InvalidTransitionError('Escrow', escrow.status, new_status)
    if at is None or at.tzinfo is None:
        raise ValidationError("Transition time must be a timezone-aware datetime")

    last_stamp = max(
        (stamp for stamp in (escrow.held_at, escrow.released_at, escrow.refunded_at) if stamp),
        default=None
    )
    if last_stamp and at < last_stamp:
        raise ValidationError(f"Transition time {at.isoformat()} is before {last_stamp.isoformat()}")

    changes = {'status': new_status, STATUS_TIMESTAMP[new_status]: at, 'updated_at': at}
    if new_status == EscrowStatus.REFUNDED:
        changes['refund_reason'] = refund_reason
    return replace(escrow, **changes)


def check_progression(previous: Escrow, current: Escrow) -> None:
    """
    Verify that a newer snapshot of the same escrow did not go backwards.

    Snapshots may skip states (pending then released), but never regress,
    never swap one terminal status for another and never rewrite a stamp
    that was already set.

    Raises:
        ValidationError: the two records are different escrows
        DataIntegrityError: the newer snapshot regresses
    """
    if previous.id != current.id:
        raise ValidationError(f"Cannot compare escrow {previous.id} with {current.id}")

    if previous.status in EscrowStatus.TERMINAL and current.status != previous.status:
        raise DataIntegrityError(
            f"Escrow {current.id} left terminal status {previous.status} for {current.status}"
        )
    if STATUS_RANK[current.status] < STATUS_RANK[previous.status]:
        raise DataIntegrityError(
            f"Escrow {current.id} regressed from {previous.status} to {current.status}"
        )

    for field_name in STATUS_TIMESTAMP.values():
        before = getattr(previous, field_name)
        after = getattr(current, field_name)
        if before is not None and after != before:
            raise DataIntegrityError(f"Escrow {current.id} rewrote {field_name}")


def days_until_auto_release(auto_release_date: datetime, now: datetime = None) -> int:
    """Whole days until auto-release, rounded up and never negative."""
    now = now or datetime.now(timezone.utc)
    remaining = (auto_release_date - now) / ONE_DAY
    return max(0, math.ceil(remaining))


def escrow_status_info(status: str) -> Dict[str, str]:
    """Badge label, description, color and icon for an escrow status."""
    info = ESCROW_STATUS_INFO.get(status)
    if info is None:
        logger.warning(f"No display info for escrow status {status!r}")
        raise DataIntegrityError(f"Unknown escrow status {status!r}")
    return {'status': status, **info}
