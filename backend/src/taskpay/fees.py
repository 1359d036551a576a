"""
Platform fee calculation.

The platform keeps a fixed share of every gross task amount; the rest is
the performer's net. The rate comes from configuration (PLATFORM_FEE_RATE)
or the caller, never from this module.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict

from taskpay.config import config
from taskpay.errors import DataIntegrityError, ValidationError
from taskpay.utils import to_decimal

# Smallest currency unit (paise)
MINOR_UNIT = Decimal('0.01')


@dataclass(frozen=True)
class FeeBreakdown:
    """Gross amount split into platform fee and performer net."""
    gross_amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    fee_rate: Decimal
    currency: str = 'INR'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FeeBreakdown':
        """
        Read a breakdown computed by the payment service.

        The remote result must satisfy the same contract as a local one.

        Raises:
            DataIntegrityError: missing figures, a negative fee, or
                net != gross - fee
        """
        gross = to_decimal(data.get('grossAmount', data.get('amount')))
        fee = to_decimal(data.get('platformFee'))
        net = to_decimal(data.get('netAmount'))
        if gross is None or fee is None or net is None:
            raise DataIntegrityError(f"Fee breakdown is missing figures: {data}")
        if fee < 0:
            raise DataIntegrityError(f"Fee breakdown has a negative platform fee: {fee}")
        if net != gross - fee:
            raise DataIntegrityError(f"Fee breakdown does not add up: {gross} - {fee} != {net}")

        rate = to_decimal(data.get('feeRate'))
        if rate is None:
            rate = (fee / gross) if gross else Decimal('0')
        return cls(
            gross_amount=gross,
            platform_fee=fee,
            net_amount=net,
            fee_rate=rate,
            currency=data.get('currency') or config.CURRENCY,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'grossAmount': self.gross_amount,
            'platformFee': self.platform_fee,
            'netAmount': self.net_amount,
            'feeRate': self.fee_rate,
            'currency': self.currency,
        }


def calculate_fees(gross_amount: Any, fee_rate: Any = None) -> FeeBreakdown:
    """
    Split a gross amount into platform fee and net amount.

    Pure: the same amount and rate always give the same breakdown. The fee
    is rounded half-up to the paisa and the net is whatever remains, so
    net + fee == gross exactly.

    Args:
        gross_amount: Positive, finite amount in rupees
        fee_rate: Fraction kept by the platform; defaults to config.PLATFORM_FEE_RATE

    Returns:
        FeeBreakdown

    Raises:
        ValidationError: non-numeric, non-finite, non-positive or oversized
            amount, or a rate outside [0, 1)
    """
    gross = to_decimal(gross_amount)
    if gross is None:
        raise ValidationError(f"Amount must be a finite number, got {gross_amount!r}")
    if gross <= 0:
        raise ValidationError(f"Amount must be positive, got {gross}")

    rate = config.PLATFORM_FEE_RATE if fee_rate is None else to_decimal(fee_rate)
    if rate is None or rate < 0 or rate >= 1:
        raise ValidationError(f"Fee rate must be in [0, 1), got {fee_rate!r}")

    try:
        platform_fee = (gross * rate).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # Paise no longer fit in the decimal context precision
        raise ValidationError(f"Amount {gross} is too large to split into paise") from None
    net_amount = gross - platform_fee
    if net_amount + platform_fee != gross:
        raise ValidationError(f"Amount {gross} is too large to split into paise")
    return FeeBreakdown(
        gross_amount=gross,
        platform_fee=platform_fee,
        net_amount=net_amount,
        fee_rate=rate,
        currency=config.CURRENCY,
    )
