"""
Saved payment and payout methods.

A repository interface with an in-memory implementation and a DynamoDB
one. It is handed to the dashboard service explicitly; the escrow and
prioritization core never touch it.
"""
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

import boto3
from botocore.exceptions import ClientError

from taskpay.config import config
from taskpay.errors import ValidationError
from taskpay.logging import logger


@dataclass(frozen=True)
class SavedPaymentMethods:
    """A user's saved cards/UPI ids (paying) and bank/UPI payout targets (receiving)."""
    payment_methods: List[Dict[str, Any]] = field(default_factory=list)
    payout_methods: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def has_payout_method(self) -> bool:
        return bool(self.payout_methods)

    @property
    def default_payment_method(self):
        return next((m for m in self.payment_methods if m.get('isDefault')), None)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SavedPaymentMethods':
        data = data or {}
        payment = data.get('paymentMethods') or []
        payout = data.get('payoutMethods') or []
        if not isinstance(payment, list) or not isinstance(payout, list):
            raise ValidationError("paymentMethods and payoutMethods must be lists")
        return cls(payment_methods=list(payment), payout_methods=list(payout))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'paymentMethods': list(self.payment_methods),
            'payoutMethods': list(self.payout_methods),
        }


class PaymentMethodStore:
    """Repository interface for saved payment methods."""

    def load(self, user_id: str) -> SavedPaymentMethods:
        raise NotImplementedError

    def save(self, user_id: str, methods: SavedPaymentMethods) -> None:
        raise NotImplementedError

    def clear(self, user_id: str) -> None:
        raise NotImplementedError


class InMemoryPaymentMethodStore(PaymentMethodStore):
    """Process-local store, used by tests and local runs."""

    def __init__(self):
        self._items: Dict[str, SavedPaymentMethods] = {}

    def load(self, user_id: str) -> SavedPaymentMethods:
        return self._items.get(user_id, SavedPaymentMethods())

    def save(self, user_id: str, methods: SavedPaymentMethods) -> None:
        self._items[user_id] = methods

    def clear(self, user_id: str) -> None:
        self._items.pop(user_id, None)


# Initialize DynamoDB resource lazily
_dynamodb = None


def get_dynamodb():
    """Get or create the DynamoDB resource."""
    global _dynamodb
    if _dynamodb is None:
        _dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION)
    return _dynamodb


class DynamoPaymentMethodStore(PaymentMethodStore):
    """One item per user in PAYMENT_METHODS_TABLE, keyed by userId."""

    def __init__(self, table_name: str = None, table=None):
        self.table_name = table_name or config.PAYMENT_METHODS_TABLE
        self._table = table

    @property
    def table(self):
        if self._table is None:
            self._table = get_dynamodb().Table(self.table_name)
        return self._table

    def load(self, user_id: str) -> SavedPaymentMethods:
        try:
            response = self.table.get_item(Key={'userId': user_id})
        except ClientError as e:
            logger.error(f"Error loading payment methods for {user_id}: {e}")
            raise
        item = response.get('Item')
        if not item:
            return SavedPaymentMethods()
        return SavedPaymentMethods.from_dict(item)

    def save(self, user_id: str, methods: SavedPaymentMethods) -> None:
        item = {'userId': user_id, 'updatedAt': str(int(time.time())), **methods.to_dict()}
        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            logger.error(f"Error saving payment methods for {user_id}: {e}")
            raise
        logger.info(
            f"Saved {len(methods.payment_methods)} payment and "
            f"{len(methods.payout_methods)} payout methods for {user_id}"
        )

    def clear(self, user_id: str) -> None:
        try:
            self.table.delete_item(Key={'userId': user_id})
        except ClientError as e:
            logger.error(f"Error clearing payment methods for {user_id}: {e}")
            raise
