"""
Transaction record model.

Transactions are immutable ledger entries appended by the payment service
at each escrow event (funding, release, refund) and for payouts. A newer
copy of an entry may only move its status forward:

    pending → processing → completed | failed | cancelled
    pending → completed | failed | cancelled
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional

from taskpay.config import config
from taskpay.errors import DataIntegrityError, InvalidTransitionError, ValidationError
from taskpay.escrow import Escrow
from taskpay.logging import logger
from taskpay.models import PaymentMethodType, TransactionStatus, TransactionType
from taskpay.utils import format_timestamp, parse_timestamp, to_decimal


TRANSACTION_TRANSITIONS = {
    TransactionStatus.PENDING: (
        TransactionStatus.PROCESSING,
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    ),
    TransactionStatus.PROCESSING: (
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
    ),
    TransactionStatus.COMPLETED: (),
    TransactionStatus.FAILED: (),
    TransactionStatus.CANCELLED: (),
}

TRANSACTION_TYPE_LABELS = {
    TransactionType.ESCROW: 'Escrow Payment',
    TransactionType.RELEASE: 'Payment Released',
    TransactionType.REFUND: 'Refund',
    TransactionType.PAYOUT: 'Payout',
    TransactionType.DIRECT_PAYMENT: 'Direct Payment',
}

TRANSACTION_STATUS_LABELS = {
    TransactionStatus.PENDING: 'Pending',
    TransactionStatus.PROCESSING: 'Processing',
    TransactionStatus.COMPLETED: 'Completed',
    TransactionStatus.FAILED: 'Failed',
    TransactionStatus.CANCELLED: 'Cancelled',
}


@dataclass(frozen=True)
class Transaction:
    """One money movement as recorded by the payment service."""
    id: str
    type: str
    status: str
    amount: Decimal
    poster_uid: str
    task_id: str
    created_at: datetime
    performer_uid: Optional[str] = None
    payment_method: Optional[str] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    escrow_id: Optional[str] = None
    currency: str = 'INR'
    task_title: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TransactionStatus.TERMINAL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """
        Build a Transaction from the payment service's JSON shape.

        `amountInRupees` wins over `amount` when both are present, matching
        the escrow record.

        Raises:
            DataIntegrityError: unknown type/status/method, bad amount or
                timestamps, or an error message that does not match the status
        """
        if not isinstance(data, dict):
            raise DataIntegrityError(f"Transaction record must be an object, got {type(data).__name__}")

        txn_id = data.get('transactionId') or data.get('_id') or data.get('id')
        if not txn_id:
            raise DataIntegrityError("Transaction record has no id")

        amount = to_decimal(data.get('amountInRupees'))
        if amount is None:
            amount = to_decimal(data.get('amount'))
        if amount is None:
            raise DataIntegrityError(f"Transaction {txn_id} has no readable amount")

        try:
            created_at = parse_timestamp(data.get('createdAt') or data.get('date'))
            completed_at = parse_timestamp(data.get('completedAt'))
        except (TypeError, ValueError) as e:
            raise DataIntegrityError(f"Transaction {txn_id} has an unreadable timestamp: {e}") from e
        if created_at is None:
            raise DataIntegrityError(f"Transaction {txn_id} has no createdAt")

        metadata = data.get('metadata') or {}
        txn = cls(
            id=str(txn_id),
            type=data.get('type'),
            status=data.get('status'),
            amount=amount,
            poster_uid=data.get('posterUid', ''),
            performer_uid=data.get('performerUid') or None,
            task_id=data.get('taskId') or metadata.get('taskId', ''),
            payment_method=data.get('paymentMethod') or None,
            created_at=created_at,
            completed_at=completed_at,
            error_message=data.get('errorMessage') or None,
            escrow_id=data.get('escrowId') or None,
            currency=data.get('currency') or config.CURRENCY,
            task_title=data.get('taskTitle') or metadata.get('taskTitle'),
        )
        check_transaction_integrity(txn)
        return txn

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transactionId': self.id,
            'type': self.type,
            'status': self.status,
            'amountInRupees': str(self.amount),
            'currency': self.currency,
            'posterUid': self.poster_uid,
            'performerUid': self.performer_uid,
            'taskId': self.task_id,
            'taskTitle': self.task_title,
            'escrowId': self.escrow_id,
            'paymentMethod': self.payment_method,
            'createdAt': format_timestamp(self.created_at),
            'completedAt': format_timestamp(self.completed_at),
            'errorMessage': self.error_message,
        }


def check_transaction_integrity(txn: Transaction) -> None:
    """
    Verify a ledger entry against the enumerated sets.

    Raises:
        DataIntegrityError: on the first violation found
    """
    if txn.type not in TransactionType.ALL:
        raise DataIntegrityError(f"Transaction {txn.id} has unknown type {txn.type!r}")
    if txn.status not in TransactionStatus.ALL:
        raise DataIntegrityError(f"Transaction {txn.id} has unknown status {txn.status!r}")
    if txn.payment_method is not None and txn.payment_method not in PaymentMethodType.ALL:
        raise DataIntegrityError(f"Transaction {txn.id} has unknown payment method {txn.payment_method!r}")
    if txn.amount < 0:
        raise DataIntegrityError(f"Transaction {txn.id} has a negative amount")

    # errorMessage is present iff the entry failed
    if txn.status == TransactionStatus.FAILED and not txn.error_message:
        raise DataIntegrityError(f"Transaction {txn.id} failed without an error message")
    if txn.status != TransactionStatus.FAILED and txn.error_message:
        raise DataIntegrityError(f"Transaction {txn.id} is {txn.status} but carries an error message")

    if txn.completed_at and txn.completed_at < txn.created_at:
        raise DataIntegrityError(f"Transaction {txn.id} completed before it was created")


def can_transition_transaction(current: str, requested: str) -> bool:
    return requested in TRANSACTION_TRANSITIONS.get(current, ())


def check_transaction_progression(previous: Transaction, current: Transaction) -> None:
    """
    Verify that a newer copy of a ledger entry only moved forward.

    Raises:
        ValidationError: the two records are different entries
        InvalidTransitionError: the status went backwards or left a terminal state
    """
    if previous.id != current.id:
        raise ValidationError(f"Cannot compare transaction {previous.id} with {current.id}")
    if previous.status == current.status:
        return
    if not can_transition_transaction(previous.status, current.status):
        raise InvalidTransitionError('Transaction', previous.status, current.status)


class TransactionLedger:
    """
    Append-only, in-order collection of ledger entries.

    Entries are frozen dataclasses so nothing appended can be edited; a
    second entry with an id already in the ledger is rejected.
    """

    def __init__(self, transactions: Iterable[Transaction] = ()):
        self._entries: List[Transaction] = []
        self._ids = set()
        for txn in transactions:
            self.append(txn)

    def append(self, txn: Transaction) -> None:
        if txn.id in self._ids:
            raise ValidationError(f"Transaction {txn.id} is already in the ledger")
        check_transaction_integrity(txn)
        self._entries.append(txn)
        self._ids.add(txn.id)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, transaction_id: str) -> Optional[Transaction]:
        for txn in self._entries:
            if txn.id == transaction_id:
                return txn
        return None

    def for_task(self, task_id: str) -> List[Transaction]:
        return [txn for txn in self._entries if txn.task_id == task_id]

    def for_escrow(self, escrow: Escrow) -> List[Transaction]:
        """Entries linked to an escrow by id, or by task when the id is missing."""
        return [
            txn for txn in self._entries
            if txn.escrow_id == escrow.id or (txn.escrow_id is None and txn.task_id == escrow.task_id)
        ]

    def check_escrow_amounts(self, escrow: Escrow) -> None:
        """
        Escrow, release and refund entries must carry their escrow's amount.

        Raises:
            DataIntegrityError: on the first entry with a different amount
        """
        for txn in self.for_escrow(escrow):
            if txn.type not in TransactionType.ESCROW_BOUND:
                continue
            if txn.amount != escrow.amount_in_rupees:
                logger.warning(
                    f"Transaction {txn.id} amount {txn.amount} does not match escrow "
                    f"{escrow.id} amount {escrow.amount_in_rupees}"
                )
                raise DataIntegrityError(
                    f"Transaction {txn.id} ({txn.type}) amount {txn.amount} "
                    f"differs from escrow {escrow.id} amount {escrow.amount_in_rupees}"
                )


@dataclass(frozen=True)
class TransactionPage:
    """One page of a user's transaction history."""
    transactions: List[Transaction]
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionPage':
        records = data.get('transactions') or []
        pagination = data.get('pagination') or {}
        transactions = [Transaction.from_dict(record) for record in records]
        return cls(
            transactions=transactions,
            page=int(pagination.get('page', 1)),
            limit=int(pagination.get('limit', len(transactions))),
            total=int(pagination.get('total', len(transactions))),
            pages=int(pagination.get('pages', 1)),
        )


def transaction_type_label(txn_type: str) -> str:
    return TRANSACTION_TYPE_LABELS.get(txn_type, txn_type)


def transaction_status_label(status: str) -> str:
    return TRANSACTION_STATUS_LABELS.get(status, status)


def format_transaction_id(transaction_id: str) -> str:
    """Short reference for display: first and last four characters."""
    if not transaction_id:
        return '-'
    if len(transaction_id) <= 12:
        return transaction_id
    return f"{transaction_id[:4]}...{transaction_id[-4:]}"
