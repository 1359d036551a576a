"""
Status constants for the task payments layer.
Based on the escrow lifecycle: Pending → Held → Released | Refunded
"""
from enum import Enum


class EscrowStatus:
    """Escrow lifecycle statuses."""
    PENDING = 'pending'    # Created for an accepted offer, funds not captured yet
    HELD = 'held'
    RELEASED = 'released'
    REFUNDED = 'refunded'

    ALL = (PENDING, HELD, RELEASED, REFUNDED)
    TERMINAL = (RELEASED, REFUNDED)


class TransactionType:
    """Kinds of money movement recorded in the ledger."""
    ESCROW = 'escrow'
    RELEASE = 'release'
    REFUND = 'refund'
    PAYOUT = 'payout'
    DIRECT_PAYMENT = 'direct_payment'

    ALL = (ESCROW, RELEASE, REFUND, PAYOUT, DIRECT_PAYMENT)
    # Entries that must carry the amount of their escrow
    ESCROW_BOUND = (ESCROW, RELEASE, REFUND)


class TransactionStatus:
    """Ledger entry statuses."""
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'
    CANCELLED = 'cancelled'

    ALL = (PENDING, PROCESSING, COMPLETED, FAILED, CANCELLED)
    TERMINAL = (COMPLETED, FAILED, CANCELLED)


class PaymentMethodType:
    """How a transaction was paid."""
    CARD = 'card'
    UPI = 'upi'
    NETBANKING = 'netbanking'
    WALLET = 'wallet'
    OTHER = 'other'

    ALL = (CARD, UPI, NETBANKING, WALLET, OTHER)


class ViewerRole(Enum):
    """Which side of an escrow the viewer is on."""
    POSTER = 'poster'
    PERFORMER = 'performer'


class EscrowAction:
    """Actions a viewer may be offered on an escrow."""
    INITIATE_PAYMENT = 'initiate_payment'
    RELEASE_PAYMENT = 'release_payment'
    REQUEST_REFUND = 'request_refund'


class OfferType:
    """Direction of a pending offer."""
    SENT = 'sent'
    RECEIVED = 'received'

    ALL = (SENT, RECEIVED)


class TaskUrgency:
    """Urgency levels reported for active tasks."""
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    URGENT = 'urgent'

    ALL = (LOW, MEDIUM, HIGH, URGENT)
    NEEDS_ATTENTION = (URGENT, HIGH)


class NudgePriority:
    """Setup nudge priority levels."""
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'

    ALL = (HIGH, MEDIUM, LOW)


class NudgeType:
    """Account-setup steps a nudge can point at."""
    VERIFICATION_PENDING = 'verification_pending'
    PAYOUT_METHOD_MISSING = 'payout_method_missing'
    PROFILE_INCOMPLETE = 'profile_incomplete'
    EMAIL_UNVERIFIED = 'email_unverified'
    PHONE_UNVERIFIED = 'phone_unverified'
    BANK_UNVERIFIED = 'bank_unverified'


class ActionType:
    """Kinds of primary action the dashboard can surface."""
    PAYMENT = 'payment'
    OFFER = 'offer'
    TASK = 'task'
    MESSAGE = 'message'
    EMPTY = 'empty'


class SummaryCard:
    """Full-width summary cards on the home screen."""
    PENDING_ACTION = 'pending_action'
    INCOMPLETE_SETUP = 'incomplete_setup'
    FIRST_TIME = 'first_time'
    ACHIEVEMENT_UNLOCKED = 'achievement_unlocked'
    RETURNING_USER = 'returning_user'
