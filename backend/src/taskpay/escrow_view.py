"""
Role-aware escrow view.

Derives what a poster or a performer should see for an escrow and which
actions they may take. Purely a read-side projection of the record it is
given: allowed actions always reflect that record and nothing else.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

from taskpay.errors import DataIntegrityError, ValidationError
from taskpay.escrow import Escrow, can_release_escrow, days_until_auto_release, escrow_status_info
from taskpay.logging import logger
from taskpay.models import EscrowAction, EscrowStatus, ViewerRole
from taskpay.utils import format_currency


@dataclass(frozen=True)
class EscrowView:
    """What the UI renders for one escrow."""
    badge: Dict[str, str]
    primary_message: str
    allowed_actions: Tuple[str, ...] = ()
    amount: Optional[Decimal] = None
    days_until_auto_release: Optional[int] = None
    role: Optional[ViewerRole] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'badge': self.badge,
            'primaryMessage': self.primary_message,
            'allowedActions': list(self.allowed_actions),
            'amount': self.amount,
            'daysUntilAutoRelease': self.days_until_auto_release,
            'role': self.role.value if self.role else None,
            **self.extra,
        }


def coerce_role(viewer_role: Union[ViewerRole, str]) -> ViewerRole:
    """Accept the enum or its string value; anything else is a caller bug."""
    if isinstance(viewer_role, ViewerRole):
        return viewer_role
    try:
        return ViewerRole(viewer_role)
    except ValueError:
        raise ValidationError(f"Unknown viewer role {viewer_role!r}") from None


def viewer_role_for(escrow: Escrow, user_id: str) -> ViewerRole:
    """
    Work out which side of the escrow a user is on.

    Raises:
        ValidationError: the user is neither the poster nor the performer
    """
    if user_id and user_id == escrow.poster_uid:
        return ViewerRole.POSTER
    if user_id and user_id == escrow.performer_uid:
        return ViewerRole.PERFORMER
    raise ValidationError(f"User {user_id} is not a party to escrow {escrow.id}")


def _auto_release_message(days: int) -> str:
    if days == 0:
        return 'Auto-release is due today.'
    unit = 'day' if days == 1 else 'days'
    return f'Auto-release in {days} {unit}.'


def _pending_view(escrow: Escrow, role: ViewerRole, amount_text: str) -> Tuple[str, Tuple[str, ...]]:
    if role is ViewerRole.POSTER:
        return f'Complete your payment of {amount_text} to secure this task.', (EscrowAction.INITIATE_PAYMENT,)
    return 'Awaiting payment from the task poster.', ()


def _held_view(
    escrow: Escrow,
    role: ViewerRole,
    amount_text: str,
    days: Optional[int]
) -> Tuple[str, Tuple[str, ...]]:
    if role is ViewerRole.POSTER:
        message = f'{amount_text} is held in escrow. Release it once the task is complete.'
    else:
        message = f'{amount_text} is held in escrow and will be paid out once released.'
    if days is not None:
        message = f'{message} {_auto_release_message(days)}'

    actions = ()
    if role is ViewerRole.POSTER and can_release_escrow(escrow.status):
        actions = (EscrowAction.RELEASE_PAYMENT,)
    return message, actions


def _released_view(escrow: Escrow, role: ViewerRole, amount_text: str) -> Tuple[str, Tuple[str, ...]]:
    if role is ViewerRole.POSTER:
        return f'Payment of {amount_text} released to the tasker.', ()
    return f'Payment of {amount_text} released to you.', ()


def _refunded_view(escrow: Escrow, role: ViewerRole, amount_text: str) -> Tuple[str, Tuple[str, ...]]:
    message = f'{amount_text} was refunded to the poster.'
    if escrow.refund_reason:
        message = f'{message} Reason: {escrow.refund_reason}'
    return message, ()


def resolve_escrow_view(
    escrow: Optional[Escrow],
    viewer_role: Union[ViewerRole, str],
    now: datetime = None
) -> Optional[EscrowView]:
    """
    Project an escrow into the badge, message and actions for one viewer.

    Rules:
    - pending: poster is asked to complete payment, performer waits
    - held: both see the amount and, with auto-release on, whole days left;
      only the poster may release
    - released / refunded: a closing message, no actions

    Args:
        escrow: The escrow record, or None when the task has none yet
        viewer_role: ViewerRole.POSTER / PERFORMER (or 'poster' / 'performer')
        now: Reference time for the auto-release countdown (defaults to UTC now)

    Returns:
        EscrowView, or None when there is no escrow

    Raises:
        ValidationError: unknown viewer role
        DataIntegrityError: escrow status outside the known set
    """
    role = coerce_role(viewer_role)
    if escrow is None:
        return None

    if escrow.status not in EscrowStatus.ALL:
        logger.warning(f"Escrow {escrow.id} has unknown status {escrow.status!r}")
        raise DataIntegrityError(f"Escrow {escrow.id} has unknown status {escrow.status!r}")

    badge = escrow_status_info(escrow.status)
    amount_text = format_currency(escrow.amount_in_rupees, escrow.currency)
    days = None

    if escrow.status == EscrowStatus.PENDING:
        message, actions = _pending_view(escrow, role, amount_text)
    elif escrow.status == EscrowStatus.HELD:
        if escrow.auto_release_enabled and escrow.auto_release_date:
            days = days_until_auto_release(escrow.auto_release_date, now or datetime.now(timezone.utc))
        message, actions = _held_view(escrow, role, amount_text, days)
    elif escrow.status == EscrowStatus.RELEASED:
        message, actions = _released_view(escrow, role, amount_text)
    else:
        message, actions = _refunded_view(escrow, role, amount_text)

    return EscrowView(
        badge=badge,
        primary_message=message,
        allowed_actions=actions,
        amount=escrow.amount_in_rupees,
        days_until_auto_release=days,
        role=role,
    )
