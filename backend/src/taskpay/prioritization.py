"""
Action prioritization.

Out of everything pending for a user, pick the single action to surface
first. The ladder is fixed and evaluated top to bottom; the first rung
that matches wins:

1. Pending payment      - release the first payment in the list
2. Received offer       - review the first received offer
3. Active task          - first urgent/high task, else the first task
4. Unread message       - open the first chat with unread messages
5. Nothing              - EMPTY, render nothing

A coarser decision picks the home summary card from the same snapshot;
whenever the ladder finds an action, that card is never 'first_time'.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from taskpay.logging import logger
from taskpay.models import ActionType, NudgePriority, OfferType, SummaryCard, TaskUrgency
from taskpay.snapshot import SetupNudge, UserCurrentStatus
from taskpay.utils import format_currency

# Precedence for setup nudges; lower sorts first
NUDGE_PRIORITY_ORDER = {
    NudgePriority.HIGH: 0,
    NudgePriority.MEDIUM: 1,
    NudgePriority.LOW: 2,
}

# Completed tasks that earn the milestone card
ACHIEVEMENT_THRESHOLD = 10


@dataclass(frozen=True)
class PriorityAction:
    """The one action the home screen should lead with."""
    type: str
    priority: int
    title: str = ''
    description: str = ''
    action_label: str = ''
    action_route: str = ''
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.type == ActionType.EMPTY

    def __bool__(self) -> bool:
        return not self.is_empty

    def to_dict(self) -> Optional[Dict[str, Any]]:
        """Presentation shape; EMPTY serializes to None ("render nothing")."""
        if self.is_empty:
            return None
        return {
            'type': self.type,
            'priority': self.priority,
            'title': self.title,
            'description': self.description,
            'actionLabel': self.action_label,
            'actionRoute': self.action_route,
            'metadata': {k: v for k, v in self.metadata.items() if v is not None},
        }


EMPTY = PriorityAction(type=ActionType.EMPTY, priority=999)


def _payment_action(status: UserCurrentStatus) -> Optional[PriorityAction]:
    if not status.pending_payments:
        return None
    payment = status.pending_payments[0]
    return PriorityAction(
        type=ActionType.PAYMENT,
        priority=1,
        title='Payment ready to release',
        description='Task completed. Release payment to complete the transaction.',
        action_label='Review and release payment',
        action_route=payment.action_route,
        metadata={'amount': payment.amount, 'taskTitle': payment.task_title},
    )


def _offer_action(status: UserCurrentStatus) -> Optional[PriorityAction]:
    offer = next((o for o in status.pending_offers if o.type == OfferType.RECEIVED), None)
    if offer is None:
        return None
    who = offer.applicant_name or 'Someone'
    return PriorityAction(
        type=ActionType.OFFER,
        priority=2,
        title='New offer received',
        description=f'{who} offered {format_currency(offer.proposed_budget)} for your task.',
        action_label='Review offer',
        action_route=offer.action_route,
        metadata={
            'amount': offer.proposed_budget,
            'taskTitle': offer.task_title,
            'otherPartyName': offer.applicant_name,
        },
    )


def _task_action(status: UserCurrentStatus) -> Optional[PriorityAction]:
    if not status.active_tasks:
        return None
    task = next(
        (t for t in status.active_tasks if t.urgency in TaskUrgency.NEEDS_ATTENTION),
        status.active_tasks[0]
    )
    return PriorityAction(
        type=ActionType.TASK,
        priority=3,
        title='Track your task' if task.role == 'poster' else 'Continue your task',
        description=task.next_action,
        action_label=task.next_action,
        action_route=task.next_action_route,
        metadata={
            'taskTitle': task.title,
            'otherPartyName': task.other_party_name,
            'dueDate': task.scheduled_date,
        },
    )


def _message_action(status: UserCurrentStatus) -> Optional[PriorityAction]:
    chat = next((c for c in status.active_chats if c.unread_count > 0), None)
    if chat is None:
        return None
    plural = 's' if chat.unread_count > 1 else ''
    return PriorityAction(
        type=ActionType.MESSAGE,
        priority=4,
        title='New message',
        description=f'{chat.unread_count} unread message{plural} from {chat.other_party_name}',
        action_label='View conversation',
        action_route=f'/chat?id={chat.id}',
        metadata={'taskTitle': chat.task_title, 'otherPartyName': chat.other_party_name},
    )


LADDER = (_payment_action, _offer_action, _task_action, _message_action)


def select_primary_action(status: UserCurrentStatus) -> PriorityAction:
    """
    Pick the single highest-priority action for a snapshot.

    Total and deterministic: any snapshot, including an empty one, yields
    a PriorityAction; EMPTY means nothing should be surfaced.
    """
    for rung in LADDER:
        action = rung(status)
        if action is not None:
            logger.debug(f"Primary action: {action.type} -> {action.action_route}")
            return action
    return EMPTY


def has_pending_action(status: UserCurrentStatus) -> bool:
    """Payment, received offer or unread message waiting on the user."""
    return bool(
        status.pending_payments
        or any(o.type == OfferType.RECEIVED for o in status.pending_offers)
        or any(c.unread_count > 0 for c in status.active_chats)
    )


def has_any_activity(status: UserCurrentStatus) -> bool:
    """Anything at all in the snapshot or in the user's history."""
    return bool(
        status.pending_payments
        or status.pending_offers
        or status.active_tasks
        or status.active_chats
        or status.stats.has_history
    )


def select_summary_card(status: UserCurrentStatus) -> str:
    """
    Pick the full-width summary card for the home screen.

    pending_action > incomplete_setup > first_time > achievement_unlocked
    > returning_user.
    Active tasks count as activity, so a user the ladder has something for
    is never greeted as first-time.
    """
    if has_pending_action(status):
        return SummaryCard.PENDING_ACTION
    if status.nudges:
        return SummaryCard.INCOMPLETE_SETUP
    if not has_any_activity(status):
        return SummaryCard.FIRST_TIME
    if status.stats.total_tasks_completed >= ACHIEVEMENT_THRESHOLD:
        return SummaryCard.ACHIEVEMENT_UNLOCKED
    return SummaryCard.RETURNING_USER


def sort_setup_nudges(nudges: List[SetupNudge]) -> List[SetupNudge]:
    """Order nudges high, medium, low; equal priorities keep their order."""
    return sorted(nudges, key=lambda n: NUDGE_PRIORITY_ORDER[n.priority])


def next_setup_nudge(nudges: List[SetupNudge]) -> Optional[SetupNudge]:
    ordered = sort_setup_nudges(nudges)
    return ordered[0] if ordered else None
