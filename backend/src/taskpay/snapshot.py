"""
User current-status snapshot.

The payment/task service aggregates everything pending for a user into one
read-only document. Lists keep the order the service sent; that order is
the tie-break for every decision made on the snapshot.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from taskpay.errors import DataIntegrityError
from taskpay.models import NudgePriority, OfferType, TaskUrgency
from taskpay.utils import parse_timestamp, to_decimal


def _amount(record: Dict[str, Any], key: str, kind: str) -> Decimal:
    value = to_decimal(record.get(key))
    if value is None:
        raise DataIntegrityError(f"{kind} {record.get('id')} has no readable {key}")
    return value


def _timestamp(record: Dict[str, Any], key: str, kind: str) -> Optional[datetime]:
    try:
        return parse_timestamp(record.get(key))
    except (TypeError, ValueError) as e:
        raise DataIntegrityError(f"{kind} {record.get('id')} has an unreadable {key}") from e


def _choice(record: Dict[str, Any], key: str, allowed, kind: str, default: str = None) -> str:
    value = record.get(key, default)
    if value not in allowed:
        raise DataIntegrityError(f"{kind} {record.get('id')} has unknown {key} {value!r}")
    return value


@dataclass(frozen=True)
class PendingPayment:
    id: str
    task_id: str
    task_title: str
    amount: Decimal
    action_route: str
    type: str = 'release'
    action_label: str = ''
    due_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PendingPayment':
        return cls(
            id=str(data.get('id', '')),
            task_id=data.get('taskId', ''),
            task_title=data.get('taskTitle', ''),
            amount=_amount(data, 'amount', 'Pending payment'),
            action_route=data.get('actionRoute', ''),
            type=data.get('type', 'release'),
            action_label=data.get('actionLabel', ''),
            due_date=_timestamp(data, 'dueDate', 'Pending payment'),
        )


@dataclass(frozen=True)
class PendingOffer:
    id: str
    task_id: str
    task_title: str
    type: str
    proposed_budget: Decimal
    action_route: str
    applicant_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PendingOffer':
        return cls(
            id=str(data.get('id', '')),
            task_id=data.get('taskId', ''),
            task_title=data.get('taskTitle', ''),
            type=_choice(data, 'type', OfferType.ALL, 'Pending offer'),
            proposed_budget=_amount(data, 'proposedBudget', 'Pending offer'),
            action_route=data.get('actionRoute', ''),
            applicant_name=data.get('applicantName') or None,
            created_at=_timestamp(data, 'createdAt', 'Pending offer'),
        )


@dataclass(frozen=True)
class ActiveTask:
    id: str
    title: str
    next_action: str
    next_action_route: str
    urgency: str = TaskUrgency.LOW
    role: str = 'poster'
    status: Optional[str] = None
    other_party_name: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    budget: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ActiveTask':
        return cls(
            id=str(data.get('id', '')),
            title=data.get('title', ''),
            next_action=data.get('nextAction', ''),
            next_action_route=data.get('nextActionRoute', ''),
            urgency=_choice(data, 'urgency', TaskUrgency.ALL, 'Active task', TaskUrgency.LOW),
            role=data.get('role', 'poster'),
            status=data.get('status'),
            other_party_name=data.get('otherPartyName') or None,
            scheduled_date=_timestamp(data, 'scheduledDate', 'Active task'),
            budget=to_decimal(data.get('budget')),
        )


@dataclass(frozen=True)
class ActiveChat:
    id: str
    task_id: str
    task_title: str
    other_party_name: str
    unread_count: int = 0
    last_message: str = ''
    last_message_time: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ActiveChat':
        try:
            unread = int(data.get('unreadCount') or 0)
        except (TypeError, ValueError) as e:
            raise DataIntegrityError(f"Active chat {data.get('id')} has an unreadable unreadCount") from e
        return cls(
            id=str(data.get('id', '')),
            task_id=data.get('taskId', ''),
            task_title=data.get('taskTitle', ''),
            other_party_name=data.get('otherPartyName', ''),
            unread_count=unread,
            last_message=data.get('lastMessage', ''),
            last_message_time=_timestamp(data, 'lastMessageTime', 'Active chat'),
        )


@dataclass(frozen=True)
class SetupNudge:
    id: str
    type: str
    title: str
    priority: str
    action_route: str
    description: str = ''
    action_label: str = ''
    dismissible: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SetupNudge':
        return cls(
            id=str(data.get('id', '')),
            type=data.get('type', ''),
            title=data.get('title', ''),
            priority=_choice(data, 'priority', NudgePriority.ALL, 'Setup nudge'),
            action_route=data.get('actionRoute', ''),
            description=data.get('description', ''),
            action_label=data.get('actionLabel', ''),
            dismissible=bool(data.get('dismissible', True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'description': self.description,
            'actionLabel': self.action_label,
            'actionRoute': self.action_route,
            'priority': self.priority,
            'dismissible': self.dismissible,
        }


@dataclass(frozen=True)
class DashboardStats:
    total_tasks_posted: int = 0
    total_tasks_completed: int = 0
    total_tasks_as_tasker: int = 0
    total_earnings: Decimal = Decimal('0')
    total_spent: Decimal = Decimal('0')
    average_rating: Decimal = Decimal('0')

    @property
    def has_history(self) -> bool:
        return bool(self.total_tasks_posted or self.total_tasks_completed or self.total_tasks_as_tasker)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DashboardStats':
        def count(key):
            try:
                return int(data.get(key) or 0)
            except (TypeError, ValueError) as e:
                raise DataIntegrityError(f"Dashboard stats have an unreadable {key}") from e

        return cls(
            total_tasks_posted=count('totalTasksPosted'),
            total_tasks_completed=count('totalTasksCompleted'),
            total_tasks_as_tasker=count('totalTasksAsTasker'),
            total_earnings=to_decimal(data.get('totalEarnings')) or Decimal('0'),
            total_spent=to_decimal(data.get('totalSpent')) or Decimal('0'),
            average_rating=to_decimal(data.get('averageRating')) or Decimal('0'),
        )


@dataclass(frozen=True)
class UserCurrentStatus:
    """Point-in-time aggregate of a user's pending work. Read-only."""
    pending_payments: List[PendingPayment] = field(default_factory=list)
    pending_offers: List[PendingOffer] = field(default_factory=list)
    active_tasks: List[ActiveTask] = field(default_factory=list)
    active_chats: List[ActiveChat] = field(default_factory=list)
    nudges: List[SetupNudge] = field(default_factory=list)
    stats: DashboardStats = field(default_factory=DashboardStats)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserCurrentStatus':
        """
        Read the snapshot document. Missing lists are empty.

        Accepts either the bare status object or one wrapped as
        {'currentStatus': ..., 'nudges': ..., 'stats': ...}.

        Raises:
            DataIntegrityError: an item has an unknown enum value or unreadable figure
        """
        data = data or {}
        # A new user may come back as {'currentStatus': null}
        status = (data['currentStatus'] if 'currentStatus' in data else data) or {}
        nudges = data.get('nudges', status.get('nudges')) or []
        stats = data.get('stats', status.get('stats')) or {}
        return cls(
            pending_payments=[PendingPayment.from_dict(p) for p in status.get('pendingPayments') or []],
            pending_offers=[PendingOffer.from_dict(o) for o in status.get('pendingOffers') or []],
            active_tasks=[ActiveTask.from_dict(t) for t in status.get('activeTasks') or []],
            active_chats=[ActiveChat.from_dict(c) for c in status.get('activeChats') or []],
            nudges=[SetupNudge.from_dict(n) for n in nudges],
            stats=DashboardStats.from_dict(stats),
        )
