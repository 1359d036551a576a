"""
Home dashboard composition.

Fetches the user's snapshot, folds in what the saved payment methods say
about payout setup, and runs the prioritization engine over the result.
"""
from dataclasses import replace
from typing import Any, Dict

from taskpay.logging import logger
from taskpay.models import NudgePriority, NudgeType
from taskpay.payment_api import PaymentApiClient
from taskpay.payment_methods import PaymentMethodStore, SavedPaymentMethods
from taskpay.prioritization import select_primary_action, select_summary_card, sort_setup_nudges
from taskpay.snapshot import SetupNudge, UserCurrentStatus

PAYOUT_NUDGE = SetupNudge(
    id='payout-method',
    type=NudgeType.PAYOUT_METHOD_MISSING,
    title='Add a payout method',
    description='Add a bank account or UPI ID so released payments can reach you.',
    action_label='Add payout method',
    action_route='/profile?tab=payments',
    priority=NudgePriority.HIGH,
    dismissible=False,
)


def with_payment_nudges(status: UserCurrentStatus, methods: SavedPaymentMethods) -> UserCurrentStatus:
    """Add the payout-method nudge unless a payout method exists or the service already sent one."""
    if methods.has_payout_method:
        return status
    if any(n.type == NudgeType.PAYOUT_METHOD_MISSING for n in status.nudges):
        return status
    return replace(status, nudges=[*status.nudges, PAYOUT_NUDGE])


class DashboardService:
    """Builds the home-screen decisions for one user."""

    def __init__(self, api: PaymentApiClient, payment_method_store: PaymentMethodStore):
        self.api = api
        self.payment_method_store = payment_method_store

    def build(self, user_id: str) -> Dict[str, Any]:
        status = self.api.get_current_status(user_id)
        status = with_payment_nudges(status, self.payment_method_store.load(user_id))

        action = select_primary_action(status)
        card = select_summary_card(status)
        logger.info(f"Dashboard for {user_id}: action={action.type} card={card}")
        return {
            'primaryAction': action.to_dict(),
            'summaryCard': card,
            'nudges': [n.to_dict() for n in sort_setup_nudges(status.nudges)],
        }
