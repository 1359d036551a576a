"""
Escrow session: the snapshot freshness contract.

A session holds the last escrow snapshot confirmed by the payment service
and is the only place release/refund calls are made from. After every
mutation, successful or not, the snapshot is invalidated and refetched;
the escrow status is never updated locally. Until a refetch succeeds the
session refuses to derive a view.
"""
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from taskpay.errors import PaymentApiError, StaleSnapshotError, ValidationError
from taskpay.escrow import Escrow, can_refund_escrow, can_release_escrow, check_progression
from taskpay.escrow_view import EscrowView, resolve_escrow_view, viewer_role_for
from taskpay.logging import logger
from taskpay.models import EscrowAction, ViewerRole
from taskpay.payment_api import MutationResult, PaymentApiClient


class EscrowSession:
    """One viewer's working copy of one escrow."""

    def __init__(self, api: PaymentApiClient, viewer_uid: str, escrow_id: str = None, task_id: str = None):
        if not escrow_id and not task_id:
            raise ValidationError("An escrow session needs an escrow id or a task id")
        self.api = api
        self.viewer_uid = viewer_uid
        self.escrow_id = escrow_id
        self.task_id = task_id
        self.escrow: Optional[Escrow] = None
        self.in_flight: Optional[str] = None
        self._stale = True

    @property
    def is_stale(self) -> bool:
        return self._stale

    def refresh(self) -> Optional[Escrow]:
        """
        Refetch the escrow and make it the current snapshot.

        Raises:
            PaymentApiError: the fetch failed; the session stays stale
            DataIntegrityError: the new snapshot regresses from the old one
        """
        if self.escrow_id:
            current = self.api.get_escrow(self.escrow_id)
        else:
            current = self.api.get_escrow_by_task(self.task_id)

        if self.escrow is not None and current is not None:
            check_progression(self.escrow, current)
        if current is not None:
            self.escrow_id = current.id
            self.task_id = current.task_id

        self.escrow = current
        self._stale = False
        return current

    def role(self) -> Optional[ViewerRole]:
        if self.escrow is None:
            return None
        return viewer_role_for(self.escrow, self.viewer_uid)

    def view(self, now: datetime = None) -> Optional[EscrowView]:
        """
        Derive the view from the confirmed snapshot.

        While a mutation is in flight the last confirmed status is shown
        with no actions.

        Raises:
            StaleSnapshotError: a mutation finished and no refetch has succeeded
        """
        if self._stale:
            raise StaleSnapshotError("Escrow snapshot must be refetched before deriving a view")
        if self.escrow is None:
            return None

        view = resolve_escrow_view(self.escrow, self.role(), now)
        if self.in_flight:
            view = replace(view, allowed_actions=(), extra={'mutationInFlight': self.in_flight})
        return view

    def release(self) -> MutationResult:
        """Ask the payment service to release held funds to the performer (poster only)."""
        return self._mutate(
            EscrowAction.RELEASE_PAYMENT,
            lambda escrow: can_release_escrow(escrow.status) and self.role() is ViewerRole.POSTER,
            lambda escrow: self.api.release_payment(escrow.id, escrow.task_id),
        )

    def refund(self, reason: str) -> MutationResult:
        """Ask the payment service to refund held funds to the poster."""
        if not reason or not reason.strip():
            raise ValidationError("A refund needs a reason")
        return self._mutate(
            EscrowAction.REQUEST_REFUND,
            lambda escrow: can_refund_escrow(escrow.status),
            lambda escrow: self.api.request_refund(escrow.id, escrow.task_id, reason.strip()),
        )

    def _mutate(
        self,
        action: str,
        allowed: Callable[[Escrow], bool],
        call: Callable[[Escrow], MutationResult]
    ) -> MutationResult:
        if self._stale:
            raise StaleSnapshotError(f"Refusing {action}: snapshot must be refetched first")
        if self.in_flight:
            return MutationResult(success=False, error=f"{self.in_flight} is already in progress")

        escrow = self.escrow
        if escrow is None or not allowed(escrow):
            status = escrow.status if escrow else 'absent'
            logger.info(f"Refusing {action} on escrow {self.escrow_id}: snapshot status is {status}")
            return MutationResult(
                success=False,
                error=f"{action} is not available while the escrow is {status}",
                stale=True
            )

        self.in_flight = action
        try:
            result = call(escrow)
        finally:
            self.in_flight = None
            self._stale = True

        logger.info(f"{action} on escrow {escrow.id}: success={result.success}")
        try:
            self.refresh()
        except PaymentApiError as e:
            logger.warning(f"Refetch after {action} failed, snapshot stays stale: {e}")
        return result
