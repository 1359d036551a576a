"""
Tests for the escrow session: status is only ever shown from a snapshot
the payment service confirmed.
"""
import os
import sys
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

# Add src to path for import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from taskpay.errors import DataIntegrityError, PaymentApiError, StaleSnapshotError, ValidationError
from taskpay.escrow import Escrow
from taskpay.models import EscrowAction
from taskpay.payment_api import MutationResult
from taskpay.session import EscrowSession

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_escrow(status='held', **overrides):
    record = {
        'escrowId': 'esc_1',
        'taskId': 'task_1',
        'posterUid': 'poster_1',
        'performerUid': 'performer_1',
        'amountInRupees': 500,
        'status': status,
        'heldAt': '2026-03-08T09:30:00Z' if status != 'pending' else None,
        'releasedAt': '2026-03-10T11:00:00Z' if status == 'released' else None,
        'refundedAt': '2026-03-10T11:00:00Z' if status == 'refunded' else None,
        'refundReason': 'No-show' if status == 'refunded' else None,
    }
    record.update(overrides)
    return Escrow.from_dict(record)


@pytest.fixture
def api():
    api = MagicMock()
    api.get_escrow.return_value = make_escrow('held')
    api.release_payment.return_value = MutationResult(success=True)
    api.request_refund.return_value = MutationResult(success=True)
    return api


def poster_session(api):
    session = EscrowSession(api, 'poster_1', escrow_id='esc_1')
    session.refresh()
    return session


class TestSessionBasics:

    def test_needs_an_identifier(self, api):
        with pytest.raises(ValidationError):
            EscrowSession(api, 'poster_1')

    def test_view_before_first_fetch_is_stale(self, api):
        session = EscrowSession(api, 'poster_1', escrow_id='esc_1')
        with pytest.raises(StaleSnapshotError):
            session.view(NOW)

    def test_view_after_refresh(self, api):
        view = poster_session(api).view(NOW)
        assert view.allowed_actions == (EscrowAction.RELEASE_PAYMENT,)

    def test_absent_escrow(self, api):
        api.get_escrow_by_task.return_value = None
        session = EscrowSession(api, 'poster_1', task_id='task_1')
        session.refresh()
        assert session.view(NOW) is None

    def test_refetch_that_regresses_is_rejected(self, api):
        api.get_escrow.side_effect = [make_escrow('released'), make_escrow('held')]
        session = poster_session(api)
        with pytest.raises(DataIntegrityError):
            session.refresh()


class TestRelease:

    def test_release_refetches_instead_of_updating_locally(self, api):
        released = make_escrow('released')
        api.get_escrow.side_effect = [make_escrow('held'), released]
        session = poster_session(api)

        result = session.release()

        assert result.success is True
        api.release_payment.assert_called_once_with('esc_1', 'task_1')
        assert api.get_escrow.call_count == 2
        assert session.view(NOW).badge['label'] == 'Released'

    def test_in_flight_view_shows_held_without_actions(self, api):
        session = poster_session(api)
        seen = []

        def slow_release(escrow_id, task_id):
            seen.append(session.view(NOW))
            return MutationResult(success=True)

        api.release_payment.side_effect = slow_release
        session.release()

        in_flight = seen[0]
        assert in_flight.badge['label'] == 'Funds Held'
        assert in_flight.allowed_actions == ()
        assert in_flight.extra == {'mutationInFlight': EscrowAction.RELEASE_PAYMENT}

    def test_refetch_still_held_is_shown_as_held(self, api):
        """The service accepted the release but the new snapshot has not caught up."""
        api.get_escrow.side_effect = [make_escrow('held'), make_escrow('held')]
        session = poster_session(api)

        result = session.release()
        view = session.view(NOW)

        assert result.success is True
        assert view.badge['label'] == 'Funds Held'
        assert view.allowed_actions == (EscrowAction.RELEASE_PAYMENT,)
        assert session.escrow.released_at is None

    def test_second_call_while_in_flight_is_refused(self, api):
        session = poster_session(api)
        nested = []

        def slow_release(escrow_id, task_id):
            nested.append(session.release())
            return MutationResult(success=True)

        api.release_payment.side_effect = slow_release
        session.release()

        assert nested[0].success is False
        assert api.release_payment.call_count == 1

    def test_failed_release_still_shows_held(self, api):
        """A failed remote call is never displayed as a completed release."""
        api.release_payment.return_value = MutationResult(success=False, error='Gateway timeout')
        session = poster_session(api)

        result = session.release()

        assert result.success is False
        assert session.view(NOW).badge['label'] == 'Funds Held'

    def test_failed_refetch_leaves_session_stale(self, api):
        api.get_escrow.side_effect = [make_escrow('held'), PaymentApiError('unreachable')]
        session = poster_session(api)

        session.release()

        assert session.is_stale
        with pytest.raises(StaleSnapshotError):
            session.view(NOW)
        with pytest.raises(StaleSnapshotError):
            session.release()

    def test_stale_action_does_not_call_remote(self, api):
        api.get_escrow.return_value = make_escrow('refunded')
        session = poster_session(api)

        result = session.release()

        assert result.success is False
        assert result.stale is True
        api.release_payment.assert_not_called()

    def test_performer_cannot_release(self, api):
        session = EscrowSession(api, 'performer_1', escrow_id='esc_1')
        session.refresh()

        result = session.release()

        assert result.stale is True
        api.release_payment.assert_not_called()


class TestRefund:

    def test_refund_requires_reason(self, api):
        session = poster_session(api)
        with pytest.raises(ValidationError):
            session.refund('   ')

    def test_refund_sends_reason(self, api):
        api.get_escrow.side_effect = [make_escrow('held'), make_escrow('refunded')]
        session = poster_session(api)

        result = session.refund(' No-show ')

        assert result.success is True
        api.request_refund.assert_called_once_with('esc_1', 'task_1', 'No-show')
        assert session.escrow.status == 'refunded'

    def test_refund_of_pending_is_stale(self, api):
        api.get_escrow.return_value = make_escrow('pending')
        session = poster_session(api)

        assert session.refund('Changed my mind').stale is True
        api.request_refund.assert_not_called()
