"""
Tests for the role-aware escrow view.
"""
import os
import sys
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

# Add src to path for import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from taskpay.errors import DataIntegrityError, ValidationError
from taskpay.escrow import Escrow
from taskpay.escrow_view import resolve_escrow_view, viewer_role_for
from taskpay.models import EscrowAction, ViewerRole

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_escrow(status='held', **overrides):
    record = {
        'escrowId': 'esc_1',
        'taskId': 'task_1',
        'posterUid': 'poster_1',
        'performerUid': 'performer_1',
        'amountInRupees': 1500,
        'status': status,
        'heldAt': '2026-03-08T09:30:00Z' if status != 'pending' else None,
        'releasedAt': '2026-03-09T09:30:00Z' if status == 'released' else None,
        'refundedAt': '2026-03-09T09:30:00Z' if status == 'refunded' else None,
    }
    record.update(overrides)
    return Escrow.from_dict(record)


class TestPendingEscrow:

    def test_poster_asked_to_pay(self):
        view = resolve_escrow_view(make_escrow('pending'), ViewerRole.POSTER, NOW)

        assert view.allowed_actions == (EscrowAction.INITIATE_PAYMENT,)
        assert '₹1,500' in view.primary_message
        assert view.badge['label'] == 'Pending Payment'

    def test_performer_waits(self):
        view = resolve_escrow_view(make_escrow('pending'), ViewerRole.PERFORMER, NOW)

        assert view.allowed_actions == ()
        assert view.primary_message == 'Awaiting payment from the task poster.'

    def test_nobody_can_release(self):
        for role in ViewerRole:
            view = resolve_escrow_view(make_escrow('pending'), role, NOW)
            assert EscrowAction.RELEASE_PAYMENT not in view.allowed_actions


class TestHeldEscrow:

    def test_only_poster_can_release(self):
        poster = resolve_escrow_view(make_escrow(), ViewerRole.POSTER, NOW)
        performer = resolve_escrow_view(make_escrow(), ViewerRole.PERFORMER, NOW)

        assert poster.allowed_actions == (EscrowAction.RELEASE_PAYMENT,)
        assert performer.allowed_actions == ()

    def test_both_see_amount(self):
        for role in ViewerRole:
            view = resolve_escrow_view(make_escrow(), role, NOW)
            assert view.amount == Decimal('1500')
            assert '₹1,500' in view.primary_message

    def test_auto_release_countdown(self):
        escrow = make_escrow(autoReleaseEnabled=True, autoReleaseDate='2026-03-12T11:00:00Z')

        view = resolve_escrow_view(escrow, 'performer', NOW)

        assert view.days_until_auto_release == 2
        assert view.primary_message.endswith('Auto-release in 2 days.')

    def test_overdue_auto_release_is_zero(self):
        escrow = make_escrow(autoReleaseEnabled=True, autoReleaseDate='2026-03-09T11:00:00Z')

        view = resolve_escrow_view(escrow, ViewerRole.POSTER, NOW)

        assert view.days_until_auto_release == 0
        assert view.primary_message.endswith('Auto-release is due today.')

    def test_no_countdown_when_disabled(self):
        escrow = make_escrow(autoReleaseEnabled=False, autoReleaseDate='2026-03-12T11:00:00Z')

        view = resolve_escrow_view(escrow, ViewerRole.POSTER, NOW)

        assert view.days_until_auto_release is None
        assert 'Auto-release' not in view.primary_message


class TestClosedEscrow:

    def test_released_offers_nothing(self):
        for role in ViewerRole:
            view = resolve_escrow_view(make_escrow('released'), role, NOW)
            assert view.allowed_actions == ()
            assert 'released' in view.primary_message

    def test_refunded_shows_reason(self):
        escrow = make_escrow('refunded', refundReason='Task cancelled by poster')

        for role in ViewerRole:
            view = resolve_escrow_view(escrow, role, NOW)
            assert view.allowed_actions == ()
            assert 'Task cancelled by poster' in view.primary_message

    def test_refunded_without_reason(self):
        view = resolve_escrow_view(make_escrow('refunded'), ViewerRole.POSTER, NOW)
        assert 'Reason' not in view.primary_message


class TestViewContract:

    def test_absent_escrow_is_none(self):
        assert resolve_escrow_view(None, ViewerRole.POSTER, NOW) is None

    def test_unknown_status_is_integrity_error(self):
        # Bypass from_dict to simulate a record that slipped past parsing
        escrow = replace(make_escrow(), status='cancelled')
        with pytest.raises(DataIntegrityError):
            resolve_escrow_view(escrow, ViewerRole.POSTER, NOW)

    def test_unknown_role(self):
        with pytest.raises(ValidationError):
            resolve_escrow_view(make_escrow(), 'admin', NOW)

    def test_to_dict(self):
        body = resolve_escrow_view(make_escrow(), ViewerRole.POSTER, NOW).to_dict()
        assert body['allowedActions'] == ['release_payment']
        assert body['role'] == 'poster'
        assert body['badge']['label'] == 'Funds Held'

    def test_role_for_user(self):
        escrow = make_escrow()
        assert viewer_role_for(escrow, 'poster_1') is ViewerRole.POSTER
        assert viewer_role_for(escrow, 'performer_1') is ViewerRole.PERFORMER
        with pytest.raises(ValidationError):
            viewer_role_for(escrow, 'stranger')
