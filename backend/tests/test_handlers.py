"""
Tests for the Lambda handlers. The payment service client and DynamoDB
store are mocked.
"""
import json
import logging
import os
import sys
from unittest.mock import MagicMock, patch

# Add src to path for import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from taskpay.errors import DataIntegrityError, PaymentApiError
from taskpay.escrow import Escrow
from taskpay.payment_api import MutationResult
from taskpay.payment_methods import InMemoryPaymentMethodStore
from taskpay.snapshot import UserCurrentStatus
from taskpay.transactions import TransactionPage


def api_event(user_id='poster_1', path=None, query=None, body=None, method='GET'):
    event = {
        'httpMethod': method,
        'headers': {'Authorization': 'Bearer tok_123'},
        'pathParameters': path,
        'queryStringParameters': query,
        'body': json.dumps(body) if body is not None else None,
    }
    if user_id:
        event['requestContext'] = {'authorizer': {'claims': {'sub': user_id}}}
    return event


def make_escrow(status='held'):
    return Escrow.from_dict({
        'escrowId': 'esc_1', 'taskId': 'task_1', 'posterUid': 'poster_1',
        'performerUid': 'performer_1', 'amountInRupees': 500, 'status': status,
        'heldAt': '2026-03-08T09:30:00Z',
        'releasedAt': '2026-03-10T11:00:00Z' if status == 'released' else None,
    })


def body_of(response):
    return json.loads(response['body'])


class TestGetEscrowView:
    """GET /tasks/{taskId}/escrow"""

    def test_unauthorized(self):
        from handlers.escrow.get_escrow_view import handler

        response = handler(api_event(user_id=None, path={'taskId': 'task_1'}), None)

        assert response['statusCode'] == 401

    def test_poster_view(self):
        from handlers.escrow.get_escrow_view import handler

        with patch('handlers.escrow.get_escrow_view.PaymentApiClient') as mock_client:
            mock_client.return_value.get_escrow_by_task.return_value = make_escrow()
            response = handler(api_event(path={'taskId': 'task_1'}), None)

        mock_client.assert_called_once_with(token='tok_123')
        body = body_of(response)
        assert response['statusCode'] == 200
        assert body['view']['allowedActions'] == ['release_payment']
        assert body['escrow']['amountInRupees'] == '500'

    def test_no_escrow_yet(self):
        from handlers.escrow.get_escrow_view import handler

        with patch('handlers.escrow.get_escrow_view.PaymentApiClient') as mock_client:
            mock_client.return_value.get_escrow_by_task.return_value = None
            response = handler(api_event(path={'taskId': 'task_1'}), None)

        assert response['statusCode'] == 200
        assert body_of(response)['view'] is None

    def test_stranger_forbidden(self):
        from handlers.escrow.get_escrow_view import handler

        with patch('handlers.escrow.get_escrow_view.PaymentApiClient') as mock_client:
            mock_client.return_value.get_escrow_by_task.return_value = make_escrow()
            response = handler(api_event(user_id='stranger', path={'taskId': 'task_1'}), None)

        assert response['statusCode'] == 403

    def test_integrity_error_is_distinct_from_absence(self):
        from handlers.escrow.get_escrow_view import handler

        with patch('handlers.escrow.get_escrow_view.PaymentApiClient') as mock_client:
            mock_client.return_value.get_escrow_by_task.side_effect = DataIntegrityError('bad status')
            response = handler(api_event(path={'taskId': 'task_1'}), None)

        assert response['statusCode'] == 502
        assert body_of(response)['error'] == 'Escrow record is inconsistent'


class TestReleaseAndRefund:
    """POST /escrow/{escrowId}/release and /refund"""

    def test_release_returns_fresh_view(self):
        from handlers.escrow.release_payment import handler

        with patch('handlers.escrow.release_payment.PaymentApiClient') as mock_client:
            api = mock_client.return_value
            api.get_escrow.side_effect = [make_escrow('held'), make_escrow('released')]
            api.release_payment.return_value = MutationResult(success=True)
            response = handler(api_event(path={'escrowId': 'esc_1'}, method='POST'), None)

        body = body_of(response)
        assert response['statusCode'] == 200
        assert body['escrow']['status'] == 'released'
        assert body['view']['allowedActions'] == []
        assert body['refetchRequired'] is False

    def test_release_of_released_escrow_conflicts(self):
        from handlers.escrow.release_payment import handler

        with patch('handlers.escrow.release_payment.PaymentApiClient') as mock_client:
            api = mock_client.return_value
            api.get_escrow.return_value = make_escrow('released')
            response = handler(api_event(path={'escrowId': 'esc_1'}, method='POST'), None)

        assert response['statusCode'] == 409
        assert body_of(response)['result']['stale'] is True
        api.release_payment.assert_not_called()

    def test_release_with_failed_refetch(self):
        from handlers.escrow.release_payment import handler

        with patch('handlers.escrow.release_payment.PaymentApiClient') as mock_client:
            api = mock_client.return_value
            api.get_escrow.side_effect = [make_escrow('held'), PaymentApiError('timeout')]
            api.release_payment.return_value = MutationResult(success=True)
            response = handler(api_event(path={'escrowId': 'esc_1'}, method='POST'), None)

        body = body_of(response)
        assert response['statusCode'] == 202
        assert body['refetchRequired'] is True
        assert body['view'] is None

    def test_release_rejected_by_service(self):
        from handlers.escrow.release_payment import handler

        with patch('handlers.escrow.release_payment.PaymentApiClient') as mock_client:
            api = mock_client.return_value
            api.get_escrow.return_value = make_escrow('held')
            api.release_payment.return_value = MutationResult(success=False, error='Gateway declined')
            response = handler(api_event(path={'escrowId': 'esc_1'}, method='POST'), None)

        body = body_of(response)
        assert response['statusCode'] == 502
        assert body['result']['error'] == 'Gateway declined'
        assert body['escrow']['status'] == 'held'

    def test_performer_cannot_release(self):
        from handlers.escrow.release_payment import handler

        with patch('handlers.escrow.release_payment.PaymentApiClient') as mock_client:
            api = mock_client.return_value
            api.get_escrow.return_value = make_escrow('held')
            response = handler(api_event(user_id='performer_1', path={'escrowId': 'esc_1'}, method='POST'), None)

        assert response['statusCode'] == 409
        api.release_payment.assert_not_called()

    def test_refund_requires_reason(self):
        from handlers.escrow.request_refund import handler

        response = handler(api_event(path={'escrowId': 'esc_1'}, body={}, method='POST'), None)

        assert response['statusCode'] == 400

    def test_refund_by_stranger_forbidden(self):
        from handlers.escrow.request_refund import handler

        with patch('handlers.escrow.request_refund.PaymentApiClient') as mock_client:
            api = mock_client.return_value
            api.get_escrow.return_value = make_escrow('held')
            response = handler(api_event(user_id='stranger', path={'escrowId': 'esc_1'},
                                         body={'reason': 'No-show'}, method='POST'), None)

        assert response['statusCode'] == 403
        api.request_refund.assert_not_called()


class TestPrimaryAction:
    """GET /dashboard/primary-action"""

    def test_builds_dashboard(self):
        from handlers.dashboard.get_primary_action import handler

        status = UserCurrentStatus.from_dict({'pendingPayments': [{
            'id': 'p1', 'taskId': 't1', 'taskTitle': 'Clean apartment',
            'amount': 500, 'actionRoute': '/tasks/t1/payment',
        }]})
        with patch('handlers.dashboard.get_primary_action.PaymentApiClient') as mock_client, \
                patch('handlers.dashboard.get_primary_action.payment_method_store', InMemoryPaymentMethodStore()):
            mock_client.return_value.get_current_status.return_value = status
            response = handler(api_event(), None)

        body = body_of(response)
        assert response['statusCode'] == 200
        assert body['primaryAction']['type'] == 'payment'
        assert body['primaryAction']['metadata']['amount'] == 500
        assert body['summaryCard'] == 'pending_action'

    def test_service_down(self):
        from handlers.dashboard.get_primary_action import handler

        with patch('handlers.dashboard.get_primary_action.PaymentApiClient') as mock_client:
            mock_client.return_value.get_current_status.side_effect = PaymentApiError('down', status_code=503)
            response = handler(api_event(), None)

        assert response['statusCode'] == 502


class TestCalculateFees:
    """GET /payments/fees"""

    def test_breakdown(self):
        from handlers.payments.calculate_fees import handler

        response = handler(api_event(query={'amount': '1000'}), None)

        body = body_of(response)
        assert response['statusCode'] == 200
        assert body['fees']['platformFee'] == 100
        assert body['fees']['netAmount'] == 900

    def test_invalid_amount(self):
        from handlers.payments.calculate_fees import handler

        assert handler(api_event(query={'amount': '-5'}), None)['statusCode'] == 400
        assert handler(api_event(query=None), None)['statusCode'] == 400

    def test_amount_too_large(self):
        from handlers.payments.calculate_fees import handler

        response = handler({'queryStringParameters': {'amount': '1e30'}}, None)

        assert response['statusCode'] == 400
        assert 'too large' in body_of(response)['error']

    def test_unexpected_error(self):
        from handlers.payments.calculate_fees import handler

        with patch('handlers.payments.calculate_fees.calculate_fees', side_effect=RuntimeError('boom')):
            response = handler(api_event(query={'amount': '100'}), None)

        assert response['statusCode'] == 500


class TestListTransactions:
    """GET /payments/transactions"""

    def page(self):
        return TransactionPage.from_dict({
            'transactions': [
                {'transactionId': 'txn_0000000001', 'type': 'escrow', 'status': 'completed',
                 'amount': 500, 'posterUid': 'poster_1', 'taskId': 't1',
                 'createdAt': '2026-03-02T10:00:00Z'},
                {'transactionId': 'txn_0000000002', 'type': 'release', 'status': 'pending',
                 'amount': 500, 'posterUid': 'poster_1', 'taskId': 't1',
                 'createdAt': '2026-03-03T10:00:00Z'},
            ],
            'pagination': {'page': 1, 'limit': 100, 'total': 2, 'pages': 1},
        })

    def test_filters_page(self):
        from handlers.payments.list_transactions import handler

        with patch('handlers.payments.list_transactions.PaymentApiClient') as mock_client:
            mock_client.return_value.get_transactions.return_value = self.page()
            response = handler(api_event(query={'status': 'completed', 'minAmount': 'abc'}), None)

        body = body_of(response)
        assert response['statusCode'] == 200
        assert [row['transactionId'] for row in body['transactions']] == ['txn_0000000001']
        assert body['transactions'][0]['typeLabel'] == 'Escrow Payment'
        assert body['transactions'][0]['displayId'] == 'txn_...0001'

    def test_strict_amount_bound(self):
        from handlers.payments.list_transactions import handler

        with patch('handlers.payments.list_transactions.PaymentApiClient') as mock_client:
            mock_client.return_value.get_transactions.return_value = self.page()
            response = handler(api_event(query={'minAmount': 'abc', 'strict': 'true'}), None)

        assert response['statusCode'] == 400

    def test_inverted_date_range(self):
        from handlers.payments.list_transactions import handler

        response = handler(api_event(query={'from': '2026-03-05', 'to': '2026-03-01'}), None)

        assert response['statusCode'] == 400


class TestPaymentMethodsHandler:
    """GET|PUT|DELETE /payments/methods"""

    def test_put_then_get(self):
        from handlers.payments.payment_methods import handler

        with patch('handlers.payments.payment_methods.store', InMemoryPaymentMethodStore()):
            put = handler(api_event(method='PUT', body={'payoutMethods': [{'id': 'po_1', 'type': 'upi'}]}), None)
            get = handler(api_event(), None)

        assert put['statusCode'] == 200
        assert body_of(get)['payoutMethods'] == [{'id': 'po_1', 'type': 'upi'}]

    def test_invalid_body(self):
        from handlers.payments.payment_methods import handler

        with patch('handlers.payments.payment_methods.store', InMemoryPaymentMethodStore()):
            response = handler(api_event(method='PUT', body={'payoutMethods': 'upi'}), None)

        assert response['statusCode'] == 400

    def test_store_failure(self):
        from handlers.payments.payment_methods import handler

        store = MagicMock()
        store.load.side_effect = RuntimeError('boom')
        with patch('handlers.payments.payment_methods.store', store):
            response = handler(api_event(), None)

        assert response['statusCode'] == 500


class TestLogEvent:
    """Incoming events are logged without tokens or bodies."""

    def test_redacts_sensitive_keys(self, caplog):
        from taskpay.logging import log_event

        event = api_event(path={'escrowId': 'esc_1'}, body={'reason': 'No-show'}, method='POST')
        event['multiValueHeaders'] = {'Authorization': ['Bearer tok_123']}

        with caplog.at_level(logging.INFO, logger='taskpay'):
            log_event(event)

        assert 'esc_1' in caplog.text
        assert 'tok_123' not in caplog.text
        assert 'No-show' not in caplog.text
