"""
Primary Action Handler.
GET /dashboard/primary-action
Returns the single action to surface first, the summary card and the
ordered setup nudges for the caller.
"""
from taskpay.auth import get_bearer_token, get_user_sub
from taskpay.dashboard import DashboardService
from taskpay.errors import DataIntegrityError, PaymentApiError
from taskpay.logging import logger, log_event
from taskpay.payment_api import PaymentApiClient
from taskpay.payment_methods import DynamoPaymentMethodStore
from taskpay.utils import format_response

payment_method_store = DynamoPaymentMethodStore()


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return format_response(401, {'error': 'Unauthorized'})

    try:
        service = DashboardService(PaymentApiClient(token=get_bearer_token(event)), payment_method_store)
        return format_response(200, service.build(user_id))

    except DataIntegrityError as e:
        logger.error(f"Snapshot for {user_id} failed integrity checks: {e}")
        return format_response(502, {'error': 'Status snapshot is inconsistent', 'detail': str(e)})
    except PaymentApiError as e:
        logger.error(f"Payment service error building dashboard for {user_id}: {e}")
        return format_response(502, {'error': 'Payment service unavailable'})
    except Exception as e:
        logger.error(f"Error building dashboard for {user_id}: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
