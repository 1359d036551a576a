"""
Request Refund Handler.
POST /escrow/{escrowId}/refund
Body: { "reason": "Task cancelled by poster" }
"""
from handlers.escrow.release_payment import build_result_response
from taskpay.auth import get_bearer_token, get_user_sub
from taskpay.errors import DataIntegrityError, PaymentApiError, ValidationError
from taskpay.logging import logger, log_event
from taskpay.payment_api import PaymentApiClient
from taskpay.session import EscrowSession
from taskpay.utils import format_response, get_path_param, parse_body


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return format_response(401, {'error': 'Unauthorized'})

    escrow_id = get_path_param(event, 'escrowId')
    if not escrow_id:
        return format_response(400, {'error': 'Missing escrowId'})

    reason = parse_body(event).get('reason')
    if not reason or not str(reason).strip():
        return format_response(400, {'error': 'Missing reason'})

    try:
        session = EscrowSession(PaymentApiClient(token=get_bearer_token(event)), user_id, escrow_id=escrow_id)
        if session.refresh() is None:
            return format_response(404, {'error': 'Escrow not found'})

        # Only the two parties may open a refund
        session.role()

        result = session.refund(str(reason))
        return build_result_response(session, result)

    except ValidationError as e:
        return format_response(403, {'error': str(e)})
    except DataIntegrityError as e:
        logger.error(f"Escrow {escrow_id} failed integrity checks: {e}")
        return format_response(502, {'error': 'Escrow record is inconsistent', 'detail': str(e)})
    except PaymentApiError as e:
        logger.error(f"Payment service error refunding escrow {escrow_id}: {e}")
        return format_response(502, {'error': 'Payment service unavailable'})
    except Exception as e:
        logger.error(f"Error refunding escrow {escrow_id}: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
