"""
Release Payment Handler.
POST /escrow/{escrowId}/release

Fires the release on the payment service, then refetches the escrow and
returns the view derived from the fresh snapshot. A release the snapshot
no longer allows is answered with 409 and the current view; a release the
payment service rejects is answered with 502.
"""
from taskpay.auth import get_bearer_token, get_user_sub
from taskpay.errors import DataIntegrityError, PaymentApiError, StaleSnapshotError, ValidationError
from taskpay.logging import logger, log_event
from taskpay.payment_api import PaymentApiClient
from taskpay.session import EscrowSession
from taskpay.utils import format_response, get_path_param


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return format_response(401, {'error': 'Unauthorized'})

    escrow_id = get_path_param(event, 'escrowId')
    if not escrow_id:
        return format_response(400, {'error': 'Missing escrowId'})

    try:
        session = EscrowSession(PaymentApiClient(token=get_bearer_token(event)), user_id, escrow_id=escrow_id)
        if session.refresh() is None:
            return format_response(404, {'error': 'Escrow not found'})

        result = session.release()
        return build_result_response(session, result)

    except ValidationError as e:
        return format_response(403, {'error': str(e)})
    except DataIntegrityError as e:
        logger.error(f"Escrow {escrow_id} failed integrity checks: {e}")
        return format_response(502, {'error': 'Escrow record is inconsistent', 'detail': str(e)})
    except PaymentApiError as e:
        logger.error(f"Payment service error releasing escrow {escrow_id}: {e}")
        return format_response(502, {'error': 'Payment service unavailable'})
    except Exception as e:
        logger.error(f"Error releasing escrow {escrow_id}: {e}")
        return format_response(500, {'error': 'Internal Server Error'})


def build_result_response(session: EscrowSession, result):
    """Shared by the release and refund handlers."""
    try:
        view = session.view()
    except StaleSnapshotError:
        # Mutation went out but the refetch failed; never guess the new status
        return format_response(202, {
            'result': result.to_dict(),
            'view': None,
            'refetchRequired': True
        })

    status_code = 200 if result.success else (409 if result.stale else 502)
    return format_response(status_code, {
        'result': result.to_dict(),
        'escrow': session.escrow.to_dict() if session.escrow else None,
        'view': view.to_dict() if view else None,
        'refetchRequired': False
    })
