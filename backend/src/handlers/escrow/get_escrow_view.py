"""
Escrow View Handler.
GET /tasks/{taskId}/escrow
Returns the escrow badge, message and allowed actions for the caller's side.
"""
from taskpay.auth import get_bearer_token, get_user_sub
from taskpay.errors import DataIntegrityError, PaymentApiError, ValidationError
from taskpay.escrow_view import resolve_escrow_view, viewer_role_for
from taskpay.logging import logger, log_event
from taskpay.payment_api import PaymentApiClient
from taskpay.utils import format_response, get_path_param


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return format_response(401, {'error': 'Unauthorized'})

    task_id = get_path_param(event, 'taskId')
    if not task_id:
        return format_response(400, {'error': 'Missing taskId'})

    try:
        api = PaymentApiClient(token=get_bearer_token(event))
        escrow = api.get_escrow_by_task(task_id)

        # No escrow yet is normal: the task has no accepted paid offer
        if escrow is None:
            return format_response(200, {'taskId': task_id, 'escrow': None, 'view': None})

        try:
            role = viewer_role_for(escrow, user_id)
        except ValidationError:
            return format_response(403, {'error': 'Not a party to this escrow'})

        view = resolve_escrow_view(escrow, role)
        return format_response(200, {
            'taskId': task_id,
            'escrow': escrow.to_dict(),
            'view': view.to_dict()
        })

    except DataIntegrityError as e:
        logger.error(f"Escrow data for task {task_id} failed integrity checks: {e}")
        return format_response(502, {'error': 'Escrow record is inconsistent', 'detail': str(e)})
    except PaymentApiError as e:
        logger.error(f"Payment service error for task {task_id}: {e}")
        return format_response(502, {'error': 'Payment service unavailable'})
    except Exception as e:
        logger.error(f"Error resolving escrow view for task {task_id}: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
