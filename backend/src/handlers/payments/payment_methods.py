"""
Payment Methods Handler.
GET    /payments/methods
PUT    /payments/methods   Body: { "paymentMethods": [...], "payoutMethods": [...] }
DELETE /payments/methods
"""
from taskpay.auth import get_user_sub
from taskpay.errors import ValidationError
from taskpay.logging import logger, log_event
from taskpay.payment_methods import DynamoPaymentMethodStore, SavedPaymentMethods
from taskpay.utils import format_response, parse_body

store = DynamoPaymentMethodStore()


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return format_response(401, {'error': 'Unauthorized'})

    method = event.get('httpMethod', 'GET')

    try:
        if method == 'GET':
            return format_response(200, store.load(user_id).to_dict())

        if method == 'PUT':
            methods = SavedPaymentMethods.from_dict(parse_body(event))
            store.save(user_id, methods)
            return format_response(200, methods.to_dict())

        if method == 'DELETE':
            store.clear(user_id)
            return format_response(200, {'message': 'Payment methods cleared'})

        return format_response(405, {'error': f'Method {method} not allowed'})

    except ValidationError as e:
        return format_response(400, {'error': str(e)})
    except Exception as e:
        logger.error(f"Error handling payment methods for {user_id}: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
