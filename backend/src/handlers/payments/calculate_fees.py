"""
Fee Calculation Handler.
GET /payments/fees?amount=1500
"""
from taskpay.errors import ValidationError
from taskpay.fees import calculate_fees
from taskpay.logging import logger, log_event
from taskpay.utils import format_response, get_query_param


def handler(event, context):
    log_event(event)

    amount = get_query_param(event, 'amount')
    if amount is None:
        return format_response(400, {'error': 'Missing amount'})

    try:
        breakdown = calculate_fees(amount)
        return format_response(200, {'fees': breakdown.to_dict()})

    except ValidationError as e:
        return format_response(400, {'error': str(e)})
    except Exception as e:
        logger.error(f"Error calculating fees for amount {amount!r}: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
