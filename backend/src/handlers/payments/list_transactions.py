"""
List Transactions Handler.
GET /payments/transactions?status=completed&type=release&from=2026-01-01&to=2026-01-31
    &minAmount=100&maxAmount=5000&page=1&limit=50&tz=Asia/Kolkata

Fetches one page of the caller's history and filters it for display.
Unparseable amount bounds are ignored (strict=true rejects them).
"""
from taskpay.auth import get_bearer_token, get_user_sub
from taskpay.errors import DataIntegrityError, PaymentApiError, ValidationError
from taskpay.filters import DateRange, filter_transactions
from taskpay.logging import logger, log_event
from taskpay.payment_api import PaymentApiClient
from taskpay.transactions import format_transaction_id, transaction_status_label, transaction_type_label
from taskpay.utils import format_response, get_query_param


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return format_response(401, {'error': 'Unauthorized'})

    try:
        page = int(get_query_param(event, 'page', '1'))
        limit = get_query_param(event, 'limit')
        limit = int(limit) if limit else None
    except ValueError:
        return format_response(400, {'error': 'page and limit must be integers'})

    try:
        date_range = DateRange.parse(get_query_param(event, 'from'), get_query_param(event, 'to'))
        history = PaymentApiClient(token=get_bearer_token(event)).get_transactions(user_id, page, limit)

        filtered = filter_transactions(
            history.transactions,
            status=get_query_param(event, 'status'),
            date_range=date_range,
            min_amount=get_query_param(event, 'minAmount'),
            max_amount=get_query_param(event, 'maxAmount'),
            transaction_type=get_query_param(event, 'type'),
            tz=get_query_param(event, 'tz'),
            strict_amounts=get_query_param(event, 'strict') == 'true'
        )

        rows = []
        for txn in filtered:
            row = txn.to_dict()
            row['displayId'] = format_transaction_id(txn.id)
            row['typeLabel'] = transaction_type_label(txn.type)
            row['statusLabel'] = transaction_status_label(txn.status)
            rows.append(row)

        return format_response(200, {
            'transactions': rows,
            'count': len(rows),
            'pagination': {
                'page': history.page,
                'limit': history.limit,
                'total': history.total,
                'pages': history.pages
            }
        })

    except ValidationError as e:
        return format_response(400, {'error': str(e)})
    except DataIntegrityError as e:
        logger.error(f"Transaction history for {user_id} failed integrity checks: {e}")
        return format_response(502, {'error': 'Transaction history is inconsistent', 'detail': str(e)})
    except PaymentApiError as e:
        logger.error(f"Payment service error listing transactions for {user_id}: {e}")
        return format_response(502, {'error': 'Payment service unavailable'})
    except Exception as e:
        logger.error(f"Error listing transactions for {user_id}: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
