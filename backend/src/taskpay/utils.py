"""
Common utility functions for Lambda handlers and the payments core.
"""
import json
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal amounts and timestamps."""

    def default(self, o):
        if isinstance(o, Decimal):
            # Convert to int if it's a whole number, otherwise float
            if o % 1 == 0:
                return int(o)
            return float(o)
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return super().default(o)


def format_response(
    status_code: int,
    body: Any,
    headers: Dict[str, str] = None
) -> Dict[str, Any]:
    """
    Format a standard API Gateway response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include

    Returns:
        API Gateway response dict
    """
    default_headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Credentials': True,
        'Content-Type': 'application/json'
    }

    if headers:
        default_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': default_headers,
        'body': json.dumps(body, cls=DecimalEncoder)
    }


def parse_body(event: dict) -> dict:
    """
    Safely parse JSON body from API Gateway event.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        Parsed body dict or empty dict if invalid
    """
    try:
        body = event.get('body', '{}')
        if isinstance(body, str):
            return json.loads(body)
        return body or {}
    except (json.JSONDecodeError, TypeError):
        return {}


def get_path_param(event: dict, param_name: str) -> str:
    """Extract path parameter from event."""
    try:
        return event['pathParameters'][param_name]
    except (KeyError, TypeError):
        return None


def get_query_param(event: dict, param_name: str, default: str = None) -> str:
    """Extract query string parameter from event."""
    try:
        params = event.get('queryStringParameters') or {}
        return params.get(param_name, default)
    except (KeyError, TypeError, AttributeError):
        return default


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp from the wire.

    A trailing 'Z' is accepted, and naive values are taken as UTC so that
    every timestamp in the core is timezone-aware.

    Raises:
        ValueError: if the value is not a readable timestamp
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a timestamp for the wire; microseconds and offset are kept."""
    if value is None:
        return None
    return value.isoformat()


def _group_indian(digits: str) -> str:
    # Last three digits, then groups of two: 1,00,000
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ','.join(groups) + ',' + tail


def format_currency(amount: Any, currency: str = 'INR') -> str:
    """
    Format an amount for display, en-IN style.

    Whole amounts show no decimals; fractional amounts show two.
    Only INR gets the rupee sign, other currencies are prefixed by code.
    """
    value = Decimal(str(amount)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    sign = '-' if value < 0 else ''
    value = abs(value)
    whole, _, fraction = f"{value:.2f}".partition('.')
    text = _group_indian(whole)
    if fraction != '00':
        text = f"{text}.{fraction}"
    symbol = '₹' if currency == 'INR' else f"{currency} "
    return f"{sign}{symbol}{text}"


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Read a number from the wire as a Decimal.

    Floats go through str() so 0.1 stays 0.1. Returns None for anything
    that is not a finite number (including booleans and empty strings).
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except ArithmeticError:
        return None
    except (TypeError, ValueError):
        return None
    if not number.is_finite():
        return None
    return number
