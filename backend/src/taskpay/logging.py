"""
Logging for the payments Lambdas.

Everything logs through the 'taskpay' logger. Incoming API Gateway events
are logged without anything that can carry the caller's bearer token or
payment details.
"""
import json
import logging

from taskpay.config import config

# API Gateway event keys that carry tokens, card/UPI details or refund text
REDACTED_EVENT_KEYS = ('body', 'headers', 'multiValueHeaders')

logger = logging.getLogger('taskpay')
logger.setLevel(config.LOG_LEVEL)

if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)


def safe_event(event: dict) -> dict:
    """Copy of a Lambda event with the redacted keys dropped."""
    return {k: v for k, v in event.items() if k not in REDACTED_EVENT_KEYS}


def log_event(event: dict) -> None:
    """Log the route, caller and parameters of an incoming event."""
    try:
        logger.info(f"Lambda event: {json.dumps(safe_event(event), default=str)}")
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Could not log event: {e}")
