"""
Authentication utilities for extracting user info from Cognito tokens.
"""
from typing import Optional


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    try:
        return event['requestContext']['authorizer']['claims']['sub']
    except (KeyError, TypeError):
        return None


def get_bearer_token(event: dict) -> Optional[str]:
    """Pass-through of the caller's bearer token for the remote payment service."""
    headers = event.get('headers') or {}
    value = headers.get('Authorization') or headers.get('authorization')
    if not value or not value.startswith('Bearer '):
        return None
    return value[len('Bearer '):]
