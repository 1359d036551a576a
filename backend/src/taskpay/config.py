"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the payments layer.
"""
import os
from decimal import Decimal


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # DynamoDB Tables
    PAYMENT_METHODS_TABLE = os.environ.get('PAYMENT_METHODS_TABLE', '')

    # Remote payment/task service
    PAYMENT_API_BASE_URL = os.environ.get('PAYMENT_API_BASE_URL', 'http://localhost:4000')
    PAYMENT_API_TIMEOUT = float(os.environ.get('PAYMENT_API_TIMEOUT', '10'))

    # Money
    PLATFORM_FEE_RATE = Decimal(os.environ.get('PLATFORM_FEE_RATE', '0.10'))  # 10% of gross
    CURRENCY = os.environ.get('CURRENCY', 'INR')

    # Display
    VIEWER_TIMEZONE = os.environ.get('VIEWER_TIMEZONE', 'Asia/Kolkata')
    TRANSACTIONS_PAGE_LIMIT = int(os.environ.get('TRANSACTIONS_PAGE_LIMIT', '100'))

    # Integrity policy
    REQUIRE_REFUND_REASON = os.environ.get('REQUIRE_REFUND_REASON', 'false').lower() == 'true'


config = Config()
