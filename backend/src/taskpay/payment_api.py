"""
Client for the remote payment/task service.

The service owns escrows, transactions and the current-status snapshot.
Reads return parsed records (None when a record is absent); mutating calls
return a MutationResult and are never retried here.
"""
import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from taskpay.config import config
from taskpay.errors import PaymentApiError
from taskpay.escrow import Escrow
from taskpay.fees import FeeBreakdown
from taskpay.logging import logger
from taskpay.snapshot import UserCurrentStatus
from taskpay.transactions import TransactionPage
from taskpay.utils import DecimalEncoder


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a release/refund/payment call as reported by the service."""
    success: bool
    error: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    stale: bool = False  # refused locally: the snapshot no longer allowed it

    def to_dict(self) -> Dict[str, Any]:
        return {'success': self.success, 'error': self.error, 'stale': self.stale}


class PaymentApiClient:
    """Thin wrapper over the payment service's /api/v1 endpoints."""

    def __init__(self, base_url: str = None, token: str = None, timeout: float = None):
        self.base_url = (base_url or config.PAYMENT_API_BASE_URL).rstrip('/')
        self.token = token
        self.timeout = timeout or config.PAYMENT_API_TIMEOUT

    def _url(self, path: str, params: Dict[str, Any] = None) -> str:
        url = f"{self.base_url}/api/v1/{path.lstrip('/')}"
        if params:
            query = {k: v for k, v in params.items() if v is not None}
            if query:
                url = f"{url}?{urllib.parse.urlencode(query)}"
        return url

    def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] = None,
        body: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        """
        Perform one call and return the decoded JSON object.

        Raises:
            PaymentApiError: non-2xx status, transport failure or a body
                that is not a JSON object
        """
        url = self._url(path, params)
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f"Bearer {self.token}"
        data = json.dumps(body, cls=DecimalEncoder).encode('utf-8') if body is not None else None
        request = urllib.request.Request(url, data=data, headers=headers, method=method)

        logger.info(f"{method} {url}")
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                raw = response.read().decode('utf-8')
        except urllib.error.HTTPError as e:
            error_body = e.read().decode('utf-8', errors='replace') if e.fp else ''
            try:
                error_data = json.loads(error_body) if error_body else {}
            except json.JSONDecodeError:
                error_data = {'error': error_body}
            message = error_data.get('message') or error_data.get('error') or f"HTTP {e.code}"
            logger.warning(f"Payment API error {e.code} for {method} {path}: {message}")
            raise PaymentApiError(message, status_code=e.code, data=error_data) from e
        except urllib.error.URLError as e:
            logger.error(f"Payment API unreachable for {method} {path}: {e.reason}")
            raise PaymentApiError(f"Payment service unreachable: {e.reason}") from e

        try:
            payload = json.loads(raw, parse_float=Decimal) if raw else {}
        except json.JSONDecodeError as e:
            raise PaymentApiError(f"Unreadable response from {path}") from e
        if not isinstance(payload, dict):
            raise PaymentApiError(f"Unexpected response shape from {path}")
        return payload

    @staticmethod
    def _unwrap(payload: Dict[str, Any]) -> Dict[str, Any]:
        if payload.get('success') is False:
            raise PaymentApiError(payload.get('error') or 'Payment service reported failure', data=payload)
        data = payload.get('data')
        return data if isinstance(data, dict) else payload

    def _get_escrow(self, path: str) -> Optional[Escrow]:
        try:
            payload = self._unwrap(self._request('GET', path))
        except PaymentApiError as e:
            if e.status_code == 404:
                return None
            raise
        record = payload.get('escrow')
        if not record:
            return None
        return Escrow.from_dict(record)

    # Reads

    def get_escrow(self, escrow_id: str) -> Optional[Escrow]:
        """GET payment/escrow/status/{escrowId}; None when there is no such escrow."""
        return self._get_escrow(f"payment/escrow/status/{urllib.parse.quote(escrow_id)}")

    def get_escrow_by_task(self, task_id: str) -> Optional[Escrow]:
        """GET payment/escrow/task/{taskId}; None when the task has no escrow yet."""
        return self._get_escrow(f"payment/escrow/task/{urllib.parse.quote(task_id)}")

    def get_current_status(self, user_id: str) -> UserCurrentStatus:
        """GET dashboard/status/{userId}: pending payments, offers, tasks, chats, nudges, stats."""
        payload = self._unwrap(self._request('GET', f"dashboard/status/{urllib.parse.quote(user_id)}"))
        return UserCurrentStatus.from_dict(payload)

    def get_transactions(self, user_id: str, page: int = 1, limit: int = None) -> TransactionPage:
        """GET payment/transactions/user/{userId}?page=&limit="""
        payload = self._unwrap(self._request(
            'GET',
            f"payment/transactions/user/{urllib.parse.quote(user_id)}",
            params={'page': page, 'limit': limit or config.TRANSACTIONS_PAGE_LIMIT}
        ))
        return TransactionPage.from_dict(payload)

    def calculate_fees(self, amount: Any) -> FeeBreakdown:
        """GET payment/fees/calculate?amount= (same contract as fees.calculate_fees)."""
        payload = self._unwrap(self._request('GET', 'payment/fees/calculate', params={'amount': amount}))
        return FeeBreakdown.from_dict(payload.get('fees', payload))

    # Mutations

    def _mutate(self, path: str, body: Dict[str, Any]) -> MutationResult:
        try:
            payload = self._request('POST', path, body=body)
        except PaymentApiError as e:
            return MutationResult(success=False, error=str(e), data=e.data)
        success = bool(payload.get('success', True))
        return MutationResult(success=success, error=payload.get('error'), data=payload)

    def create_escrow(self, task_id: str, application_id: str, performer_uid: str, amount: Any) -> MutationResult:
        return self._mutate('payment/escrow/create', {
            'taskId': task_id,
            'applicationId': application_id,
            'performerUid': performer_uid,
            'amount': amount,
        })

    def verify_payment(self, escrow_id: str, payment_id: str, order_id: str, signature: str) -> MutationResult:
        return self._mutate('payment/verify-payment', {
            'escrowId': escrow_id,
            'razorpay_payment_id': payment_id,
            'razorpay_order_id': order_id,
            'razorpay_signature': signature,
        })

    def release_payment(self, escrow_id: str, task_id: str) -> MutationResult:
        return self._mutate('payment/escrow/release', {'escrowId': escrow_id, 'taskId': task_id})

    def request_refund(self, escrow_id: str, task_id: str, reason: str) -> MutationResult:
        return self._mutate('payment/escrow/refund', {'escrowId': escrow_id, 'taskId': task_id, 'reason': reason})
