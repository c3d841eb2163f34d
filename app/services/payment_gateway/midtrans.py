"""
Midtrans Snap gateway over httpx sync client.

Token creation: POST {snap}/snap/v1/transactions.
Notifications are checked twice before we trust them: the signature_key
(sha512 of order_id + status_code + gross_amount + server key) and then the
authoritative status from GET {api}/v2/{order_id}/status, which is what the
fields of the returned PaymentNotification come from.
"""
import hashlib
import hmac
import logging
import time

import httpx

from app.core.config import settings
from app.core.errors import GatewayError
from app.services.payment_gateway.base import (
    PaymentGateway,
    PaymentNotification,
    TransactionOrder,
)
from app.utils.metrics import gateway_requests_total, gateway_request_duration_seconds


logger = logging.getLogger(__name__)

ITEM_NAME_MAX_LEN = 50  # Midtrans rejects longer item_details.name


def notification_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}".encode("utf-8")
    return hashlib.sha512(raw).hexdigest()


class MidtransGateway(PaymentGateway):
    """Midtrans Snap + Core status API. Every request has an explicit timeout."""

    def __init__(
        self,
        server_key: str | None = None,
        snap_base: str | None = None,
        api_base: str | None = None,
        notification_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._server_key = server_key if server_key is not None else settings.midtrans_server_key
        self._snap_base = (snap_base or settings.midtrans_snap_base).rstrip("/")
        self._api_base = (api_base or settings.midtrans_api_base).rstrip("/")
        self._notification_url = (
            notification_url if notification_url is not None else settings.payment_notification_url
        )
        self._timeout = timeout if timeout is not None else settings.payment_gateway_timeout
        self._client = client

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def close(self) -> None:
        """Close httpx client."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("midtrans_client_close_failed", extra={"error": str(e)})
            finally:
                self._client = None

    def _record_request(self, method: str, status: str, duration: float) -> None:
        gateway_requests_total.labels(method=method, status=status).inc()
        gateway_request_duration_seconds.labels(method=method).observe(duration)

    def _request(
        self,
        method: str,
        http_method: str,
        url: str,
        json: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        start = time.time()
        try:
            resp = self.client.request(
                http_method,
                url,
                auth=(self._server_key, ""),
                headers={"Accept": "application/json", **(headers or {})},
                json=json,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            self._record_request(method, "transport_error", time.time() - start)
            logger.warning("midtrans_transport_error", extra={"error": f"{method}: {type(e).__name__}"})
            raise GatewayError(detail={"method": method}) from e
        self._record_request(method, str(resp.status_code), time.time() - start)
        return resp

    # ------------------------------------------------------------------
    # Snap
    # ------------------------------------------------------------------

    def create_transaction_token(self, order: TransactionOrder) -> str:
        body = {
            "transaction_details": {"order_id": order.order_id, "gross_amount": order.amount},
            "item_details": [
                {
                    "id": order.item_id,
                    "price": order.amount,
                    "quantity": 1,
                    "name": order.item_description[:ITEM_NAME_MAX_LEN],
                }
            ],
            "customer_details": {"first_name": order.buyer_name, "email": order.buyer_email},
        }
        headers = {}
        if self._notification_url:
            headers["X-Override-Notification"] = self._notification_url

        resp = self._request(
            "snap_create_transaction",
            "POST",
            f"{self._snap_base}/snap/v1/transactions",
            json=body,
            headers=headers,
        )
        data = _json_or_empty(resp)
        token = data.get("token")
        if resp.status_code >= 400 or not token:
            logger.warning(
                "midtrans_token_rejected",
                extra={
                    "order_id": order.order_id,
                    "status_code": resp.status_code,
                    "error": "; ".join(data.get("error_messages") or []) or None,
                },
            )
            raise GatewayError(detail={"order_id": order.order_id, "http_status": resp.status_code})
        return token

    # ------------------------------------------------------------------
    # Notifications & status
    # ------------------------------------------------------------------

    def decode_notification(self, raw_payload: dict) -> PaymentNotification:
        if not isinstance(raw_payload, dict):
            raise GatewayError("Malformed notification.", status_code=400)

        order_id = raw_payload.get("order_id")
        status_code = raw_payload.get("status_code")
        gross_amount = raw_payload.get("gross_amount")
        signature = raw_payload.get("signature_key")
        if not all(isinstance(v, str) and v for v in (order_id, status_code, gross_amount, signature)):
            raise GatewayError("Malformed notification.", status_code=400)

        expected = notification_signature(order_id, status_code, gross_amount, self._server_key)
        if not hmac.compare_digest(expected, signature.lower()):
            logger.warning("midtrans_signature_mismatch", extra={"order_id": order_id})
            raise GatewayError("Invalid notification signature.", status_code=400)

        status = self.get_transaction_status(order_id)
        if status is None:
            logger.warning("midtrans_notification_unknown_transaction", extra={"order_id": order_id})
            raise GatewayError("Unknown transaction.", status_code=400)
        return status

    def get_transaction_status(self, order_id: str) -> PaymentNotification | None:
        resp = self._request(
            "core_transaction_status",
            "GET",
            f"{self._api_base}/v2/{order_id}/status",
        )
        data = _json_or_empty(resp)
        # Midtrans reports "not found" either as HTTP 404 or as status_code "404" in a 200 body
        body_status = str(data.get("status_code", ""))
        if resp.status_code == 404 or body_status == "404":
            return None
        # body "407" is an expired transaction, not an error
        if resp.status_code >= 400 or body_status.startswith("5"):
            logger.warning(
                "midtrans_status_error",
                extra={"order_id": order_id, "status_code": resp.status_code, "error": data.get("status_message")},
            )
            raise GatewayError(detail={"order_id": order_id, "http_status": resp.status_code})

        transaction_status = data.get("transaction_status")
        if not transaction_status or data.get("order_id") != order_id:
            raise GatewayError(detail={"order_id": order_id, "reason": "unexpected status payload"})
        return PaymentNotification(
            order_id=order_id,
            transaction_status=transaction_status,
            fraud_status=data.get("fraud_status"),
        )


def _json_or_empty(resp: httpx.Response) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
