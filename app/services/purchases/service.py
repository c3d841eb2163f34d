"""
PurchaseService — lifecycle of a story unlock purchase.

Responsibilities:
- initiate_purchase: PENDING row first, then the Snap token (no token without a row)
- handle_notification: authenticated webhook -> terminal status, idempotent on order_id
- reconcile: the same status mapping applied to PENDING rows the webhook never resolved

State machine (one purchase):
    PENDING --capture|settlement + fraud accept--> SUCCESS
    PENDING --cancel|deny|expire-----------------> FAILED
    anything else leaves the purchase PENDING
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import redis

from app.core.config import settings
from app.core.errors import (
    ConflictError,
    GatewayError,
    NotFoundError,
    RateLimitError,
    StorageError,
    ValidationError,
)
from app.models.purchase import Purchase, PurchaseStatus
from app.services.catalog.base import StoryCatalog
from app.services.entitlements.service import EntitlementStore
from app.services.payment_gateway.base import PaymentGateway, TransactionOrder
from app.utils.metrics import (
    payment_notifications_total,
    purchases_initiated_total,
    purchases_reconciled_total,
)

logger = logging.getLogger(__name__)

SUCCESS_TRANSACTION_STATUSES = frozenset({"capture", "settlement"})
FAILED_TRANSACTION_STATUSES = frozenset({"cancel", "deny", "expire"})
ITEM_DESCRIPTION_PREFIX = "Unlock Watermark: "


def map_transaction_status(transaction_status: str | None, fraud_status: str | None) -> PurchaseStatus | None:
    """Gateway status -> terminal PurchaseStatus, or None while the payment is still open."""
    if transaction_status in SUCCESS_TRANSACTION_STATUSES:
        # capture with fraud "challenge" waits for a manual decision on the gateway side
        return PurchaseStatus.SUCCESS if fraud_status == "accept" else None
    if transaction_status in FAILED_TRANSACTION_STATUSES:
        return PurchaseStatus.FAILED
    return None


@dataclass(frozen=True)
class NotificationResult:
    order_id: str
    target_status: PurchaseStatus | None
    applied: bool


class PurchaseService:
    def __init__(
        self,
        store: EntitlementStore,
        gateway: PaymentGateway,
        catalog: StoryCatalog | None = None,
        redis_client: redis.Redis | None = None,
    ):
        self.store = store
        self.gateway = gateway
        self.catalog = catalog
        self._redis = redis_client or redis.Redis.from_url(settings.redis_url, decode_responses=True)

    # ------------------------------------------------------------------
    # Initiate
    # ------------------------------------------------------------------

    def initiate_purchase(
        self,
        user_id: str,
        user_name: str,
        user_email: str,
        story_id: str,
        story_name: str,
        amount: int,
    ) -> str:
        """Create the PENDING purchase and return a Snap transaction token."""
        if not story_id or not story_name or amount is None or amount <= 0:
            purchases_initiated_total.labels(result="invalid").inc()
            raise ValidationError("Please provide storyId, storyName and a positive amount.")

        if not self._check_rate_limit(user_id):
            purchases_initiated_total.labels(result="rate_limited").inc()
            raise RateLimitError()

        self._verify_price(story_id, amount)

        try:
            order_id = self.store.create_pending(user_id, story_id, amount)
        except ConflictError:
            purchases_initiated_total.labels(result="conflict").inc()
            raise
        except StorageError:
            purchases_initiated_total.labels(result="storage_error").inc()
            raise

        order = TransactionOrder(
            order_id=order_id,
            amount=amount,
            item_id=story_id,
            item_description=f"{ITEM_DESCRIPTION_PREFIX}{story_name}",
            buyer_name=user_name,
            buyer_email=user_email,
        )
        try:
            token = self.gateway.create_transaction_token(order)
        except GatewayError as e:
            # The PENDING row stays; reconcile_stale_purchases resolves it later
            purchases_initiated_total.labels(result="gateway_error").inc()
            logger.warning(
                "purchase_token_failed",
                extra={"user_id": user_id, "story_id": story_id, "order_id": order_id},
            )
            raise GatewayError("Failed to initiate payment.", detail=e.detail, status_code=500) from e

        purchases_initiated_total.labels(result="token").inc()
        logger.info(
            "purchase_initiated",
            extra={"user_id": user_id, "story_id": story_id, "order_id": order_id, "amount": amount},
        )
        return token

    def _verify_price(self, story_id: str, amount: int) -> None:
        """Reject a client amount that contradicts the catalog price, when the catalog has one."""
        if not settings.purchase_verify_price or self.catalog is None:
            return
        try:
            story = self.catalog.get_story(story_id)
        except GatewayError as e:
            # Catalog outage is reported like any other failed initiation
            purchases_initiated_total.labels(result="gateway_error").inc()
            logger.warning(
                "purchase_price_check_failed",
                extra={"story_id": story_id, "error": e.message},
            )
            raise GatewayError("Failed to initiate payment.", detail=e.detail, status_code=500) from e
        price = story.get("price")
        if price is None:
            logger.info("purchase_price_unverified", extra={"story_id": story_id, "amount": amount})
            return
        try:
            expected = int(price)
        except (TypeError, ValueError):
            logger.warning("purchase_price_unparseable", extra={"story_id": story_id, "error": repr(price)})
            return
        if expected != amount:
            purchases_initiated_total.labels(result="invalid").inc()
            logger.warning(
                "purchase_price_mismatch",
                extra={"story_id": story_id, "amount": amount, "error": f"expected {expected}"},
            )
            raise ValidationError("Amount does not match the story price.")

    def _check_rate_limit(self, user_id: str) -> bool:
        """At most purchase_rate_limit attempts per window, shared by all API replicas via Redis."""
        key = f"purchase_rate:{user_id}"
        try:
            current = self._redis.incr(key)
            if current == 1:
                self._redis.expire(key, settings.purchase_rate_window_seconds)
            return current <= settings.purchase_rate_limit
        except redis.RedisError as e:
            logger.warning("purchase_rate_limit_redis_error", extra={"error": str(e)})
            return True  # fail open: Redis outage must not block purchases

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    def handle_notification(self, raw_payload: dict) -> NotificationResult:
        """
        Apply a gateway notification. GatewayError (bad/unauthenticated payload) and
        NotFoundError (unknown order) propagate without touching storage; everything
        else is acknowledged so the gateway stops redelivering.
        """
        try:
            notification = self.gateway.decode_notification(raw_payload)
        except GatewayError:
            payment_notifications_total.labels(outcome="rejected").inc()
            raise

        target = map_transaction_status(notification.transaction_status, notification.fraud_status)
        log_extra = {
            "order_id": notification.order_id,
            "transaction_status": notification.transaction_status,
            "fraud_status": notification.fraud_status,
        }

        if target is None:
            if self.store.get_by_order_id(notification.order_id) is None:
                payment_notifications_total.labels(outcome="unknown_order").inc()
                raise NotFoundError("Order not found.", detail={"order_id": notification.order_id})
            payment_notifications_total.labels(outcome="pending").inc()
            logger.info("payment_notification_pending", extra=log_extra)
            return NotificationResult(order_id=notification.order_id, target_status=None, applied=False)

        try:
            applied = self.store.resolve(notification.order_id, target, notification.transaction_status)
        except NotFoundError:
            payment_notifications_total.labels(outcome="unknown_order").inc()
            logger.warning("payment_notification_unknown_order", extra=log_extra)
            raise

        payment_notifications_total.labels(outcome="applied" if applied else "duplicate").inc()
        logger.info("payment_notification_processed", extra={**log_extra, "status": target.value, "applied": applied})
        return NotificationResult(order_id=notification.order_id, target_status=target, applied=applied)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self, purchase: Purchase, abandon_after: timedelta) -> PurchaseStatus | None:
        """
        Ask the gateway for the status of a PENDING purchase and apply it.
        A purchase the gateway never saw (buyer closed Snap before choosing a payment method)
        is FAILED once it is older than abandon_after. Returns the status applied, if any.
        """
        notification = self.gateway.get_transaction_status(purchase.order_id)
        if notification is None:
            created_at = purchase.created_at
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=timezone.utc)
            if datetime.now(timezone.utc) - created_at < abandon_after:
                return None
            target, gateway_status = PurchaseStatus.FAILED, "abandoned"
        else:
            target = map_transaction_status(notification.transaction_status, notification.fraud_status)
            gateway_status = notification.transaction_status
            if target is None:
                return None

        if not self.store.resolve(purchase.order_id, target, gateway_status):
            return None
        purchases_reconciled_total.labels(status=target.value).inc()
        logger.info(
            "purchase_reconciled",
            extra={"order_id": purchase.order_id, "status": target.value, "transaction_status": gateway_status},
        )
        return target
