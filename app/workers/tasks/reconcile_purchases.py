"""
Celery beat task: resolve purchases stuck in PENDING.
Covers lost webhooks and token requests that failed after the row was created,
which would otherwise block the user from buying the story again.
"""
import logging
from datetime import datetime, timedelta, timezone

from app.core.celery_app import RECONCILE_TASK, celery_app
from app.core.config import settings
from app.core.errors import AppError
from app.db.session import SessionLocal
from app.services.entitlements.service import EntitlementStore
from app.services.payment_gateway.midtrans import MidtransGateway
from app.services.purchases.service import PurchaseService

logger = logging.getLogger(__name__)


@celery_app.task(
    name=RECONCILE_TASK,
    time_limit=300,
    soft_time_limit=280,
)
def reconcile_stale_purchases() -> dict:
    """Poll the gateway for PENDING purchases older than the threshold and apply their status."""
    db = SessionLocal()
    gateway = None
    try:
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=settings.purchase_reconcile_after_minutes)
        store = EntitlementStore(db)
        stale = store.list_stale_pending(cutoff, limit=settings.purchase_reconcile_batch)
        if not stale:
            return {"ok": True, "checked": 0, "resolved": 0}

        gateway = MidtransGateway()
        service = PurchaseService(store, gateway)
        abandon_after = timedelta(hours=settings.purchase_abandon_hours)
        resolved = 0
        for purchase in stale:
            try:
                if service.reconcile(purchase, abandon_after) is not None:
                    resolved += 1
            except AppError as e:
                logger.warning(
                    "reconcile_purchase_failed",
                    extra={"order_id": purchase.order_id, "error": f"{type(e).__name__}: {e.message}"},
                )

        logger.info("reconcile_stale_purchases_done", extra={"checked": len(stale), "resolved": resolved})
        return {"ok": True, "checked": len(stale), "resolved": resolved}
    except Exception:
        logger.exception("reconcile_stale_purchases_error")
        db.rollback()
        return {"ok": False}
    finally:
        if gateway is not None:
            gateway.close()
        db.close()
