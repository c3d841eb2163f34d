"""
EntitlementStore — durable state of purchase attempts.

Responsibilities:
- create_pending: one PENDING row per (user, story); uniqueness is enforced by the
  partial unique index, not by a read-then-write check
- resolve: conditional UPDATE ... WHERE status = 'PENDING', so redelivered webhooks
  serialize on the row and only the first one transitions
- list_paid_story_ids / has_paid: entitlement lookups for catalog enrichment

Every mutating call is one short transaction; callers never hold it across a network call.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, StorageError
from app.models.purchase import Purchase, PurchaseStatus, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (PurchaseStatus.PENDING.value, PurchaseStatus.SUCCESS.value)


def build_order_id(story_id: str, now: datetime | None = None) -> str:
    """`{prefix}-{story_id}-{epoch ms}`, the format Midtrans sees as order_id."""
    now = now or datetime.now(timezone.utc)
    return f"{settings.order_id_prefix}-{story_id}-{int(now.timestamp() * 1000)}"


class EntitlementStore:
    def __init__(self, db: Session, order_id_factory: Callable[[str], str] = build_order_id):
        self.db = db
        self._order_id_factory = order_id_factory

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_pending(self, user_id: str, story_id: str, amount: int) -> str:
        """Insert a PENDING purchase and return its order_id. ConflictError if one is active."""
        order_id = self._order_id_factory(story_id)
        purchase = Purchase(
            order_id=order_id,
            user_id=user_id,
            story_id=story_id,
            amount=amount,
            status=PurchaseStatus.PENDING.value,
        )
        try:
            self.db.add(purchase)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if self._has_active(user_id, story_id):
                logger.info(
                    "purchase_conflict",
                    extra={"user_id": user_id, "story_id": story_id},
                )
                raise ConflictError()
            logger.error(
                "purchase_insert_integrity_error",
                extra={"user_id": user_id, "story_id": story_id, "order_id": order_id},
            )
            raise StorageError(detail={"order_id": order_id})
        except OperationalError as e:
            self.db.rollback()
            logger.error("purchase_insert_failed", extra={"order_id": order_id, "error": str(e)})
            raise StorageError(detail={"order_id": order_id}) from e

        logger.info(
            "purchase_pending_created",
            extra={"user_id": user_id, "story_id": story_id, "order_id": order_id, "amount": amount},
        )
        return order_id

    def resolve(
        self,
        order_id: str,
        new_status: PurchaseStatus,
        gateway_status: str | None = None,
    ) -> bool:
        """
        PENDING -> new_status. Returns True if this call applied the transition,
        False if the purchase was already terminal (idempotent no-op).
        NotFoundError if no purchase has this order_id.
        """
        new_status = PurchaseStatus(new_status)
        if new_status not in TERMINAL_STATUSES:
            raise ValueError(f"resolve() expects a terminal status, got {new_status.value}")

        try:
            result = self.db.execute(
                update(Purchase)
                .where(
                    Purchase.order_id == order_id,
                    Purchase.status == PurchaseStatus.PENDING.value,
                )
                .values(
                    status=new_status.value,
                    gateway_status=gateway_status,
                    resolved_at=datetime.now(timezone.utc),
                )
            )
            self.db.commit()
        except IntegrityError as e:
            # PENDING -> SUCCESS cannot collide with the active index unless the data is already broken
            self.db.rollback()
            logger.error("purchase_resolve_integrity_error", extra={"order_id": order_id, "error": str(e)})
            raise StorageError(detail={"order_id": order_id}) from e
        except OperationalError as e:
            self.db.rollback()
            logger.error("purchase_resolve_failed", extra={"order_id": order_id, "error": str(e)})
            raise StorageError(detail={"order_id": order_id}) from e

        if result.rowcount > 0:
            logger.info(
                "purchase_resolved",
                extra={"order_id": order_id, "status": new_status.value, "transaction_status": gateway_status},
            )
            return True

        existing = self.get_by_order_id(order_id)
        if existing is None:
            raise NotFoundError("Order not found.", detail={"order_id": order_id})
        logger.info(
            "purchase_already_resolved",
            extra={"order_id": order_id, "status": existing.status},
        )
        return False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_paid_story_ids(self, user_id: str, story_ids: Iterable[str]) -> set[str]:
        """Subset of story_ids the user holds a SUCCESS purchase for. One query per call."""
        ids = {sid for sid in story_ids if sid}
        if not ids:
            return set()
        rows = self.db.execute(
            select(Purchase.story_id).where(
                Purchase.user_id == user_id,
                Purchase.status == PurchaseStatus.SUCCESS.value,
                Purchase.story_id.in_(sorted(ids)),
            )
        )
        return {row[0] for row in rows}

    def has_paid(self, user_id: str, story_id: str) -> bool:
        row = self.db.execute(
            select(Purchase.id)
            .where(
                Purchase.user_id == user_id,
                Purchase.story_id == story_id,
                Purchase.status == PurchaseStatus.SUCCESS.value,
            )
            .limit(1)
        ).first()
        return row is not None

    def get_by_order_id(self, order_id: str) -> Purchase | None:
        return self.db.query(Purchase).filter(Purchase.order_id == order_id).one_or_none()

    def list_stale_pending(self, older_than: datetime, limit: int = 100) -> list[Purchase]:
        """PENDING purchases created before `older_than`, oldest first."""
        return (
            self.db.query(Purchase)
            .filter(
                Purchase.status == PurchaseStatus.PENDING.value,
                Purchase.created_at < older_than,
            )
            .order_by(Purchase.created_at)
            .limit(limit)
            .all()
        )

    def _has_active(self, user_id: str, story_id: str) -> bool:
        row = self.db.execute(
            select(Purchase.id)
            .where(
                Purchase.user_id == user_id,
                Purchase.story_id == story_id,
                Purchase.status.in_(ACTIVE_STATUSES),
            )
            .limit(1)
        ).first()
        return row is not None
