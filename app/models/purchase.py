"""
Purchase — one attempt to unlock one story for one user.
order_id is the idempotency key shared with Midtrans; rows are never deleted.
"""
import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, text

from app.db.base import Base


class PurchaseStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({PurchaseStatus.SUCCESS, PurchaseStatus.FAILED})

# PENDING and SUCCESS block a new attempt for the same (user, story); FAILED does not.
_ACTIVE_WHERE = text("status IN ('PENDING', 'SUCCESS')")


class Purchase(Base):
    __tablename__ = "purchases"
    __table_args__ = (
        Index(
            "uq_purchases_active_user_story",
            "user_id",
            "story_id",
            unique=True,
            postgresql_where=_ACTIVE_WHERE,
            sqlite_where=_ACTIVE_WHERE,
        ),
        Index("ix_purchases_user_status", "user_id", "status"),
        CheckConstraint("status IN ('PENDING', 'SUCCESS', 'FAILED')", name="ck_purchases_status"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id = Column(String(50), unique=True, nullable=False)  # Midtrans limit: 50 chars
    user_id = Column(String, nullable=False, index=True)
    story_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)                     # smallest currency unit (IDR)
    status = Column(String, nullable=False, default=PurchaseStatus.PENDING.value)
    gateway_status = Column(String, nullable=True)               # transaction_status that resolved it
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    resolved_at = Column(DateTime(timezone=True), nullable=True)
