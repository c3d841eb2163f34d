from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InitiatePurchaseIn(BaseModel):
    """Body of POST /api/payment/initiate (camelCase, as the web client sends it)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # FOTOYOU-{storyId}-{13-digit ms} must fit the 50-char Midtrans order_id
    story_id: str = Field(..., alias="storyId", min_length=1, max_length=28)
    story_name: str = Field(..., alias="storyName", min_length=1, max_length=255)
    amount: int = Field(..., gt=0)

    @field_validator("story_id")
    @classmethod
    def validate_story_id(cls, v: str) -> str:
        v = v.strip()
        # Goes into the Midtrans order_id: only [A-Za-z0-9-_~.] are allowed there
        if not v or any(not (c.isalnum() or c in "-_~.") for c in v):
            raise ValueError("storyId contains unsupported characters")
        return v

    @field_validator("story_name")
    @classmethod
    def strip_story_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("storyName must not be blank")
        return v


class InitiatePurchaseOut(BaseModel):
    token: str


class PurchaseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    story_id: str
    amount: int
    status: str
    created_at: datetime
    resolved_at: datetime | None = None


class NotificationAck(BaseModel):
    status: str = "ok"
    order_id: str
    purchase_status: str | None = None
    applied: bool = False
