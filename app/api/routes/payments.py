"""
Payment routes: purchase initiation (user) and Midtrans notification webhook (gateway).
The webhook has no transport auth; MidtransGateway.decode_notification authenticates the payload.
"""
from typing import Any

from fastapi import APIRouter, Body, Depends

from app.api.deps import get_entitlement_store, get_purchase_service
from app.core.errors import NotFoundError
from app.schemas.purchases import (
    InitiatePurchaseIn,
    InitiatePurchaseOut,
    NotificationAck,
    PurchaseOut,
)
from app.services.auth.jwt import CurrentUser, get_current_user
from app.services.entitlements.service import EntitlementStore
from app.services.purchases.service import PurchaseService


router = APIRouter(prefix="/api/payment", tags=["payment"])


@router.post("/initiate", response_model=InitiatePurchaseOut)
def initiate_payment(
    body: InitiatePurchaseIn,
    user: CurrentUser = Depends(get_current_user),
    service: PurchaseService = Depends(get_purchase_service),
) -> InitiatePurchaseOut:
    token = service.initiate_purchase(
        user_id=user.user_id,
        user_name=user.name,
        user_email=user.email,
        story_id=body.story_id,
        story_name=body.story_name,
        amount=body.amount,
    )
    return InitiatePurchaseOut(token=token)


@router.post("/notification", response_model=NotificationAck)
def payment_notification(
    payload: Any = Body(None),
    service: PurchaseService = Depends(get_purchase_service),
) -> NotificationAck:
    result = service.handle_notification(payload)
    return NotificationAck(
        order_id=result.order_id,
        purchase_status=result.target_status.value if result.target_status else None,
        applied=result.applied,
    )


@router.get("/orders/{order_id}", response_model=PurchaseOut)
def get_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: EntitlementStore = Depends(get_entitlement_store),
) -> PurchaseOut:
    purchase = store.get_by_order_id(order_id)
    # Other users' orders are indistinguishable from missing ones
    if purchase is None or purchase.user_id != user.user_id:
        raise NotFoundError("Order not found.")
    return PurchaseOut.model_validate(purchase)
