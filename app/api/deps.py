"""
FastAPI dependencies wiring services to their collaborators.
HTTP adapters and the Redis client are built once per process; the DB session is per request.
Tests replace any of these through app.dependency_overrides.
"""
from functools import lru_cache

import redis
from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.services.catalog.base import StoryCatalog
from app.services.catalog.dicoding import DicodingCatalogClient
from app.services.enrichment.service import StoryEnrichmentService
from app.services.entitlements.service import EntitlementStore
from app.services.payment_gateway.base import PaymentGateway
from app.services.payment_gateway.midtrans import MidtransGateway
from app.services.purchases.service import PurchaseService


@lru_cache
def get_catalog() -> StoryCatalog:
    return DicodingCatalogClient()


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    return MidtransGateway()


@lru_cache
def get_redis() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


def get_entitlement_store(db: Session = Depends(get_db)) -> EntitlementStore:
    return EntitlementStore(db)


def get_purchase_service(
    store: EntitlementStore = Depends(get_entitlement_store),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    catalog: StoryCatalog = Depends(get_catalog),
    redis_client: redis.Redis = Depends(get_redis),
) -> PurchaseService:
    return PurchaseService(store, gateway, catalog=catalog, redis_client=redis_client)


def get_enrichment_service(
    store: EntitlementStore = Depends(get_entitlement_store),
    catalog: StoryCatalog = Depends(get_catalog),
) -> StoryEnrichmentService:
    return StoryEnrichmentService(catalog, store)
