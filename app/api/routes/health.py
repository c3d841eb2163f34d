import logging

from fastapi import APIRouter, Depends, Response
import redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_redis
from app.db.session import get_db


router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(
    response: Response,
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
) -> dict:
    """Readiness probe - returns 503 if the database or Redis is unavailable."""
    try:
        db.execute(text("SELECT 1"))
        redis_client.ping()
        return {"status": "ready"}
    except (SQLAlchemyError, redis.RedisError) as e:
        logger.warning("readiness_failed", extra={"error": type(e).__name__})
        response.status_code = 503
        return {"status": "not_ready", "error": type(e).__name__}
