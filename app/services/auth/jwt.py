"""
Bearer token verification for end users.
Tokens are issued by the identity service (HS256, claims userId/name/email); this API only verifies them.
"""
import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import settings

logger = logging.getLogger("auth")

bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    user_id: str
    name: str
    email: str


def create_access_token(user_id: str, name: str, email: str, expires_delta: timedelta | None = None) -> str:
    """Issue a token in the identity service's format (used by scripts and tests)."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=24))
    claims = {"userId": user_id, "name": name, "email": email, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> CurrentUser | None:
    """Decode and validate a bearer token. None if the signature, expiry or claims are invalid."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.info("auth_token_invalid", extra={"error": type(e).__name__})
        return None
    user_id = payload.get("userId")
    if user_id is None:
        return None
    return CurrentUser(
        user_id=str(user_id),
        name=payload.get("name") or "",
        email=payload.get("email") or "",
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    """401 when no bearer token is sent, 403 when it does not verify."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = verify_token(credentials.credentials)
    if user is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")
    return user
