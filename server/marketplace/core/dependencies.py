"""FastAPI dependencies for database, authentication, and request plumbing."""

from typing import AsyncGenerator, Optional

import jwt
from fastapi import Depends, Header, Request
from jwt import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, settings
from .database import get_async_session
from .exceptions import AuthenticationError, AuthorizationError, ValidationError


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides async database sessions.

    Yields:
        AsyncSession: Database session
    """
    async for session in get_async_session(request):
        yield session


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return getattr(request.app.state, "settings", settings)


def get_payment_gateway(request: Request):
    """Payment gateway built at startup."""
    return request.app.state.payment_gateway


def get_side_effects(request: Request):
    """Side-effect orchestrator built at startup."""
    return request.app.state.side_effects


def _decode_bearer(authorization: str, secret: str) -> dict:
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")
    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    try:
        # exp is verified by PyJWT when present
        payload = jwt.decode(token, secret, algorithms=["HS256"])
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {str(e)}")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError(detail="Invalid token payload")

    return {
        "user_id": str(user_id),
        "username": payload.get("username"),
        "email": payload.get("email"),
        "roles": payload.get("roles", []),
    }


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    app_settings: Settings = Depends(get_settings),
) -> dict:
    """
    Authentication dependency that validates Bearer tokens.

    Returns:
        dict: User information from validated token

    Raises:
        AuthenticationError: If token is invalid or missing
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")
    return _decode_bearer(authorization, app_settings.bearer_token_secret)


async def get_optional_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    app_settings: Settings = Depends(get_settings),
) -> Optional[dict]:
    """
    Like get_current_user, but guests without a token get None.

    A token that is present but invalid is still rejected.
    """
    if not authorization:
        return None
    return _decode_bearer(authorization, app_settings.bearer_token_secret)


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """Authorization dependency for back-office endpoints."""
    if "admin" not in (user.get("roles") or []):
        raise AuthorizationError(required_permissions=["admin"])
    return user


async def get_idempotency_key(
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key")
) -> Optional[str]:
    """
    Extract and validate the idempotency key forwarded to the payment gateway.

    Raises:
        ValidationError: If idempotency key format is invalid
    """
    if not idempotency_key:
        return None

    if len(idempotency_key) > 255:
        raise ValidationError(
            detail="Idempotency key must be between 1 and 255 characters",
            errors=[{"path": "Idempotency-Key", "message": "too long"}],
        )

    return idempotency_key


RequiredAuth = Depends(get_current_user)
OptionalAuth = Depends(get_optional_user)
AdminAuth = Depends(require_admin)
DatabaseSession = Depends(get_db)
IdempotencyKey = Depends(get_idempotency_key)
