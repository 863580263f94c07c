import asyncio
import logging
from typing import Optional

from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer

from ..database import get_supabase
from ..models.user import AuthUser, UserRole
from ..services.redis import redis_client
from ..services.store import OrderStore, get_order_store
from .bootstrap import ProfileBootstrap
from .cache import CacheKeys, PROFILE_TTL
from .session import session_manager

logger = logging.getLogger(__name__)

security = HTTPBearer()


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials"
    )


async def bootstrap_user(user_id: str, email: Optional[str], store: OrderStore) -> AuthUser:
    """Load the profile for an authenticated user, falling back to a degraded user."""

    async def fetch_profile(uid: str):
        return await asyncio.to_thread(store.fetch_profile, uid)

    bootstrap = ProfileBootstrap(fetch_profile)
    bootstrap.begin()
    user = await bootstrap.run(user_id, email)

    # Degraded users are not cached so the next request tries the profile again
    if not user.degraded:
        redis_client.set(CacheKeys.USER_PROFILE.format(user_id=user_id), user.model_dump(mode="json"), PROFILE_TTL)
    return user


async def authenticate_token(token: str, store: OrderStore) -> AuthUser:
    user_id = session_manager.validate_token(token)

    if user_id:
        cached = redis_client.get(CacheKeys.USER_PROFILE.format(user_id=user_id))
        if isinstance(cached, dict) and "id" in cached:
            return AuthUser.model_validate(cached)

    try:
        response = get_supabase().auth.get_user(token)
    except Exception as e:
        logger.info("Token rejected by auth provider: %s", e)
        raise _unauthorized() from e
    if not response or not response.user:
        raise _unauthorized()

    user = await bootstrap_user(response.user.id, response.user.email, store)
    if not user.degraded:
        session_manager.create_session(user, token)
    return user


async def get_current_user(
    token=Depends(security),
    store: OrderStore = Depends(get_order_store),
) -> AuthUser:
    return await authenticate_token(token.credentials, store)


def _check_role(current_user: AuthUser, allowed_roles) -> AuthUser:
    if current_user.role not in allowed_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions"
        )
    return current_user


async def require_admin(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
    return _check_role(current_user, [UserRole.ADMIN])


async def require_courier(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
    return _check_role(current_user, [UserRole.COURIER])


async def require_user(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """Any user with a loaded profile."""
    return _check_role(current_user, [UserRole.ADMIN, UserRole.COURIER])
