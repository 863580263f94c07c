import logging

from fastapi import APIRouter, HTTPException, status, Depends, Request
from pydantic import BaseModel, EmailStr

from ..core.activity_logger import log_activity
from ..core.cache import invalidate_user_cache
from ..core.permissions import bootstrap_user, get_current_user, security
from ..core.rate_limiter import auth_limiter
from ..core.session import session_manager
from ..database import get_supabase
from ..models.user import AuthUser
from ..services.store import OrderStore, get_order_store

logger = logging.getLogger(__name__)


class UserLogin(BaseModel):
    email: EmailStr
    password: str

    class Config:
        json_schema_extra = {
            "example": {
                "email": "courier@example.com",
                "password": "SecurePassword123!"
            }
        }


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: AuthUser


router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    store: OrderStore = Depends(get_order_store),
):
    await auth_limiter.check_rate_limit(request, credentials.email)

    try:
        response = get_supabase().auth.sign_in_with_password({
            "email": credentials.email,
            "password": credentials.password
        })
    except Exception as e:
        logger.info("Login failed for %s: %s", credentials.email, e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        ) from e

    user = await bootstrap_user(response.user.id, response.user.email, store)
    if not user.degraded:
        session_manager.create_session(user, response.session.access_token)

    await log_activity(store, user, "login", "auth", user.id, {"degraded": user.degraded}, request)

    return TokenResponse(
        access_token=response.session.access_token,
        refresh_token=response.session.refresh_token,
        user=user,
    )


@router.post("/logout")
async def logout(
    current_user: AuthUser = Depends(get_current_user),
    token=Depends(security),
):
    session_manager.destroy_session(current_user.id, token.credentials)
    invalidate_user_cache(current_user.id)

    try:
        get_supabase().auth.sign_out()
    except Exception as e:
        logger.warning("Supabase sign out failed for %s: %s", current_user.id, e)

    return {"message": "Logged out successfully"}


@router.get("/me", response_model=AuthUser)
async def me(current_user: AuthUser = Depends(get_current_user)):
    """Current user; ``degraded`` is true when the profile could not be loaded."""
    return current_user
