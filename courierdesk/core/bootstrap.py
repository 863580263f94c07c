"""
Session bootstrap: from an authenticated Supabase user to an AuthUser.

    unauthenticated -> authenticating -> profile_loading -> ready
                                              |  (timeout, retried)
                                              +-> degraded

A profile that cannot be loaded does not log the user out. After the retries
run out, or on any other profile error, the user is kept as authenticated
but profile-less (no role, name taken from the email).
"""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..config import settings
from ..models.user import AuthUser

logger = logging.getLogger(__name__)

ProfileFetcher = Callable[[str], Awaitable[Optional[dict]]]


class BootstrapState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    PROFILE_LOADING = "profile_loading"
    READY = "ready"
    DEGRADED = "degraded"


class ProfileBootstrap:
    def __init__(
        self,
        fetch_profile: ProfileFetcher,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.fetch_profile = fetch_profile
        self.timeout = settings.PROFILE_FETCH_TIMEOUT if timeout is None else timeout
        self.retries = settings.PROFILE_FETCH_RETRIES if retries is None else retries
        self.retry_delay = settings.PROFILE_RETRY_DELAY if retry_delay is None else retry_delay
        self.state = BootstrapState.UNAUTHENTICATED
        self.attempts = 0

    def begin(self):
        self.state = BootstrapState.AUTHENTICATING

    @staticmethod
    def _degraded_user(user_id: str, email: Optional[str]) -> AuthUser:
        name = email.split("@")[0] if email else None
        return AuthUser(id=user_id, email=email, name=name, role=None, degraded=True)

    async def run(self, user_id: str, email: Optional[str] = None) -> AuthUser:
        self.state = BootstrapState.PROFILE_LOADING
        remaining = self.retries

        while True:
            self.attempts += 1
            try:
                profile = await asyncio.wait_for(self.fetch_profile(user_id), timeout=self.timeout)
            except asyncio.TimeoutError:
                if remaining > 0:
                    remaining -= 1
                    logger.warning("Profile fetch for %s timed out, retrying", user_id)
                    await asyncio.sleep(self.retry_delay)
                    continue
                logger.error("Profile fetch for %s timed out after %d attempts", user_id, self.attempts)
                self.state = BootstrapState.DEGRADED
                return self._degraded_user(user_id, email)
            except Exception as e:
                logger.error("Profile fetch for %s failed: %s", user_id, e)
                self.state = BootstrapState.DEGRADED
                return self._degraded_user(user_id, email)

            if not profile:
                logger.info("No profile row for %s, continuing without one", user_id)
                self.state = BootstrapState.DEGRADED
                return self._degraded_user(user_id, email)

            self.state = BootstrapState.READY
            return AuthUser(
                id=user_id,
                email=profile.get("email") or email,
                name=profile.get("name"),
                role=profile.get("role"),
            )
