from typing import Optional, Dict
from datetime import datetime

import pytz

from ..services.redis import redis_client
from ..config import settings
from ..models.user import AuthUser


class SessionManager:
    """Manage user sessions in Redis"""

    @staticmethod
    def _ttl() -> int:
        return settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @staticmethod
    def _session_key(user_id: str, token: str) -> str:
        return f"session:{user_id}:{token[:8]}"

    @staticmethod
    def create_session(user: AuthUser, token: str) -> str:
        session_key = SessionManager._session_key(user.id, token)

        session_data = {
            "user_id": user.id,
            "email": user.email or "",
            "role": user.role.value if user.role else "",
            "created_at": datetime.now(pytz.UTC).isoformat(),
        }

        redis_client.hset(session_key, session_data)
        redis_client.expire(session_key, SessionManager._ttl())
        redis_client.set(f"active_session:{token}", user.id, SessionManager._ttl())

        return session_key

    @staticmethod
    def get_session(user_id: str, token: str) -> Optional[Dict]:
        session_key = SessionManager._session_key(user_id, token)
        session = redis_client.hgetall(session_key)

        if session and "user_id" in session:
            redis_client.hset(session_key, {"last_activity": datetime.now(pytz.UTC).isoformat()})
            return session

        return None

    @staticmethod
    def validate_token(token: str) -> Optional[str]:
        """Quick token validation without DB call"""
        user_id = redis_client.get(f"active_session:{token}")
        if user_id:
            # Refresh expiry
            redis_client.expire(f"active_session:{token}", SessionManager._ttl())
        return user_id

    @staticmethod
    def destroy_session(user_id: str, token: Optional[str] = None):
        """Destroy user session"""
        if token:
            redis_client.delete(
                SessionManager._session_key(user_id, token),
                f"active_session:{token}",
            )
        else:
            redis_client.delete_pattern(f"session:{user_id}:*")


session_manager = SessionManager()
