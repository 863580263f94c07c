from ..services.redis import redis_client


class CacheKeys:
    """Centralized cache key management"""

    # User/Auth
    USER_SESSION = "session:{user_id}"
    USER_PROFILE = "profile:{user_id}"

    # Couriers
    COURIERS = "couriers:all"

    # Rate limiting
    RATE_LIMIT = "rate_limit:{identifier}:{endpoint}"


PROFILE_TTL = 300
COURIERS_TTL = 300


def invalidate_user_cache(user_id: str):
    """Invalidate user-related caches"""
    redis_client.delete(CacheKeys.USER_PROFILE.format(user_id=user_id))
    redis_client.delete_pattern(f"{CacheKeys.USER_SESSION.format(user_id=user_id)}:*")


def invalidate_courier_cache():
    redis_client.delete(CacheKeys.COURIERS)
