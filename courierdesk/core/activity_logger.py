import logging
from typing import Optional

from fastapi import Request

from ..models.user import AuthUser
from ..services.store import OrderStore
from .exceptions import RecordStoreError

logger = logging.getLogger(__name__)


async def log_activity(
    store: OrderStore,
    current_user: AuthUser,
    action: str,
    resource: str,
    resource_id: Optional[str] = None,
    details: Optional[dict] = None,
    request: Optional[Request] = None,
):
    """Log user activity to the activity_logs table.

    A failed audit write is logged and dropped; the mutation it describes has
    already been applied.
    """
    activity = {
        "user_id": current_user.id,
        "user_email": current_user.email,
        "user_role": current_user.role.value if current_user.role else None,
        "action": action,
        "resource": resource,
        "resource_id": resource_id,
        "details": details,
        "ip_address": request.client.host if request and request.client else None,
    }

    try:
        store.insert_activity(activity)
    except RecordStoreError as e:
        logger.error("Activity log failed for %s %s: %s", action, resource_id, e)
