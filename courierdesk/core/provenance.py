"""
Courier provenance across assign / archive / restore.

``original_courier_id`` is written at most once, when it is still null. It is
what restore uses to hand an archived order back to its courier, so none of
these plans ever clear or overwrite it.
"""
from datetime import datetime
from typing import Any, Dict, Optional

import pytz

from ..models.order import Order, OrderStatus
from .exceptions import ValidationError


def plan_assign(order: Order, courier_id: str) -> Dict[str, Any]:
    if order.archived:
        raise ValidationError(f"Order {order.order_id} is archived; restore it before assigning")

    patch: Dict[str, Any] = {
        "assigned_courier_id": courier_id,
        "status": OrderStatus.ASSIGNED,
    }
    if order.original_courier_id is None:
        # First assignment establishes provenance
        patch["original_courier_id"] = order.assigned_courier_id or courier_id
    return patch


def plan_archive(order: Order, now: Optional[datetime] = None) -> Dict[str, Any]:
    patch: Dict[str, Any] = {
        "archived": True,
        "archived_at": now or datetime.now(pytz.UTC),
        "assigned_courier_id": None,
    }
    if order.original_courier_id is None and order.assigned_courier_id is not None:
        patch["original_courier_id"] = order.assigned_courier_id
    return patch


def plan_restore(order: Order) -> Dict[str, Any]:
    if not order.archived:
        raise ValidationError(f"Order {order.order_id} is not archived")

    return {
        "archived": False,
        "archived_at": None,
        "assigned_courier_id": order.original_courier_id,
    }
