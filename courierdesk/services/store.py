"""
Record store over the Supabase tables the service reads and writes:
``orders``, ``order_proofs``, ``users`` and ``activity_logs``.

Every call is a single PostgREST round-trip. Failures surface as
RecordStoreError; nothing is retried here.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ..core.exceptions import NotFoundError, RecordStoreError
from ..database import get_supabase_admin
from ..models.order import Order, OrderProof
from ..models.user import Courier

logger = logging.getLogger(__name__)

ORDER_SELECT = "*, order_proofs(*), users!orders_assigned_courier_id_fkey(name)"
ONLINE_PAID_METHODS = ("paymob", "paymob.valu")


@dataclass
class OrderQuery:
    courier_ids: Optional[List[str]] = None
    archived: Optional[bool] = False
    statuses: Optional[List[str]] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    updated_from: Optional[datetime] = None
    updated_to: Optional[datetime] = None
    courier_name: Optional[str] = None
    mobile: Optional[str] = None
    payment: Optional[str] = None
    order_number: Optional[str] = None
    customer: Optional[str] = None
    ascending: bool = False


def to_record(values: Dict[str, Any]) -> Dict[str, Any]:
    """Make a patch JSON-safe for PostgREST."""
    record = {}
    for key, value in values.items():
        if isinstance(value, Decimal):
            value = float(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        record[key] = value
    return record


def order_from_row(row: Dict[str, Any]) -> Order:
    joined = row.get("users") or {}
    order = Order.model_validate(row)
    if joined.get("name"):
        order.courier_name = joined["name"]
    return order


class OrderStore:
    def __init__(self, client: Client):
        self.client = client

    def _execute(self, builder, action: str):
        try:
            return builder.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error("Record store failed to %s: %s", action, e)
            raise RecordStoreError(f"Failed to {action}", detail=str(e)) from e

    # Orders

    def list_orders(self, query: OrderQuery) -> List[Order]:
        courier_ids = query.courier_ids
        if query.courier_name:
            matched = {c.id for c in self.find_couriers(query.courier_name)}
            if courier_ids is not None:
                matched &= set(courier_ids)
            courier_ids = sorted(matched)

        q = self.client.table("orders").select(ORDER_SELECT)

        if courier_ids is not None:
            if not courier_ids:
                return []
            q = q.in_("assigned_courier_id", courier_ids)
        if query.archived is not None:
            q = q.eq("archived", query.archived)
        if query.statuses:
            q = q.in_("status", query.statuses)
        if query.created_from:
            q = q.gte("created_at", query.created_from.isoformat())
        if query.created_to:
            q = q.lte("created_at", query.created_to.isoformat())
        if query.updated_from:
            q = q.gte("updated_at", query.updated_from.isoformat())
        if query.updated_to:
            q = q.lte("updated_at", query.updated_to.isoformat())
        if query.mobile:
            q = q.ilike("mobile_number", f"%{query.mobile}%")
        if query.payment:
            q = q.ilike("payment_method", f"%{query.payment}%")
        if query.order_number:
            q = q.ilike("order_id", f"%{query.order_number}%")
        if query.customer:
            q = q.ilike("customer_name", f"%{query.customer}%")

        q = q.order("created_at", desc=not query.ascending)
        result = self._execute(q, "fetch orders")
        return [order_from_row(row) for row in result.data]

    def list_courier_queue(self, courier_id: str, day_start: datetime, day_end: datetime) -> List[Order]:
        """A courier's own orders plus unclaimed online-paid ones for the day."""
        methods = ",".join(ONLINE_PAID_METHODS)
        q = (
            self.client.table("orders")
            .select("*, order_proofs(*)")
            .or_(f"assigned_courier_id.eq.{courier_id},and(payment_method.in.({methods}),status.eq.assigned)")
            .eq("archived", False)
            .gte("created_at", day_start.isoformat())
            .lte("created_at", day_end.isoformat())
            .order("created_at", desc=True)
        )
        result = self._execute(q, "fetch courier orders")
        return [order_from_row(row) for row in result.data]

    def get_order(self, order_id: str) -> Order:
        q = self.client.table("orders").select(ORDER_SELECT).eq("id", order_id).limit(1)
        result = self._execute(q, "fetch order")
        if not result.data:
            raise NotFoundError("Order", order_id)
        return order_from_row(result.data[0])

    def update_order(self, order_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        q = self.client.table("orders").update(to_record(patch)).eq("id", order_id)
        result = self._execute(q, "update order")
        if not result.data:
            raise NotFoundError("Order", order_id)
        return result.data[0]

    def delete_order(self, order_id: str):
        # order_proofs rows go with the order (ON DELETE CASCADE)
        q = self.client.table("orders").delete().eq("id", order_id)
        result = self._execute(q, "delete order")
        if not result.data:
            raise NotFoundError("Order", order_id)

    def insert_proof(self, order_id: str, courier_id: str, image_url: str) -> OrderProof:
        q = self.client.table("order_proofs").insert({
            "order_id": order_id,
            "courier_id": courier_id,
            "image_url": image_url,
        })
        result = self._execute(q, "save proof")
        return OrderProof.model_validate(result.data[0])

    # Users

    def list_couriers(self) -> List[Courier]:
        q = self.client.table("users").select("id, name, email, role").eq("role", "courier").order("name")
        result = self._execute(q, "fetch couriers")
        return [Courier.model_validate(row) for row in result.data]

    def find_couriers(self, name: str) -> List[Courier]:
        q = self.client.table("users").select("id, name, email, role").eq("role", "courier").ilike("name", f"%{name}%")
        result = self._execute(q, "search couriers")
        return [Courier.model_validate(row) for row in result.data]

    def fetch_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        q = self.client.table("users").select("id, name, email, role").eq("id", user_id).limit(1)
        result = self._execute(q, "fetch profile")
        return result.data[0] if result.data else None

    # Audit

    def insert_activity(self, activity: Dict[str, Any]):
        self._execute(self.client.table("activity_logs").insert(to_record(activity)), "log activity")


def get_order_store() -> OrderStore:
    return OrderStore(get_supabase_admin())
