import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.batch import BatchResult, run_batch
from ..core.cache import CacheKeys, COURIERS_TTL
from ..core.exceptions import ValidationError
from ..core.provenance import plan_archive, plan_assign, plan_restore
from ..core.status_rules import build_edit_patch
from ..models.order import Order, OrderEdit
from ..models.user import Courier, UserRole
from ..services.export import orders_to_csv, orders_to_json
from ..services.redis import redis_client
from ..services.store import OrderQuery, OrderStore

logger = logging.getLogger(__name__)

# (event, record, old_record)
ChangeCallback = Callable[[str, Optional[Dict[str, Any]], Optional[Dict[str, Any]]], Awaitable[None]]


def order_row(order: Order) -> Dict[str, Any]:
    return order.model_dump(mode="json", exclude={"order_proofs", "courier_name"})


async def _emit(on_change: Optional[ChangeCallback], event: str, record=None, old_record=None):
    if on_change is not None:
        await on_change(event, record, old_record)


class OrdersService:
    """Admin order management: search, edits and bulk lifecycle actions"""

    @staticmethod
    async def list_orders(store: OrderStore, query: OrderQuery) -> List[Order]:
        return store.list_orders(query)

    @staticmethod
    async def list_couriers(store: OrderStore) -> List[Courier]:
        cached = redis_client.get(CacheKeys.COURIERS)
        if isinstance(cached, list):
            return [Courier.model_validate(c) for c in cached]

        couriers = store.list_couriers()
        redis_client.set(CacheKeys.COURIERS, [c.model_dump(mode="json") for c in couriers], COURIERS_TTL)
        return couriers

    @staticmethod
    async def edit_order(
        store: OrderStore,
        order_id: str,
        edit: OrderEdit,
        on_change: Optional[ChangeCallback] = None,
    ) -> Dict[str, Any]:
        order = store.get_order(order_id)
        patch = build_edit_patch(order, edit)
        row = store.update_order(order_id, patch)
        await _emit(on_change, "UPDATE", row, order_row(order))
        return row

    @staticmethod
    async def update_notes(
        store: OrderStore,
        order_id: str,
        notes: Optional[str],
        on_change: Optional[ChangeCallback] = None,
    ) -> Dict[str, Any]:
        order = store.get_order(order_id)
        row = store.update_order(order_id, {"notes": notes})
        await _emit(on_change, "UPDATE", row, order_row(order))
        return row

    @staticmethod
    def _load_orders(store: OrderStore, order_ids: List[str]) -> Dict[str, Order]:
        return {order_id: store.get_order(order_id) for order_id in order_ids}

    @staticmethod
    async def assign_orders(
        store: OrderStore,
        order_ids: List[str],
        courier_id: str,
        on_change: Optional[ChangeCallback] = None,
    ) -> BatchResult:
        """Assign every order to one courier.

        The whole selection is checked before the first write: an unknown
        courier or an archived order rejects the batch untouched.
        """
        profile = store.fetch_profile(courier_id)
        if not profile or profile.get("role") != UserRole.COURIER.value:
            raise ValidationError(f"User {courier_id} is not a courier")

        orders = OrdersService._load_orders(store, order_ids)
        plans = {order_id: plan_assign(order, courier_id) for order_id, order in orders.items()}

        async def apply(order_id: str):
            row = store.update_order(order_id, plans[order_id])
            await _emit(on_change, "UPDATE", row, order_row(orders[order_id]))

        result = await run_batch("assign", order_ids, apply)
        logger.info("Assigned %d/%d orders to %s", len(result.succeeded), len(order_ids), courier_id)
        return result

    @staticmethod
    async def archive_orders(
        store: OrderStore,
        order_ids: List[str],
        on_change: Optional[ChangeCallback] = None,
    ) -> BatchResult:
        async def apply(order_id: str):
            order = store.get_order(order_id)
            row = store.update_order(order_id, plan_archive(order))
            await _emit(on_change, "UPDATE", row, order_row(order))

        result = await run_batch("archive", order_ids, apply)
        logger.info("Archived %d/%d orders", len(result.succeeded), len(order_ids))
        return result

    @staticmethod
    async def restore_orders(
        store: OrderStore,
        order_ids: List[str],
        on_change: Optional[ChangeCallback] = None,
    ) -> BatchResult:
        """Hand archived orders back to their original courier.

        A selection containing a live order is rejected before any write.
        """
        orders = OrdersService._load_orders(store, order_ids)
        plans = {order_id: plan_restore(order) for order_id, order in orders.items()}

        async def apply(order_id: str):
            row = store.update_order(order_id, plans[order_id])
            await _emit(on_change, "UPDATE", row, order_row(orders[order_id]))

        result = await run_batch("restore", order_ids, apply)
        logger.info("Restored %d/%d orders", len(result.succeeded), len(order_ids))
        return result

    @staticmethod
    async def delete_orders(
        store: OrderStore,
        order_ids: List[str],
        on_change: Optional[ChangeCallback] = None,
    ) -> BatchResult:
        async def apply(order_id: str):
            order = store.get_order(order_id)
            store.delete_order(order_id)
            await _emit(on_change, "DELETE", None, order_row(order))

        result = await run_batch("delete", order_ids, apply)
        logger.info("Deleted %d/%d orders", len(result.succeeded), len(order_ids))
        return result

    @staticmethod
    async def export_orders(store: OrderStore, query: OrderQuery, fmt: str = "csv") -> str:
        orders = store.list_orders(query)
        if fmt == "csv":
            return orders_to_csv(orders)
        if fmt == "json":
            return orders_to_json(orders)
        raise ValidationError(f"Unsupported export format: {fmt}")
