import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pytz

from ..core.exceptions import PermissionDeniedError
from ..core.localtime import day_bounds
from ..core.reconciliation import preview_total_amount
from ..core.status_rules import build_status_patch, can_courier_edit, form_defaults, was_edited_by_courier
from ..models.order import CourierStatusUpdate, Order, OrderProof, OrderStatus
from ..services.storage import CloudinaryStorage, compress_image, validate_image
from ..services.store import OrderStore
from .orders_service import ChangeCallback, order_row

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=pytz.UTC)


def queue_sort_key(order: Order):
    """Untouched orders first (still-assigned ones on top), courier-edited last."""
    if was_edited_by_courier(order):
        group = 2
    elif order.status == OrderStatus.ASSIGNED:
        group = 0
    else:
        group = 1
    return group


def sort_queue(orders: List[Order]) -> List[Order]:
    newest_first = sorted(orders, key=lambda o: o.created_at or _EPOCH, reverse=True)
    # sorted() is stable, so newest-first survives inside each group
    return sorted(newest_first, key=queue_sort_key)


class CourierService:
    """Courier day view and status updates"""

    @staticmethod
    def _editable_order(store: OrderStore, courier_id: str, order_id: str) -> Order:
        order = store.get_order(order_id)
        if not can_courier_edit(order, courier_id):
            raise PermissionDeniedError(f"Order {order.order_id} cannot be edited by this courier")
        return order

    @staticmethod
    async def get_queue(store: OrderStore, courier_id: str, day: Optional[date] = None) -> List[Order]:
        start, end = day_bounds(day)
        return sort_queue(store.list_courier_queue(courier_id, start, end))

    @staticmethod
    async def get_form(store: OrderStore, courier_id: str, order_id: str) -> Dict[str, Any]:
        order = CourierService._editable_order(store, courier_id, order_id)
        return form_defaults(order)

    @staticmethod
    async def preview(store: OrderStore, courier_id: str, order_id: str, update: CourierStatusUpdate) -> Dict[str, Any]:
        """Amount shown in the form before saving.

        This can differ from the amount computed after the save: a
        hand_to_hand update with a fee shows only the fee here, but counts the
        full order value plus the fee once persisted.
        """
        order = CourierService._editable_order(store, courier_id, order_id)
        return {
            "order_id": order.id,
            "status": update.status,
            "total_amount": preview_total_amount(
                order,
                update.delivery_fee,
                update.partial_paid_amount,
                update.status,
            ),
        }

    @staticmethod
    async def update_status(
        store: OrderStore,
        courier_id: str,
        order_id: str,
        update: CourierStatusUpdate,
        on_change: Optional[ChangeCallback] = None,
    ) -> Dict[str, Any]:
        order = CourierService._editable_order(store, courier_id, order_id)
        patch = build_status_patch(order, update)
        row = store.update_order(order_id, patch)
        logger.info("Courier %s set order %s to %s", courier_id, order.order_id, update.status.value)
        if on_change is not None:
            await on_change("UPDATE", row, order_row(order))
        return row

    @staticmethod
    async def upload_proof(
        store: OrderStore,
        storage: CloudinaryStorage,
        courier_id: str,
        order_id: str,
        content_type: str,
        data: bytes,
        on_change: Optional[ChangeCallback] = None,
    ) -> OrderProof:
        """Compress, upload, then record the proof; nothing is written if the upload fails."""
        validate_image(content_type, len(data))
        order = CourierService._editable_order(store, courier_id, order_id)

        image = compress_image(data)
        url = await storage.upload(image, filename=f"{order.order_id}-{int(datetime.now(pytz.UTC).timestamp())}.jpg")
        proof = store.insert_proof(order_id, courier_id, url)

        if on_change is not None:
            # the order row itself is unchanged; views refetch its proof list
            await on_change("UPDATE", order_row(order), None)
        return proof
