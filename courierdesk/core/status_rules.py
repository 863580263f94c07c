"""
Status gating for order updates.

Any status may follow any other; there is no transition graph. What the
status controls is which collection fields survive a save.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

import pytz

from ..models.order import (
    CollectedBy,
    CourierStatusUpdate,
    Order,
    OrderEdit,
    OrderStatus,
    PaymentMethod,
)
from .exceptions import ValidationError
from .reconciliation import ZERO, is_paid_online, normalize_payment_method

COLLECTION_STATUSES = {
    OrderStatus.PARTIAL,
    OrderStatus.CANCELED,
    OrderStatus.DELIVERED,
    OrderStatus.HAND_TO_HAND,
    OrderStatus.RETURN,
    OrderStatus.RECEIVING_PART,
}
TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELED, OrderStatus.RETURN}

CLEARED_COLLECTION = {"collected_by": None, "payment_sub_type": None}


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def was_edited_by_courier(order: Order) -> bool:
    # Courier saves stamp updated_at; import leaves it equal to created_at
    return order.updated_at is not None and order.updated_at != order.created_at


def can_courier_edit(order: Order, courier_id: str) -> bool:
    if order.archived:
        return False
    return order.assigned_courier_id == courier_id or order.status == OrderStatus.ASSIGNED


def _forces_zero_fees(status: OrderStatus, fee: Decimal, partial: Decimal) -> bool:
    no_fees = fee == 0 and partial == 0
    if status == OrderStatus.RETURN:
        return True
    return no_fees and status in (OrderStatus.RECEIVING_PART, OrderStatus.CANCELED)


def _online_collector(method: PaymentMethod) -> CollectedBy:
    return CollectedBy.VALU if method == PaymentMethod.VALU else CollectedBy.PAYMOB


def _collection_fields(order: Order, update: CourierStatusUpdate, fee: Decimal, partial: Decimal) -> Dict[str, Any]:
    status = update.status
    has_fees = fee > 0 or partial > 0

    if status not in COLLECTION_STATUSES:
        return dict(CLEARED_COLLECTION)

    if _forces_zero_fees(status, fee, partial):
        return dict(CLEARED_COLLECTION)

    if status == OrderStatus.HAND_TO_HAND and not has_fees:
        return dict(CLEARED_COLLECTION)

    if is_paid_online(order):
        if not has_fees:
            return {
                "collected_by": _online_collector(normalize_payment_method(order.payment_method)),
                "payment_sub_type": None,
            }
        if not update.collected_by:
            raise ValidationError("Choose who collected the additional fees")
        if update.collected_by == CollectedBy.COURIER and not update.payment_sub_type:
            raise ValidationError("Choose the courier payment sub-type for the additional fees")
        return {
            "collected_by": update.collected_by,
            "payment_sub_type": update.payment_sub_type if update.collected_by == CollectedBy.COURIER else None,
        }

    if status == OrderStatus.CANCELED and fee > 0:
        if not update.payment_sub_type:
            raise ValidationError("Choose the payment sub-type when adding a delivery fee to a canceled order")
        return {"collected_by": CollectedBy.COURIER, "payment_sub_type": update.payment_sub_type}

    # Unpaid order: picking a sub-type means the courier collected
    if update.payment_sub_type:
        return {"collected_by": CollectedBy.COURIER, "payment_sub_type": update.payment_sub_type}
    return dict(CLEARED_COLLECTION)


def build_status_patch(order: Order, update: CourierStatusUpdate, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Turn a courier status update into the row patch to persist.

    Raises ValidationError when the collection choice is incomplete; nothing
    has been written at that point.
    """
    now = now or datetime.now(pytz.UTC)
    fee = update.delivery_fee or ZERO
    partial = update.partial_paid_amount or ZERO

    if _forces_zero_fees(update.status, fee, partial):
        fee = ZERO
        partial = ZERO

    patch: Dict[str, Any] = {
        "status": update.status,
        "updated_at": now,
        "delivery_fee": fee,
        "partial_paid_amount": partial,
    }
    patch.update(_collection_fields(order, update, fee, partial))

    if update.status == OrderStatus.ASSIGNED:
        patch["partial_paid_amount"] = None

    if update.internal_comment and update.internal_comment.strip():
        patch["internal_comment"] = update.internal_comment.strip()

    return patch


def build_edit_patch(order: Order, edit: OrderEdit, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Admin field edits. Moving an order back to assigned drops collection data."""
    patch: Dict[str, Any] = edit.model_dump(exclude_unset=True)
    if not patch:
        raise ValidationError("No changes to save")

    if patch.get("status") == OrderStatus.ASSIGNED:
        patch.update(CLEARED_COLLECTION)
        patch["partial_paid_amount"] = None

    patch["updated_at"] = now or datetime.now(pytz.UTC)
    return patch


def form_defaults(order: Order) -> Dict[str, Any]:
    """Initial values for the courier update form."""
    fee = order.delivery_fee
    partial = order.partial_paid_amount
    has_fees = bool(fee) or bool(partial)
    collected_by = order.collected_by
    sub_type = order.payment_sub_type

    if order.status == OrderStatus.RETURN or (order.status == OrderStatus.RECEIVING_PART and not has_fees):
        fee = ZERO
        partial = ZERO
        collected_by = None
        sub_type = None
    elif is_paid_online(order) and not has_fees:
        collected_by = _online_collector(normalize_payment_method(order.payment_method))
        sub_type = None
    elif not is_paid_online(order) and order.status != OrderStatus.CANCELED:
        collected_by = CollectedBy.COURIER
    elif order.status == OrderStatus.CANCELED and has_fees:
        collected_by = CollectedBy.COURIER
    elif order.status == OrderStatus.CANCELED:
        collected_by = None
        sub_type = None

    return {
        "status": order.status,
        "delivery_fee": fee,
        "partial_paid_amount": partial,
        "collected_by": collected_by,
        "payment_sub_type": sub_type,
        "internal_comment": order.internal_comment or "",
    }
