"""
Order financial reconciliation.

Two formulas live here and are kept apart on purpose:

* ``total_courier_amount`` is computed from persisted order values and feeds
  every summary, metric and report.
* ``preview_total_amount`` is what the courier sees in the update form before
  saving. It stays at zero until fees are typed in, so for canceled, return,
  hand_to_hand and receiving_part orders it can disagree with the persisted
  figure.
"""
from decimal import Decimal
from typing import Optional

from ..models.order import Order, OrderStatus, PaymentMethod

ZERO = Decimal("0")

FULL_VALUE_STATUSES = {OrderStatus.DELIVERED, OrderStatus.PARTIAL, OrderStatus.HAND_TO_HAND}
PREVIEW_FEE_STATUSES = {
    OrderStatus.CANCELED,
    OrderStatus.RETURN,
    OrderStatus.HAND_TO_HAND,
    OrderStatus.RECEIVING_PART,
}


def _amount(value: Optional[Decimal]) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(value)


def normalize_payment_method(method: Optional[str]) -> PaymentMethod:
    m = (method or "").lower().strip()
    if "valu" in m:
        return PaymentMethod.VALU
    if "paymob" in m:
        return PaymentMethod.PAYMOB
    if m == "cash":
        return PaymentMethod.CASH
    return PaymentMethod.OTHER


def is_paid_online(order: Order) -> bool:
    return normalize_payment_method(order.payment_method) in (PaymentMethod.PAYMOB, PaymentMethod.VALU)


def payment_attribution(order: Order) -> str:
    """Sub-type if set, else who collected, else the normalized import method."""
    if order.payment_sub_type:
        return order.payment_sub_type.value
    if order.collected_by:
        return order.collected_by.value
    return normalize_payment_method(order.payment_method).value


def courier_order_amount(order: Order) -> Decimal:
    """Order value the courier is deemed to have collected, fees excluded."""
    partial = _amount(order.partial_paid_amount)
    if partial > 0:
        return partial
    if order.status in FULL_VALUE_STATUSES:
        return _amount(order.total_order_fees)
    return ZERO


def total_courier_amount(order: Order) -> Decimal:
    """Order amount plus the courier's own delivery fee."""
    if order.status in (OrderStatus.CANCELED, OrderStatus.RETURN):
        order_amount = ZERO
    else:
        order_amount = courier_order_amount(order)
    return order_amount + max(_amount(order.delivery_fee), ZERO)


def counts_as_collected(order: Order) -> bool:
    return total_courier_amount(order) > 0


def preview_total_amount(
    order: Order,
    delivery_fee: Decimal,
    partial_amount: Decimal,
    status: OrderStatus,
) -> Decimal:
    delivery_fee = _amount(delivery_fee)
    partial_amount = _amount(partial_amount)

    if status in PREVIEW_FEE_STATUSES:
        if delivery_fee == 0 and partial_amount == 0:
            return ZERO
        return delivery_fee + partial_amount

    if status == OrderStatus.PARTIAL:
        return partial_amount if partial_amount > 0 else ZERO

    return _amount(order.total_order_fees)
