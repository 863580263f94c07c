"""
Order roll-ups for the courier summary, analytics and report screens.

Collection metrics sum ``total_courier_amount``. The period roll-ups and the
analytics revenue figures sum the raw ``total_order_fees`` instead, which is
what the analytics screen has always shown; the two are not reconciled.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

import pytz

from ..models.order import Order, OrderStatus, PaymentMethod, PaymentSubType
from .reconciliation import (
    ZERO,
    counts_as_collected,
    normalize_payment_method,
    payment_attribution,
    total_courier_amount,
)

COD_SUB_TYPES = {s.value for s in PaymentSubType}


@dataclass(frozen=True)
class Metric:
    name: str
    predicate: Callable[[Order], bool]
    amount: Callable[[List[Order]], Decimal]


def sum_courier_amount(orders: List[Order]) -> Decimal:
    return sum((total_courier_amount(o) for o in orders), ZERO)


def sum_delivery_fees(orders: List[Order]) -> Decimal:
    return sum((o.delivery_fee or ZERO for o in orders), ZERO)


def sum_order_fees(orders: List[Order]) -> Decimal:
    return sum((o.total_order_fees for o in orders), ZERO)


def _status_is(status: OrderStatus) -> Callable[[Order], bool]:
    return lambda o: o.status == status


def _attributed_to(key: str) -> Callable[[Order], bool]:
    return lambda o: payment_attribution(o) == key and counts_as_collected(o)


def _build_metrics() -> Dict[str, Metric]:
    metrics = [
        Metric("total_orders", lambda o: True, sum_courier_amount),
        Metric("delivered", _status_is(OrderStatus.DELIVERED), sum_courier_amount),
        Metric("partial", _status_is(OrderStatus.PARTIAL), sum_courier_amount),
        Metric("hand_to_hand", _status_is(OrderStatus.HAND_TO_HAND), sum_courier_amount),
        Metric("return", _status_is(OrderStatus.RETURN), sum_courier_amount),
        Metric("canceled", _status_is(OrderStatus.CANCELED), sum_courier_amount),
        Metric("assigned", _status_is(OrderStatus.ASSIGNED), sum_courier_amount),
        Metric("receiving_part", _status_is(OrderStatus.RECEIVING_PART), sum_courier_amount),
        Metric("paymob_collected", _attributed_to(PaymentMethod.PAYMOB.value), sum_courier_amount),
        Metric("valu_collected", _attributed_to(PaymentMethod.VALU.value), sum_courier_amount),
        Metric("cash_on_hand", _attributed_to(PaymentSubType.ON_HAND.value), sum_courier_amount),
        Metric("instapay", _attributed_to(PaymentSubType.INSTAPAY.value), sum_courier_amount),
        Metric("wallet", _attributed_to(PaymentSubType.WALLET.value), sum_courier_amount),
        Metric("visa_machine", _attributed_to(PaymentSubType.VISA_MACHINE.value), sum_courier_amount),
        Metric(
            "total_cod",
            lambda o: o.payment_sub_type is not None and o.payment_sub_type.value in COD_SUB_TYPES and counts_as_collected(o),
            sum_courier_amount,
        ),
        Metric("total_cash_on_hand", _attributed_to(PaymentSubType.ON_HAND.value), sum_courier_amount),
        Metric("total_paymob_collected", _attributed_to(PaymentMethod.PAYMOB.value), sum_courier_amount),
        Metric("total_valu_collected", _attributed_to(PaymentMethod.VALU.value), sum_courier_amount),
        Metric("delivery_fees_collected", lambda o: (o.delivery_fee or ZERO) > 0, sum_delivery_fees),
        Metric("total_collected", counts_as_collected, sum_courier_amount),
    ]
    return {m.name: m for m in metrics}


METRICS: Dict[str, Metric] = _build_metrics()


def aggregate(orders: List[Order], metric: Metric) -> Tuple[int, Decimal]:
    filtered = [o for o in orders if metric.predicate(o)]
    return len(filtered), metric.amount(filtered)


def summarize(orders: List[Order]) -> Dict[str, dict]:
    summary = {}
    for name, metric in METRICS.items():
        count, amount = aggregate(orders, metric)
        summary[name] = {"count": count, "amount": amount}
    return summary


def metric_orders(orders: List[Order], name: str) -> List[Order]:
    """Orders behind one summary card, for the drill-down list."""
    metric = METRICS[name]
    return [o for o in orders if metric.predicate(o)]


# KPIs

def completion_rate(orders: List[Order]) -> float:
    total = len(orders)
    if total == 0:
        return 0
    delivered = sum(1 for o in orders if o.status == OrderStatus.DELIVERED)
    return delivered / total * 100


def success_rate(orders: List[Order]) -> float:
    return completion_rate(orders)


def average_order_value(orders: List[Order]) -> Decimal:
    if not orders:
        return ZERO
    return sum_order_fees(orders) / len(orders)


# Period roll-ups

def _local(ts: datetime, tz) -> datetime:
    if ts.tzinfo is None:
        ts = pytz.UTC.localize(ts)
    return ts.astimezone(tz)


def _period_key(ts: datetime, period: str) -> str:
    if period == "daily":
        return ts.date().isoformat()
    if period == "weekly":
        return (ts.date() - timedelta(days=ts.weekday())).isoformat()
    if period == "monthly":
        return ts.strftime("%Y-%m")
    raise ValueError(f"Unknown period: {period}")


def rollup(orders: List[Order], period: str, tz_name: str) -> List[dict]:
    """Group by local-calendar created_at; revenue is raw total_order_fees."""
    tz = pytz.timezone(tz_name)
    buckets = defaultdict(lambda: {"orders": 0, "revenue": ZERO, "delivered": 0})

    for order in orders:
        if order.created_at is None:
            continue
        key = _period_key(_local(order.created_at, tz), period)
        bucket = buckets[key]
        bucket["orders"] += 1
        bucket["revenue"] += order.total_order_fees
        if order.status in (OrderStatus.DELIVERED, OrderStatus.PARTIAL):
            bucket["delivered"] += 1

    return [{"period": key, **data} for key, data in sorted(buckets.items())]


def hourly_distribution(orders: List[Order], tz_name: str) -> List[dict]:
    tz = pytz.timezone(tz_name)
    hours = [0] * 24
    for order in orders:
        if order.created_at is not None:
            hours[_local(order.created_at, tz).hour] += 1
    return [{"hour": f"{h}:00", "orders": count} for h, count in enumerate(hours)]


def status_distribution(orders: List[Order]) -> List[dict]:
    total = len(orders)
    distribution = []
    for status in OrderStatus:
        count = sum(1 for o in orders if o.status == status)
        if count:
            distribution.append({
                "status": status.value,
                "count": count,
                "percentage": count / total * 100,
            })
    return distribution


def payment_method_stats(orders: List[Order]) -> List[dict]:
    total = len(orders)
    stats = []
    for method in PaymentMethod:
        matched = [o for o in orders if normalize_payment_method(o.payment_method) == method]
        stats.append({
            "method": method.value,
            "count": len(matched),
            "percentage": len(matched) / total * 100 if total else 0,
            "revenue": sum_order_fees(matched),
        })
    return stats


def top_areas(orders: List[Order], limit: int = 5) -> List[dict]:
    areas = defaultdict(lambda: {"orders": 0, "revenue": ZERO})
    for order in orders:
        area = order.address.split(",")[0].strip()
        areas[area]["orders"] += 1
        areas[area]["revenue"] += order.total_order_fees
    ranked = sorted(areas.items(), key=lambda item: item[1]["orders"], reverse=True)
    return [{"area": area, **data} for area, data in ranked[:limit]]


def courier_report_stats(orders: List[Order]) -> dict:
    delivered = [o for o in orders if o.status == OrderStatus.DELIVERED]
    return {
        "total_orders": len(orders),
        "delivered_orders": len(delivered),
        "total_amount": sum_order_fees(orders),
        "delivered_amount": sum_order_fees(delivered),
        "average_order_value": average_order_value(orders),
        "completion_rate": completion_rate(orders),
    }


def analytics(orders: List[Order], tz_name: str, period: Optional[str] = None) -> dict:
    successful = [o for o in orders if o.status in (OrderStatus.DELIVERED, OrderStatus.PARTIAL)]
    data = {
        "total_orders": len(orders),
        "delivered_orders": sum(1 for o in orders if o.status == OrderStatus.DELIVERED),
        "successful_orders": len(successful),
        "partial_orders": sum(1 for o in orders if o.status == OrderStatus.PARTIAL),
        "canceled_orders": sum(1 for o in orders if o.status == OrderStatus.CANCELED),
        "returned_orders": sum(1 for o in orders if o.status == OrderStatus.RETURN),
        "total_revenue": sum_order_fees(orders),
        "delivered_revenue": sum_order_fees(successful),
        "average_order_value": average_order_value(orders),
        "completion_rate": completion_rate(orders),
        "success_rate": success_rate(orders),
        "status_distribution": status_distribution(orders),
        "payment_method_stats": payment_method_stats(orders),
        "hourly_distribution": hourly_distribution(orders, tz_name),
        "top_areas": top_areas(orders),
    }
    periods = [period] if period else ["daily", "weekly", "monthly"]
    for p in periods:
        data[f"{p}_stats"] = rollup(orders, p, tz_name)
    return data
