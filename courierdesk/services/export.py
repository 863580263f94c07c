import csv
import io
import json
from decimal import Decimal
from typing import Any, Callable, List, Tuple

from ..models.order import Order


def _value(value: Any) -> Any:
    if value is None:
        return ""
    if hasattr(value, "value"):
        return value.value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


# Fixed column set shared by the CSV and JSON exports
EXPORT_COLUMNS: List[Tuple[str, Callable[[Order], Any]]] = [
    ("Order ID", lambda o: o.order_id),
    ("Customer", lambda o: o.customer_name),
    ("Address", lambda o: o.address),
    ("Mobile", lambda o: o.mobile_number),
    ("Total Fees", lambda o: o.total_order_fees),
    ("Delivery Fee", lambda o: o.delivery_fee),
    ("Payment Method", lambda o: o.payment_method),
    ("Payment Sub-Type", lambda o: o.payment_sub_type),
    ("Collected By", lambda o: o.collected_by),
    ("Status", lambda o: o.status),
    ("Partial Amount", lambda o: o.partial_paid_amount),
    ("Internal Comment", lambda o: o.internal_comment),
    ("Notes", lambda o: o.notes),
    ("Proof Count", lambda o: len(o.order_proofs)),
    ("Archived", lambda o: "yes" if o.archived else "no"),
    ("Archived At", lambda o: o.archived_at),
    ("Created At", lambda o: o.created_at),
    ("Updated At", lambda o: o.updated_at),
]


def export_rows(orders: List[Order]) -> List[dict]:
    return [{name: _value(getter(order)) for name, getter in EXPORT_COLUMNS} for order in orders]


def orders_to_csv(orders: List[Order]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=[name for name, _ in EXPORT_COLUMNS])
    writer.writeheader()
    writer.writerows(export_rows(orders))
    return output.getvalue()


def _json_default(value: Any):
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def orders_to_json(orders: List[Order]) -> str:
    return json.dumps(export_rows(orders), default=_json_default, ensure_ascii=False)


def to_json(data: Any) -> str:
    """Serialize report data that carries Decimals."""
    return json.dumps(data, default=_json_default, ensure_ascii=False, indent=2)
