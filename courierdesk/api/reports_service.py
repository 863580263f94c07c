from datetime import date
from typing import Any, Dict, List, Optional

from ..config import settings
from ..core.aggregation import METRICS, analytics, courier_report_stats, metric_orders, summarize
from ..core.exceptions import ValidationError
from ..core.localtime import day_bounds, local_today, range_bounds
from ..models.user import Courier
from ..services.export import to_json
from ..services.store import OrderQuery, OrderStore
from .orders_service import OrdersService

PERIODS = ("daily", "weekly", "monthly")


class ReportsService:
    """Courier day summaries, analytics and per-courier reports"""

    @staticmethod
    async def courier_summary(
        store: OrderStore,
        courier_id: str,
        day: Optional[date] = None,
        metric: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Metric table for one courier, over orders touched on a local day.

        With ``metric`` set, the order list is narrowed to the orders behind
        that card.
        """
        if metric is not None and metric not in METRICS:
            raise ValidationError(f"Unknown metric: {metric}")
        day = day or local_today()
        start, end = day_bounds(day)
        orders = store.list_orders(OrderQuery(
            courier_ids=[courier_id],
            archived=None,
            updated_from=start,
            updated_to=end,
        ))
        return {
            "courier_id": courier_id,
            "date": day.isoformat(),
            "metrics": summarize(orders),
            "orders": metric_orders(orders, metric) if metric else orders,
        }

    @staticmethod
    async def admin_summary(
        store: OrderStore,
        courier_id: Optional[str],
        day: Optional[date] = None,
        metric: Optional[str] = None,
    ) -> Dict[str, Any]:
        couriers: List[Courier] = await OrdersService.list_couriers(store)
        data: Dict[str, Any] = {"couriers": couriers, "summary": None}
        if courier_id:
            data["summary"] = await ReportsService.courier_summary(store, courier_id, day, metric)
        return data

    @staticmethod
    async def analytics(
        store: OrderStore,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        courier_id: Optional[str] = None,
        period: Optional[str] = None,
    ) -> Dict[str, Any]:
        if period is not None and period not in PERIODS:
            raise ValidationError(f"Unknown period: {period}")
        if date_from and date_to and date_from > date_to:
            raise ValidationError("date_from must not be after date_to")

        created_from, created_to = range_bounds(date_from, date_to)
        orders = store.list_orders(OrderQuery(
            courier_ids=[courier_id] if courier_id else None,
            archived=None,
            created_from=created_from,
            created_to=created_to,
        ))
        data = analytics(orders, settings.LOCAL_TIMEZONE, period)
        data["date_from"] = date_from.isoformat() if date_from else None
        data["date_to"] = date_to.isoformat() if date_to else None
        return data

    @staticmethod
    async def courier_report(
        store: OrderStore,
        courier_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Dict[str, Any]:
        created_from, created_to = range_bounds(date_from, date_to)
        orders = store.list_orders(OrderQuery(
            courier_ids=[courier_id],
            archived=None,
            created_from=created_from,
            created_to=created_to,
        ))
        return {"courier_id": courier_id, **courier_report_stats(orders)}

    @staticmethod
    async def export_analytics(store: OrderStore, **filters) -> str:
        return to_json(await ReportsService.analytics(store, **filters))
