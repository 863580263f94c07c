from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from ..core.permissions import require_admin, require_user
from ..models.user import AuthUser, UserRole
from ..services.store import OrderStore, get_order_store
from .reports_service import ReportsService

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/summary")
async def get_summary(
    day: Optional[date] = None,
    courier_id: Optional[str] = None,
    metric: Optional[str] = None,
    current_user: AuthUser = Depends(require_user),
    store: OrderStore = Depends(get_order_store),
):
    """Courier day summary.

    Couriers always get their own; admins get the courier list and, with
    ``courier_id``, that courier's summary.
    """
    if current_user.role == UserRole.COURIER:
        return await ReportsService.courier_summary(store, current_user.id, day, metric)
    return await ReportsService.admin_summary(store, courier_id, day, metric)


@router.get("/analytics")
async def get_analytics(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    courier_id: Optional[str] = None,
    period: Optional[str] = Query(None, pattern="^(daily|weekly|monthly)$"),
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    return await ReportsService.analytics(store, date_from, date_to, courier_id, period)


@router.get("/analytics/export")
async def export_analytics(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    courier_id: Optional[str] = None,
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    content = await ReportsService.export_analytics(
        store, date_from=date_from, date_to=date_to, courier_id=courier_id
    )
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="analytics.json"'},
    )


@router.get("/couriers/{courier_id}")
async def get_courier_report(
    courier_id: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    return await ReportsService.courier_report(store, courier_id, date_from, date_to)
