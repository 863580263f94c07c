from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ..core.activity_logger import log_activity
from ..core.localtime import range_bounds
from ..core.permissions import require_admin
from ..core.rate_limiter import default_limiter
from ..models.order import Order, OrderEdit, OrderStatus
from ..models.user import AuthUser, Courier
from ..services.store import OrderQuery, OrderStore, get_order_store
from .orders_service import OrdersService
from .websocket import notify_order_change


class BulkOrders(BaseModel):
    order_ids: List[str] = Field(..., min_length=1)


class BulkAssign(BulkOrders):
    courier_id: str


class NotesUpdate(BaseModel):
    notes: Optional[str] = None


router = APIRouter(prefix="/orders", tags=["Orders"])


def order_query(
    view: str = Query("active", pattern="^(active|archived|all)$"),
    courier: Optional[str] = Query(None, description="Courier name, case-insensitive substring"),
    courier_id: Optional[List[str]] = Query(None),
    status: Optional[List[OrderStatus]] = Query(None),
    mobile: Optional[str] = None,
    payment: Optional[str] = None,
    order_number: Optional[str] = None,
    customer: Optional[str] = None,
    created_from: Optional[date] = None,
    created_to: Optional[date] = None,
    updated_from: Optional[date] = None,
    updated_to: Optional[date] = None,
) -> OrderQuery:
    archived = {"active": False, "archived": True, "all": None}[view]
    created = range_bounds(created_from, created_to)
    updated = range_bounds(updated_from, updated_to)
    return OrderQuery(
        courier_ids=courier_id,
        archived=archived,
        statuses=[s.value for s in status] if status else None,
        created_from=created[0],
        created_to=created[1],
        updated_from=updated[0],
        updated_to=updated[1],
        courier_name=courier,
        mobile=mobile,
        payment=payment,
        order_number=order_number,
        customer=customer,
    )


@router.get("", response_model=List[Order])
async def list_orders(
    request: Request,
    query: OrderQuery = Depends(order_query),
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    """Search orders, newest first"""
    await default_limiter.check_rate_limit(request, current_user.id)
    return await OrdersService.list_orders(store, query)


@router.get("/couriers", response_model=List[Courier])
async def list_couriers(
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    return await OrdersService.list_couriers(store)


@router.get("/export")
async def export_orders(
    fmt: str = Query("csv", alias="format", pattern="^(csv|json)$"),
    query: OrderQuery = Depends(order_query),
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    content = await OrdersService.export_orders(store, query, fmt)
    media_type = "text/csv" if fmt == "csv" else "application/json"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="orders.{fmt}"'},
    )


@router.patch("/{order_id}")
async def edit_order(
    order_id: str,
    edit: OrderEdit,
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    row = await OrdersService.edit_order(store, order_id, edit, notify_order_change)
    await log_activity(
        store, current_user, "edit", "order", order_id,
        edit.model_dump(mode="json", exclude_unset=True), request
    )
    return row


@router.patch("/{order_id}/notes")
async def update_notes(
    order_id: str,
    body: NotesUpdate,
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    row = await OrdersService.update_notes(store, order_id, body.notes, notify_order_change)
    await log_activity(store, current_user, "update_notes", "order", order_id, None, request)
    return row


@router.post("/assign")
async def assign_orders(
    body: BulkAssign,
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    """Assign orders to a courier. Partial failures come back as a 200 batch result."""
    result = await OrdersService.assign_orders(store, body.order_ids, body.courier_id, notify_order_change)
    await log_activity(
        store, current_user, "assign", "orders", body.courier_id, result.summary(), request
    )
    return result.summary()


@router.post("/archive")
async def archive_orders(
    body: BulkOrders,
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    result = await OrdersService.archive_orders(store, body.order_ids, notify_order_change)
    await log_activity(store, current_user, "archive", "orders", None, result.summary(), request)
    return result.summary()


@router.post("/restore")
async def restore_orders(
    body: BulkOrders,
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    result = await OrdersService.restore_orders(store, body.order_ids, notify_order_change)
    await log_activity(store, current_user, "restore", "orders", None, result.summary(), request)
    return result.summary()


@router.post("/delete")
async def delete_orders(
    body: BulkOrders,
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
):
    """Hard delete; proofs go with their order."""
    result = await OrdersService.delete_orders(store, body.order_ids, notify_order_change)
    await log_activity(store, current_user, "delete", "orders", None, result.summary(), request)
    return result.summary()
