from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile

from ..core.activity_logger import log_activity
from ..core.permissions import require_courier
from ..core.rate_limiter import upload_limiter
from ..models.order import CourierStatusUpdate, Order, OrderProof
from ..models.user import AuthUser
from ..services.storage import CloudinaryStorage, get_proof_storage
from ..services.store import OrderStore, get_order_store
from .courier_service import CourierService
from .websocket import notify_order_change

router = APIRouter(prefix="/courier", tags=["Courier"])


@router.get("/orders", response_model=List[Order])
async def get_my_orders(
    day: Optional[date] = None,
    current_user: AuthUser = Depends(require_courier),
    store: OrderStore = Depends(get_order_store),
):
    """Orders for a local day (today by default), untouched ones first"""
    return await CourierService.get_queue(store, current_user.id, day)


@router.get("/orders/{order_id}/form")
async def get_update_form(
    order_id: str,
    current_user: AuthUser = Depends(require_courier),
    store: OrderStore = Depends(get_order_store),
):
    return await CourierService.get_form(store, current_user.id, order_id)


@router.post("/orders/{order_id}/preview")
async def preview_update(
    order_id: str,
    update: CourierStatusUpdate,
    current_user: AuthUser = Depends(require_courier),
    store: OrderStore = Depends(get_order_store),
):
    return await CourierService.preview(store, current_user.id, order_id, update)


@router.patch("/orders/{order_id}/status")
async def update_status(
    order_id: str,
    update: CourierStatusUpdate,
    request: Request,
    current_user: AuthUser = Depends(require_courier),
    store: OrderStore = Depends(get_order_store),
):
    row = await CourierService.update_status(store, current_user.id, order_id, update, notify_order_change)
    await log_activity(
        store, current_user, "update_status", "order", order_id,
        update.model_dump(mode="json", exclude_none=True), request
    )
    return row


@router.post("/orders/{order_id}/proofs", response_model=OrderProof)
async def upload_proof(
    order_id: str,
    request: Request,
    file: UploadFile = File(...),
    current_user: AuthUser = Depends(require_courier),
    store: OrderStore = Depends(get_order_store),
    storage: CloudinaryStorage = Depends(get_proof_storage),
):
    await upload_limiter.check_rate_limit(request, current_user.id)

    data = await file.read()
    proof = await CourierService.upload_proof(
        store, storage, current_user.id, order_id,
        file.content_type, data, notify_order_change
    )
    await log_activity(store, current_user, "upload_proof", "order", order_id, {"url": proof.image_url}, request)
    return proof
