"""
Realtime order changes.

Clients never receive row data over the socket. Any insert, update or delete
that touches their current view produces a ``refetch`` command and the client
re-runs its own query. Each command carries a sequence number that grows per
connection, so a client can drop a fetch response older than the newest
command it has seen.

Changes arrive from two places: the Supabase database webhook
(``POST /ws/changes``) and this service's own writes (``notify_order_change``).
"""
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

import pytz
from fastapi import APIRouter, Depends, Header, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, Field

from ..config import settings
from ..core.permissions import authenticate_token
from ..models.user import AuthUser, UserRole
from ..services.store import ONLINE_PAID_METHODS, OrderStore, get_order_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])

WATCHED_TABLES = {"orders", "order_proofs"}


@dataclass
class Subscription:
    """What part of the order table a client is looking at.

    ``courier_ids`` None means every courier; ``archived`` None means both
    the active and the archived view.
    """
    courier_ids: Optional[Set[str]] = None
    archived: Optional[bool] = False
    # Online-paid orders still in assigned show in every courier queue
    online_pool: bool = False

    def in_online_pool(self, row: Dict[str, Any]) -> bool:
        return (
            self.online_pool
            and row.get("payment_method") in ONLINE_PAID_METHODS
            and row.get("status") == "assigned"
        )

    def matches_row(self, row: Optional[Dict[str, Any]]) -> bool:
        if not row:
            return False
        # Rows missing a column (proof rows, delete payloads) cannot be ruled out
        if self.courier_ids is not None and "assigned_courier_id" in row:
            if row["assigned_courier_id"] not in self.courier_ids and not self.in_online_pool(row):
                return False
        if self.archived is not None and "archived" in row:
            if bool(row["archived"]) != self.archived:
                return False
        return True

    def matches(self, change: "RecordChange") -> bool:
        # An order leaving the view matters as much as one entering it
        return self.matches_row(change.record) or self.matches_row(change.old_record)


class RecordChange(BaseModel):
    """Supabase database webhook payload."""
    type: str
    table: str
    schema_name: str = Field("public", alias="schema")
    record: Optional[Dict[str, Any]] = None
    old_record: Optional[Dict[str, Any]] = None

    @property
    def order_id(self) -> Optional[str]:
        row = self.record or self.old_record or {}
        if self.table == "order_proofs":
            return row.get("order_id")
        return row.get("id")


class SubscribeRequest(BaseModel):
    action: str
    courier_ids: Optional[List[str]] = None
    archived: Optional[bool] = False


class Connection:
    def __init__(self, websocket: WebSocket, user: AuthUser, subscription: Subscription):
        self.websocket = websocket
        self.user = user
        self.subscription = subscription
        self.seq = 0

    def next_seq(self) -> int:
        self.seq += 1
        return self.seq


class ConnectionManager:
    def __init__(self):
        self.active_connections: Set[Connection] = set()

    async def connect(self, websocket: WebSocket, user: AuthUser, subscription: Subscription) -> Connection:
        await websocket.accept()
        connection = Connection(websocket, user, subscription)
        self.active_connections.add(connection)
        return connection

    def disconnect(self, connection: Connection):
        self.active_connections.discard(connection)

    async def send(self, connection: Connection, message: dict) -> bool:
        message["seq"] = connection.next_seq()
        try:
            await connection.websocket.send_json(message)
            return True
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug("Dropping websocket for %s: %s", connection.user.id, e)
            return False

    async def subscribe(self, connection: Connection, subscription: Subscription):
        """Replace the connection's filter; the old one stops applying at once."""
        connection.subscription = subscription
        await self.send(connection, {
            "type": "subscribed",
            "courier_ids": sorted(subscription.courier_ids) if subscription.courier_ids is not None else None,
            "archived": subscription.archived,
        })

    async def publish(self, change: RecordChange) -> int:
        if change.table not in WATCHED_TABLES:
            return 0

        message = {
            "type": "refetch",
            "event": change.type,
            "table": change.table,
            "order_id": change.order_id,
            "timestamp": datetime.now(pytz.UTC).isoformat(),
        }

        sent = 0
        dead_connections = []
        for connection in list(self.active_connections):
            if not connection.subscription.matches(change):
                continue
            if await self.send(connection, dict(message)):
                sent += 1
            else:
                dead_connections.append(connection)

        for connection in dead_connections:
            self.disconnect(connection)
        return sent


manager = ConnectionManager()


def subscription_for(user: AuthUser, courier_ids: Optional[List[str]], archived: Optional[bool]) -> Subscription:
    # Couriers always watch their own queue, whatever they ask for
    if user.role == UserRole.COURIER:
        return Subscription(courier_ids={user.id}, archived=False, online_pool=True)
    return Subscription(courier_ids=set(courier_ids) if courier_ids else None, archived=archived)


async def notify_order_change(
    event: str,
    record: Optional[Dict[str, Any]] = None,
    old_record: Optional[Dict[str, Any]] = None,
    table: str = "orders",
):
    """Publish a change made by this service."""
    change = RecordChange(type=event, table=table, record=record, old_record=old_record)
    await manager.publish(change)


@router.websocket("/orders")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(None),
    store: OrderStore = Depends(get_order_store),
):
    """Order change feed for the admin dashboard and courier screens.

    After connecting, a client may send
    ``{"action": "subscribe", "courier_ids": [...], "archived": false}``
    at any time to change what it watches.
    """
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Token required")
        return

    try:
        user = await authenticate_token(token, store)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication failed")
        return

    if user.role is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Profile not loaded")
        return

    connection = await manager.connect(websocket, user, subscription_for(user, None, False))

    try:
        while True:
            message = await websocket.receive_json()
            if not isinstance(message, dict) or message.get("action") != "subscribe":
                continue
            request = SubscribeRequest.model_validate(message)
            subscription = subscription_for(user, request.courier_ids, request.archived)
            await manager.subscribe(connection, subscription)
    except WebSocketDisconnect:
        logger.debug("Websocket closed by %s", user.id)
    except ValueError as e:
        # malformed JSON or a subscribe message that fails validation
        logger.info("Closing websocket for %s on bad message: %s", user.id, e)
        await websocket.close(code=status.WS_1003_UNSUPPORTED_DATA)
    finally:
        manager.disconnect(connection)


@router.post("/changes")
async def record_changed(
    change: RecordChange,
    x_webhook_secret: str = Header(""),
):
    """Target of the Supabase database webhook on orders and order_proofs."""
    secret = settings.REALTIME_WEBHOOK_SECRET
    if not secret or not hmac.compare_digest(x_webhook_secret, secret):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid webhook secret"
        )

    sent = await manager.publish(change)
    return {"delivered": sent}
