"""
WebSocket endpoint for real-time shelf and alert delivery.

Each connection subscribes to the State Store; every transition is pushed
as a full state frame. A heartbeat keeps idle connections alive.
"""

import asyncio

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from alerts.engine import process_alerts
from api.deps import get_ws_store
from api.v1.routers.alerts import alert_response
from api.v1.routers.shelves import ShelfResponse
from core.config import get_settings
from inventory.models import utcnow
from state.actions import AppState
from state.store import StateStore

settings = get_settings()
logger = structlog.get_logger()
router = APIRouter()


def state_frame(state: AppState, action: str | None = None) -> dict:
    now = utcnow()
    return {
        "type": "state",
        "payload": {
            "action": action,
            "shelves": [ShelfResponse.model_validate(s).model_dump(mode="json") for s in state.shelves],
            "alerts": [alert_response(a, now).model_dump(mode="json") for a in process_alerts(state.alerts, now=now)],
            "loading": {"shelves": state.loading.shelves, "alerts": state.loading.alerts},
            "error": state.error,
            "selected_shelf": state.selected_shelf,
        },
    }


@router.websocket("/ws/updates")
async def websocket_updates(websocket: WebSocket, store: StateStore = Depends(get_ws_store)):
    """
    Stream store transitions to the client.

    Connect: ws://host/ws/updates

    Messages sent to client:
        {"type": "state", "payload": {...}}
        {"type": "heartbeat", "payload": {}}
    """
    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[tuple[AppState, str]] = asyncio.Queue()

    def on_transition(state: AppState, action) -> None:
        # Dispatch may happen on another thread
        loop.call_soon_threadsafe(queue.put_nowait, (state, type(action).__name__))

    unsubscribe = store.subscribe(on_transition)
    logger.info("ws.connected", client=str(websocket.client))

    try:
        await websocket.send_json(state_frame(store.state, "Init"))

        async def forward_updates():
            while True:
                state, action = await queue.get()
                await websocket.send_json(state_frame(state, action))

        async def send_heartbeat():
            while True:
                await asyncio.sleep(settings.heartbeat_interval_seconds)
                await websocket.send_json({"type": "heartbeat", "payload": {}})

        async def watch_disconnect():
            # Client messages are ignored; receiving surfaces the disconnect
            while True:
                await websocket.receive_text()

        tasks = [
            asyncio.create_task(forward_updates()),
            asyncio.create_task(send_heartbeat()),
            asyncio.create_task(watch_disconnect()),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                raise exc

    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        logger.info("ws.disconnected", client=str(websocket.client))
