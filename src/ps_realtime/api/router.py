"""WebSocket endpoint for live spot availability.

Each connection joins the configured channel and receives one JSON message
per availability change. Incoming client messages are ignored.
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from src.ps_realtime.notifier import AvailabilityNotifier, Subscription

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


async def _forward(websocket: WebSocket, notifier: AvailabilityNotifier, sub: Subscription) -> None:
    while True:
        event = await sub.get()
        await websocket.send_json(event.to_message(notifier.channel))


async def _drain(websocket: WebSocket) -> None:
    # Returns (by raising WebSocketDisconnect) once the client goes away.
    while True:
        await websocket.receive_text()


@router.websocket("/ws/parking-updates")
async def parking_updates(websocket: WebSocket) -> None:
    notifier: AvailabilityNotifier = websocket.app.state.container.notifier
    await websocket.accept()
    sub = notifier.subscribe()
    tasks = [
        asyncio.create_task(_forward(websocket, notifier, sub)),
        asyncio.create_task(_drain(websocket)),
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Realtime connection %s closed: %s", sub.id, exc)
    finally:
        for task in tasks:
            task.cancel()
        notifier.unsubscribe(sub)
