# controller/log_controller.py
import asyncio
import logging
from fastapi import APIRouter, WebSocket
from pydantic import ValidationError
from config.settings import settings
from core.log_broker import LogChannel, log_broker
from model.api import BindRequest
from util.constants import InternalURIs

logger = logging.getLogger(__name__)

log_router = APIRouter()


def _text_of(message: dict) -> str:
    if message.get("text") is not None:
        return message["text"]
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")


@log_router.websocket(InternalURIs.LOGS_WS)
async def job_logs(websocket: WebSocket) -> None:
    """
    Live log channel.
    Inbound: {"requestId": "..."} binds this socket to a job (last bind wins).
    Outbound: {"logMsg": "..."} only. Bad inbound messages are logged and ignored.
    """
    await websocket.accept()
    channel = LogChannel(websocket, max_queue=settings.LOG_CHANNEL_QUEUE_SIZE)
    pump = asyncio.create_task(channel.pump())
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info("ws.disconnect code=%s", message.get("code"))
                break
            raw = _text_of(message)
            try:
                bind = BindRequest.model_validate_json(raw)
            except ValidationError:
                logger.warning("ws.message.invalid size=%d", len(raw))
                continue
            log_broker.bind(bind.requestId, channel)
            channel.offer(f"[WS] Bound to requestId: {bind.requestId}")
    finally:
        log_broker.unbind(channel)
        channel.close()
        pump.cancel()
        await asyncio.gather(pump, return_exceptions=True)
