# core/log_broker.py
import asyncio
import logging
from typing import Dict, Optional, Protocol

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from model.api import LogMessage

logger = logging.getLogger(__name__)


class Channel(Protocol):
    @property
    def is_open(self) -> bool: ...

    def offer(self, message: str) -> bool: ...


class LogChannel:
    """
    Outbound side of one /ws/ connection.
    Writers call offer() (never blocks, any thread); pump() is the only coroutine touching
    the socket, so messages leave in the order they were offered.
    Must be constructed on the loop that serves the socket.
    """

    def __init__(self, websocket: WebSocket, max_queue: int = 1000) -> None:
        self._ws = websocket
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max(1, max_queue))
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    def offer(self, message: str) -> bool:
        if not self.is_open:
            return False
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not self._loop:
            try:
                self._loop.call_soon_threadsafe(self._enqueue, message)
            except RuntimeError:
                # serving loop already shut down
                self._closed = True
                return False
            return True
        return self._enqueue(message)

    def _enqueue(self, message: str) -> bool:
        try:
            self._queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            logger.debug("ws.queue.full dropped=1")
            return False

    def close(self) -> None:
        self._closed = True

    async def pump(self) -> None:
        while not self._closed:
            message = await self._queue.get()
            try:
                await self._ws.send_json(LogMessage(logMsg=message).model_dump())
            except Exception as e:
                # peer vanished mid-send; the receive loop will unbind us
                logger.debug("ws.send.error err=%s", type(e).__name__)
                self._closed = True


class LogBroker:
    """
    requestId -> channel routing for live job logs.
    - At most one channel per requestId; the last bind wins.
    - relay() is fire-and-forget: no channel, or a closed one, drops the message.
    All methods are synchronous, so each is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._bindings: Dict[str, Channel] = {}

    def bind(self, request_id: str, channel: Channel) -> None:
        previous = self._bindings.get(request_id)
        self._bindings[request_id] = channel
        if previous is not None and previous is not channel:
            logger.info("ws.rebind job=%s", request_id)
        else:
            logger.info("ws.bind job=%s", request_id)

    def unbind(self, channel: Channel) -> int:
        stale = [k for k, c in self._bindings.items() if c is channel]
        for key in stale:
            del self._bindings[key]
        if stale:
            logger.info("ws.unbind jobs=%s", ",".join(stale))
        return len(stale)

    def bound(self, request_id: str) -> Optional[Channel]:
        return self._bindings.get(request_id)

    def relay(self, request_id: Optional[str], message: str) -> None:
        if not request_id:
            return
        channel = self._bindings.get(request_id)
        if channel is None or not channel.is_open:
            return
        channel.offer(message)


log_broker = LogBroker()
