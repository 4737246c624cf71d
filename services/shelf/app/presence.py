"""
Responsible for "presence": counting the viewers connected over the
Socket.IO push channel.

Nothing is sent to clients today; the channel only exists so the server can
log who is connected. broadcast() is there for future server-to-client events.
"""

import logging
from typing import Any, Dict, Mapping, Optional

import socketio

from common.events import new_event, publish_event

logger = logging.getLogger("presence")


class ConnectionCounter:
    """
    Process-wide viewer count. Never negative.
    """

    def __init__(self) -> None:
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def increment(self) -> int:
        self._value += 1
        return self._value

    def decrement(self) -> int:
        if self._value == 0:
            raise ValueError("connection counter cannot go below zero")
        self._value -= 1
        return self._value


def client_address(environ: Mapping[str, Any]) -> str:
    """
    First X-Forwarded-For entry when behind a proxy, else the peer address.
    'environ' is the WSGI-style dict python-socketio hands to connect handlers.
    """
    forwarded = environ.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return environ.get("REMOTE_ADDR") or "unknown"


class PresenceTracker:
    """
    Hooks connect/disconnect on a Socket.IO server and keeps the counter
    equal to the number of open sessions.
    """

    def __init__(self, sio: Optional[socketio.AsyncServer] = None, counter: Optional[ConnectionCounter] = None):
        self.sio = sio
        self.counter = counter or ConnectionCounter()
        self._sessions: Dict[str, str] = {}  # sid -> client address
        if sio is not None:
            sio.on("connect", self.on_connect)
            sio.on("disconnect", self.on_disconnect)

    @property
    def viewers(self) -> int:
        return self.counter.value

    async def on_connect(self, sid: str, environ: Mapping[str, Any], auth: Any = None) -> None:
        address = client_address(environ)
        self._sessions[sid] = address
        total = self.counter.increment()
        logger.info("Viewer connected total=%s addr=%s", total, address)

    async def on_disconnect(self, sid: str, *args: Any) -> None:
        # python-socketio may pass a disconnect reason; it is not needed here
        address = self._sessions.pop(sid, None)
        if address is None:
            logger.debug("Disconnect for unknown sid=%s ignored", sid)
            return
        total = self.counter.decrement()
        logger.info("Viewer disconnected total=%s addr=%s", total, address)

    async def broadcast(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.sio is None:
            raise RuntimeError("presence tracker is not attached to a Socket.IO server")
        await publish_event(self.sio, new_event(event_type, payload))
