import logging
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import socketio

from common.config import settings

# Dedicated logger for this module; inherits level/format from root (configured in config.py)
logger = logging.getLogger("events")

# =============================================================================
# 1) Event Envelope
# =============================================================================
@dataclass
class EventEnvelope:
    """
    The standard envelope for every server-to-client event on the push channel.
    """
    eventType: str
    eventId: str
    timestamp: str
    source: str
    version: str
    payload: Dict[str, Any]


def now_iso() -> str:
    """
    Return a timezone-aware ISO-8601 UTC timestamp string, e.g.:
    "2025-10-26T20:15:23.742123+00:00"
    """
    return datetime.now(tz=timezone.utc).isoformat()


def new_event(
    event_type: str,
    payload: Dict[str, Any],
    *,
    version: str = "1.0",
    source: Optional[str] = None,
) -> EventEnvelope:
    """
    Factory to build an EventEnvelope.
    Parameters after '*' must be passed by name.
    """
    return EventEnvelope(
        eventType=event_type,
        eventId=str(uuid.uuid4()),
        timestamp=now_iso(),
        source=source or settings.service_name, # default to current service
        version=version,
        payload=payload,
    )

# =============================================================================
# 2) Publishing
# =============================================================================
async def publish_event(sio: socketio.AsyncServer, event: EventEnvelope, to: Optional[str] = None) -> None:
    """
    Emit an EventEnvelope to connected viewers under the name of its eventType.

    - to=None broadcasts to every connected client.
    - to=<sid or room> targets a single session or room.
    Delivery is best effort: clients that are not connected miss the event.
    """
    await sio.emit(event.eventType, asdict(event), to=to)
    logger.info("Published %s id=%s to=%s", event.eventType, event.eventId, to or "*")
