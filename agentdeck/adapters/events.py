"""Event types delivered by a session's live stream.

Each SSE payload is a JSON dict with a ``type`` key, parsed into a typed
dataclass for safe consumption by the session view. Payloads of an
unknown type, or ``message`` payloads without a usable entry, map to
``None`` and are dropped by the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from agentdeck.shared.models.message import Entry, entry_from_dict, entry_to_dict

logger = logging.getLogger(__name__)


@dataclass
class StreamEvent:
    """Base event from a session stream."""
    event_type: str = ""
    session_id: str | None = None


@dataclass
class Connected(StreamEvent):
    event_type: str = "connected"


@dataclass
class MessageReceived(StreamEvent):
    event_type: str = "message"
    message: Entry | None = None


@dataclass
class StatusChanged(StreamEvent):
    event_type: str = "status"
    status: str = ""
    extra: dict[str, Any] = field(default_factory=dict)


def dict_to_event(data: Any) -> StreamEvent | None:
    """Convert a raw stream payload to a typed event, or None if unusable."""
    if not isinstance(data, dict):
        return None
    event_type = data.get("type")
    session_id = data.get("sessionId")
    if not isinstance(session_id, str):
        session_id = None

    if event_type == "connected":
        return Connected(session_id=session_id)
    if event_type == "message":
        entry = entry_from_dict(data.get("message"))
        if entry is None:
            logger.debug("Dropping message event without a valid entry")
            return None
        return MessageReceived(session_id=session_id, message=entry)
    if event_type == "status":
        status = data.get("status")
        return StatusChanged(
            session_id=session_id,
            status=status if isinstance(status, str) else "",
            extra={k: v for k, v in data.items() if k not in {"type", "sessionId", "status"}},
        )
    logger.debug("Dropping stream event of unknown type %r", event_type)
    return None


def event_to_dict(event: StreamEvent) -> dict[str, Any]:
    """Convert a typed event back to its wire payload."""
    d: dict[str, Any] = {"type": event.event_type}
    if event.session_id:
        d["sessionId"] = event.session_id
    if isinstance(event, MessageReceived) and event.message is not None:
        d["message"] = entry_to_dict(event.message)
    elif isinstance(event, StatusChanged):
        d["status"] = event.status
        d.update(event.extra)
    return d
