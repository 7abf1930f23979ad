"""Adapters package - the client side of the session backend.

REST calls go through ``DeckApiClient``; live events arrive through
``SessionStreamClient`` as the typed events defined in ``events``.
"""
from __future__ import annotations

__all__ = [
    "DeckApiClient",
    "SessionStreamClient",
    "ConnectionState",
    "SSEDecoder",
    "StreamEvent",
    "Connected",
    "MessageReceived",
    "StatusChanged",
    "dict_to_event",
    "event_to_dict",
]

from agentdeck.adapters.api_client import DeckApiClient
from agentdeck.adapters.events import (
    Connected,
    MessageReceived,
    StatusChanged,
    StreamEvent,
    dict_to_event,
    event_to_dict,
)
from agentdeck.adapters.stream_client import (
    ConnectionState,
    SessionStreamClient,
    SSEDecoder,
)
