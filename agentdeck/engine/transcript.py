"""Transcript reconciliation.

Turns the raw, overlapping feed of entries (history snapshot, live
stream, re-fetched history after a reconnect, local optimistic entries)
into one ordered, render-ready transcript:

1. Entries are de-duplicated by id.
2. Tool-result entries are folded into the invocation that produced
   them and never appear on their own.
3. Consecutive tool-only assistant entries merge into one turn.
4. Folded results are truncated for display.

Ingestion is incremental and never raises on bad input, so ingesting a
batch gives the same transcript as ingesting its entries one at a time.
"""
from __future__ import annotations

import copy
import logging
from collections.abc import Iterable

from agentdeck.adapters.events import MessageReceived, StreamEvent
from agentdeck.shared.models.message import Entry, ToolInvocation, ToolState

logger = logging.getLogger(__name__)

TRUNCATION_SUFFIX = "..."


def truncate_result(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_SUFFIX


class TranscriptReconciler:
    """Owns the reconciled entry list for one session."""

    def __init__(self, max_result_chars: int = 500) -> None:
        self._max_result_chars = max_result_chars
        self._entries: list[Entry] = []
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def known(self, entry_id: str) -> bool:
        return entry_id in self._seen

    # ── Ingestion ──

    def ingest(self, event: StreamEvent) -> bool:
        """Ingest a stream event. Returns True if the transcript changed."""
        if not isinstance(event, MessageReceived) or event.message is None:
            return False
        return self.ingest_entry(event.message)

    def ingest_entry(self, entry: Entry) -> bool:
        """Ingest a single entry. Returns True if the transcript changed."""
        if not isinstance(entry, Entry) or not entry.id:
            logger.debug("Dropping malformed entry %r", entry)
            return False
        if entry.id in self._seen:
            return False
        self._seen.add(entry.id)
        entry = copy.deepcopy(entry)

        if entry.is_tool_result:
            return self._fold_result(entry)

        last = self._entries[-1] if self._entries else None
        if entry.is_tool_only and last is not None and last.is_tool_only:
            last.tool_calls.extend(entry.tool_calls)
            return True

        self._entries.append(entry)
        return True

    def ingest_many(self, entries: Iterable[Entry]) -> bool:
        changed = False
        for entry in entries:
            changed = self.ingest_entry(entry) or changed
        return changed

    def seed(self, entries: Iterable[Entry]) -> None:
        """Replace the transcript with a history snapshot."""
        self.clear()
        self.ingest_many(entries)

    def append_local(self, entry: Entry) -> None:
        """Append a locally created (provisional) entry."""
        self.ingest_entry(entry)

    def remove(self, entry_id: str) -> bool:
        """Drop an entry and forget its id so it may arrive again."""
        self._seen.discard(entry_id)
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                del self._entries[i]
                return True
        return False

    def clear(self) -> None:
        self._entries.clear()
        self._seen.clear()

    # ── Views ──

    def materialize(self) -> list[Entry]:
        return [copy.deepcopy(entry) for entry in self._entries]

    def last_entry(self) -> Entry | None:
        if not self._entries:
            return None
        return copy.deepcopy(self._entries[-1])

    # ── Folding ──

    def _find_target(self, result: Entry) -> ToolInvocation | None:
        if result.tool_use_id:
            for entry in reversed(self._entries):
                for call in entry.tool_calls:
                    if call.id == result.tool_use_id and call.result is None:
                        return call
        if not self._entries:
            return None
        for call in reversed(self._entries[-1].tool_calls):
            if call.result is None:
                return call
        return None

    def _fold_result(self, result: Entry) -> bool:
        target = self._find_target(result)
        if target is None:
            logger.debug(
                "Discarding tool result %s with no matching invocation", result.id,
            )
            return False
        target.result = truncate_result(result.content or "", self._max_result_chars)
        target.state = ToolState.ERROR if result.is_error else ToolState.COMPLETE
        return True
