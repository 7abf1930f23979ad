"""Permission approval workflow.

When a session stops on a permission prompt, the last transcript entry
carries the blocked command. The user can approve it once, or approve
and persist an allow-list pattern so the same family of commands is not
asked about again. Either way the backend terminates the waiting
process and resumes the session; that must happen exactly once per
request no matter how often the user clicks.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from agentdeck.engine.errors import ApprovalError, DeckError
from agentdeck.shared.models.message import Entry
from agentdeck.shared.models.session import SessionStatus
from agentdeck.shared.services.allow_patterns import derive_allow_pattern, extract_command

if TYPE_CHECKING:
    from agentdeck.adapters.api_client import DeckApiClient
    from agentdeck.engine.status import SessionStatusService

logger = logging.getLogger(__name__)


class ApprovalState(Enum):
    NO_REQUEST = "no_request"
    PENDING = "pending"
    APPROVING = "approving"
    RESOLVED = "resolved"


class ApprovalOutcome(Enum):
    APPROVED_ONCE = "approved_once"
    APPROVED_PERSISTED = "approved_persisted"


@dataclass(frozen=True)
class ApprovalRequest:
    session_id: str
    project_path: str
    entry_id: str
    command: str
    pattern: str

    @classmethod
    def from_entry(
        cls, entry: Entry, session_id: str, project_path: str,
    ) -> ApprovalRequest | None:
        """Build a request from an entry flagged ``needs_approval``."""
        if not entry.needs_approval:
            return None
        command = entry.approval_command or ""
        if not command:
            for call in reversed(entry.tool_calls):
                command = extract_command(call.input)
                if command:
                    break
        pattern = entry.approval_pattern or derive_allow_pattern(command)
        return cls(
            session_id=session_id,
            project_path=project_path,
            entry_id=entry.id,
            command=command,
            pattern=pattern,
        )


class ApprovalWorkflow:
    """Tracks the actionable approval request of one session."""

    def __init__(
        self,
        api: DeckApiClient,
        status_service: SessionStatusService | None = None,
        *,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._api = api
        self._status_service = status_service
        self._on_change = on_change
        self._generation = 0
        self.request: ApprovalRequest | None = None
        self.state = ApprovalState.NO_REQUEST
        self.outcome: ApprovalOutcome | None = None
        self.error: ApprovalError | None = None
        self.pattern_added: str | None = None

    @property
    def actionable(self) -> bool:
        return self.state is ApprovalState.PENDING and self.request is not None

    def present(self, request: ApprovalRequest | None) -> None:
        """Show *request*; a different entry supersedes the current one."""
        if request is None:
            if self.request is not None:
                self._reset(None)
            return
        if self.request is not None and self.request.entry_id == request.entry_id:
            return
        if self.request is not None:
            logger.info(
                "Approval request %s superseded by %s",
                self.request.entry_id, request.entry_id,
            )
        self._reset(request)

    def clear(self) -> None:
        self.present(None)

    def _reset(self, request: ApprovalRequest | None) -> None:
        self._generation += 1
        self.request = request
        self.state = ApprovalState.PENDING if request is not None else ApprovalState.NO_REQUEST
        self.outcome = None
        self.error = None
        self.pattern_added = None
        self._changed()

    async def approve_once(self) -> bool:
        return await self._resolve(persist=False)

    async def always_allow(self) -> bool:
        return await self._resolve(persist=True)

    async def _resolve(self, persist: bool) -> bool:
        """Approve the current request. False if nothing was submitted."""
        request = self.request
        if request is None or not self.actionable:
            logger.debug("Approval ignored in state %s", self.state.value)
            return False
        generation = self._generation
        self.state = ApprovalState.APPROVING
        self.error = None
        self._changed()

        logger.info(
            "Approving %s for session %s (persist=%s, pattern=%s)",
            request.command or "<unknown>", request.session_id[:8], persist, request.pattern,
        )
        try:
            added = await self._api.approve_session(
                request.session_id,
                request.project_path,
                pattern=request.pattern if persist else None,
                always_allow=persist,
            )
        except DeckError as exc:
            error = ApprovalError(request.session_id, f"Failed to approve: {exc}")
            logger.warning("Approval failed for session %s: %s", request.session_id[:8], exc)
            if generation == self._generation:
                self.state = ApprovalState.PENDING
                self.error = error
                self._changed()
            raise error from exc

        if generation != self._generation:
            logger.debug("Approval of superseded request %s completed", request.entry_id)
            return True

        self.state = ApprovalState.RESOLVED
        if persist:
            self.outcome = ApprovalOutcome.APPROVED_PERSISTED
            self.pattern_added = added or request.pattern
        else:
            self.outcome = ApprovalOutcome.APPROVED_ONCE
        if self._status_service is not None:
            self._status_service.set_local(request.session_id, SessionStatus.WORKING)
            self._status_service.refresh()
        self._changed()
        return True

    def _changed(self) -> None:
        if self._on_change is not None:
            try:
                self._on_change()
            except Exception:
                logger.exception("Approval change callback failed")
