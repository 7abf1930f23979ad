"""Session metadata and the coarse status model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from agentdeck.shared.models.message import Entry, entry_from_dict, parse_timestamp


class SessionStatus(Enum):
    IDLE = "idle"
    WORKING = "working"
    WAITING = "waiting"
    NEEDS_APPROVAL = "needs-approval"

    @classmethod
    def parse(cls, value: Any) -> SessionStatus:
        try:
            return cls(value)
        except (TypeError, ValueError):
            return cls.IDLE

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS: dict[SessionStatus, str] = {
    SessionStatus.WORKING: "Working",
    SessionStatus.WAITING: "Free",
    SessionStatus.NEEDS_APPROVAL: "Free",
    SessionStatus.IDLE: "Idle",
}


def project_folder(project_path: str) -> str:
    """Encode a project path to the backend's folder form.

    ``/Users/me/src/foo`` -> ``-Users-me-src-foo``
    """
    if not project_path:
        return ""
    return "-" + project_path.lstrip("/").replace("/", "-")


@dataclass
class StatusInfo:
    """One row of the batched status endpoint."""

    running: bool = False
    status: SessionStatus = SessionStatus.IDLE
    pid: int | None = None

    @property
    def effective(self) -> SessionStatus:
        if self.running:
            return SessionStatus.WORKING
        return self.status

    @classmethod
    def from_dict(cls, data: Any) -> StatusInfo:
        if not isinstance(data, dict):
            return cls()
        pid = data.get("pid")
        return cls(
            running=bool(data.get("running", False)),
            status=SessionStatus.parse(data.get("status")),
            pid=pid if isinstance(pid, int) else None,
        )


def _count(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


@dataclass
class Session:
    id: str
    project_path: str
    project_name: str = ""
    name: str | None = None
    started_at: datetime | None = None
    last_activity_at: datetime | None = None
    git_branch: str | None = None
    message_count: int = 0
    tool_call_count: int = 0
    status: SessionStatus = SessionStatus.IDLE
    first_prompt: str | None = None

    @property
    def project_folder(self) -> str:
        return project_folder(self.project_path)

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.first_prompt:
            return self.first_prompt[:50]
        return f"Session {self.id[:8]}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        project_path = _text(data.get("projectPath")) or _text(data.get("project_path")) or ""
        return cls(
            id=str(data.get("id", "")),
            project_path=project_path,
            project_name=_text(data.get("projectName")) or project_path.rstrip("/").split("/")[-1],
            name=_text(data.get("name")),
            started_at=parse_timestamp(data.get("startedAt")),
            last_activity_at=parse_timestamp(data.get("lastActivityAt")),
            git_branch=_text(data.get("gitBranch")),
            message_count=_count(data.get("messageCount")),
            tool_call_count=_count(data.get("toolCallCount")),
            status=SessionStatus.parse(data.get("status")),
            first_prompt=_text(data.get("firstPrompt")),
        )


@dataclass
class SessionDetail:
    session: Session
    entries: list[Entry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionDetail:
        raw = data.get("messages")
        entries: list[Entry] = []
        if isinstance(raw, list):
            for item in raw:
                entry = entry_from_dict(item)
                if entry is not None:
                    entries.append(entry)
        return cls(session=Session.from_dict(data), entries=entries)
