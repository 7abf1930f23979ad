"""Transcript entry and tool invocation models.

Entries arrive from the backend in camelCase JSON. ``entry_from_dict``
is deliberately forgiving: anything it cannot make sense of comes back
as ``None`` so callers can drop it without special-casing.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

TEMP_ID_PREFIX = "temp-"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def gen_temp_id() -> str:
    """Locally generated identity for provisional entries."""
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}"


class EntryRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ToolState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class ToolInvocation:
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    state: ToolState = ToolState.RUNNING
    result: str | None = None
    id: str | None = None

    @property
    def finished(self) -> bool:
        return self.state in (ToolState.COMPLETE, ToolState.ERROR)


@dataclass
class Entry:
    """One reconciled unit of a session transcript."""

    id: str
    role: EntryRole
    timestamp: datetime = field(default_factory=_utcnow)
    content: str = ""
    tool_calls: list[ToolInvocation] = field(default_factory=list)
    thinking: str | None = None

    # Context summary written after a compaction
    is_summary: bool = False
    # Carries the output of a tool call; never rendered standalone
    is_tool_result: bool = False
    tool_use_id: str | None = None
    is_error: bool = False
    # Output of a local slash command (stdout/stderr/caveat/reminder)
    is_local_command: bool = False
    local_command_type: str | None = None
    # Notice that a command/skill/agent definition was loaded
    is_system_context: bool = False
    system_context_type: str | None = None
    system_context_name: str | None = None
    system_context_file: str | None = None

    needs_approval: bool = False
    approval_command: str | None = None
    approval_pattern: str | None = None

    provisional: bool = False

    @property
    def is_tool_only(self) -> bool:
        """Agent-authored, no display text, at least one invocation."""
        return (
            self.role == EntryRole.ASSISTANT
            and not self.content
            and len(self.tool_calls) > 0
        )


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        # Milliseconds since the epoch (JavaScript Date.now())
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _get(data: dict[str, Any], camel: str, snake: str | None = None, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    if snake and snake in data:
        return data[snake]
    return default


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _stringify_result(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        # Content-block lists: [{"type": "text", "text": "..."}]
        chunks = [
            item.get("text", "")
            for item in value
            if isinstance(item, dict) and isinstance(item.get("text"), str)
        ]
        if chunks:
            return "\n".join(chunks)
    return str(value)


def tool_invocation_from_dict(data: Any) -> ToolInvocation | None:
    if not isinstance(data, dict):
        return None
    name = data.get("name")
    if not isinstance(name, str) or not name:
        return None
    raw_input = data.get("input")
    result = _stringify_result(data.get("result"))
    raw_state = data.get("status") or data.get("state")
    try:
        state = ToolState(raw_state) if raw_state else None
    except ValueError:
        state = None
    if state is None:
        state = ToolState.COMPLETE if result is not None else ToolState.RUNNING
    tool_id = data.get("id")
    return ToolInvocation(
        name=name,
        input=raw_input if isinstance(raw_input, dict) else {},
        state=state,
        result=result,
        id=tool_id if isinstance(tool_id, str) else None,
    )


def entry_from_dict(data: Any) -> Entry | None:
    """Parse a wire-format entry. Returns None for malformed payloads."""
    if not isinstance(data, dict):
        return None
    entry_id = data.get("id")
    if not isinstance(entry_id, str) or not entry_id:
        return None
    try:
        role = EntryRole(data.get("role"))
    except ValueError:
        return None

    content = data.get("content")
    if content is None:
        content = ""
    elif not isinstance(content, str):
        content = _stringify_result(content) or ""

    tool_calls: list[ToolInvocation] = []
    raw_calls = _get(data, "toolCalls", "tool_calls") or []
    if isinstance(raw_calls, list):
        for raw in raw_calls:
            call = tool_invocation_from_dict(raw)
            if call is not None:
                tool_calls.append(call)

    timestamp = parse_timestamp(data.get("timestamp")) or _utcnow()

    return Entry(
        id=entry_id,
        role=role,
        timestamp=timestamp,
        content=content,
        tool_calls=tool_calls,
        thinking=_str_or_none(data.get("thinking")),
        is_summary=bool(_get(data, "isSummary", "is_summary", False)),
        is_tool_result=bool(_get(data, "isToolResult", "is_tool_result", False)),
        tool_use_id=_str_or_none(_get(data, "toolUseId", "tool_use_id")),
        is_error=bool(_get(data, "isError", "is_error", False)),
        is_local_command=bool(_get(data, "isLocalCommand", "is_local_command", False)),
        local_command_type=_str_or_none(_get(data, "localCommandType", "local_command_type")),
        is_system_context=bool(_get(data, "isSystemContext", "is_system_context", False)),
        system_context_type=_str_or_none(_get(data, "systemContextType", "system_context_type")),
        system_context_name=_str_or_none(_get(data, "systemContextName", "system_context_name")),
        system_context_file=_str_or_none(_get(data, "systemContextFile", "system_context_file")),
        needs_approval=bool(_get(data, "needsApproval", "needs_approval", False)),
        approval_command=_str_or_none(_get(data, "approvalCommand", "approval_command")),
        approval_pattern=_str_or_none(_get(data, "approvalPattern", "approval_pattern")),
    )


def entry_to_dict(entry: Entry) -> dict[str, Any]:
    """Serialize an entry to the backend's camelCase wire form."""
    d: dict[str, Any] = {
        "id": entry.id,
        "role": entry.role.value,
        "timestamp": entry.timestamp.isoformat(),
        "content": entry.content,
        "toolCalls": [
            {
                k: v
                for k, v in {
                    "id": call.id,
                    "name": call.name,
                    "input": call.input,
                    "status": call.state.value,
                    "result": call.result,
                }.items()
                if v is not None
            }
            for call in entry.tool_calls
        ],
    }
    optional = {
        "thinking": entry.thinking,
        "isSummary": entry.is_summary or None,
        "isToolResult": entry.is_tool_result or None,
        "toolUseId": entry.tool_use_id,
        "isError": entry.is_error or None,
        "isLocalCommand": entry.is_local_command or None,
        "localCommandType": entry.local_command_type,
        "isSystemContext": entry.is_system_context or None,
        "systemContextType": entry.system_context_type,
        "systemContextName": entry.system_context_name,
        "systemContextFile": entry.system_context_file,
        "needsApproval": entry.needs_approval or None,
        "approvalCommand": entry.approval_command,
        "approvalPattern": entry.approval_pattern,
    }
    d.update({k: v for k, v in optional.items() if v is not None})
    return d
