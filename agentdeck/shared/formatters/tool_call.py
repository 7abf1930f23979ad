"""Tool invocation formatting.

A registry of per-tool formatters turns a ``ToolInvocation`` into a small
intermediate representation (icon, label, input summary, result summary,
sections). The Rich renderers at the bottom turn that into markup for
the TUI. Adding a tool takes one decorated function:

    @tool_formatter("MyTool")
    def _format_my_tool(name, args, result):
        return FormattedToolCall(icon="🔧", label=name, summary=...)
"""

from __future__ import annotations

import ast
import json
from dataclasses import dataclass, field
from typing import Any, Callable

from rich.markup import escape

from agentdeck.shared.models.message import ToolInvocation, ToolState

DEFAULT_ICON = "🔧"

TOOL_ICONS: dict[str, str] = {
    "Read": "📖",
    "Write": "✏️",
    "Edit": "🔧",
    "Bash": "💻",
    "Glob": "🔍",
    "Grep": "🔎",
    "Task": "📋",
    "WebFetch": "🌐",
    "WebSearch": "🔍",
    "TodoWrite": "✅",
    "AskUserQuestion": "❓",
}

# Groups with at least this many non-TodoWrite invocations render collapsed.
COLLAPSE_THRESHOLD = 2

RESULT_SUMMARY_CHARS = 30

LOCAL_COMMAND_LABELS: dict[str, str] = {
    "stdout": "Command Output",
    "stderr": "Command Error",
    "caveat": "System Notice",
    "reminder": "System Reminder",
}

SYSTEM_CONTEXT_LABELS: dict[str, str] = {
    "command": "Executing Command",
    "skill": "Loading Skill",
    "agent": "Entering Agent Mode",
    "mode": "Loading Mode",
}


# ── Intermediate Representation ──


@dataclass
class Section:
    """A content section of the expanded view.

    Kinds: "path", "terminal", "checklist", "kv", "plain".
    """

    kind: str
    title: str = ""
    content: Any = None


@dataclass
class FormattedToolCall:
    icon: str = DEFAULT_ICON
    label: str = ""
    summary: str = ""
    result_summary: str | None = None
    sections: list[Section] = field(default_factory=list)


@dataclass
class ToolGroupSummary:
    """Header of a collapsed group of invocations."""

    total: int
    completed: int
    running: int
    last_name: str
    last_icon: str
    last_running: bool
    todo_calls: list[ToolInvocation] = field(default_factory=list)


# ── Argument Parsing ──


def parse_args(arguments: Any) -> dict:
    """Coerce tool input to a dict; serialized input is parsed."""
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    if isinstance(arguments, str):
        try:
            parsed = json.loads(arguments)
            if isinstance(parsed, dict):
                return parsed
        except ValueError:
            pass
        try:
            parsed = ast.literal_eval(arguments)
            if isinstance(parsed, dict):
                return parsed
        except (ValueError, SyntaxError):
            pass
    return {"_raw": str(arguments)}


# ── Helpers ──


def _file_name(path: str) -> str:
    return path.rstrip("/").split("/")[-1] or path


def _trunc(text: str, length: int = 60) -> str:
    if not text:
        return ""
    if len(text) <= length:
        return text
    return text[: length - 3] + "..."


def _result_section(result: str | None, title: str = "Output") -> list[Section]:
    if result:
        return [Section(kind="plain", title=title, content=result)]
    return []


def generic_result_summary(result: str | None) -> str | None:
    """Success / Error when the result says so, else its first characters."""
    if not result:
        return None
    if "success" in result or "Success" in result:
        return "Success"
    if "error" in result or "Error" in result:
        return "Error"
    if len(result) > RESULT_SUMMARY_CHARS:
        return result[:RESULT_SUMMARY_CHARS] + "..."
    return result


def _match_summary(result: str | None) -> str | None:
    if not result:
        return None
    count = result.count("\n")
    return f"{count} match{'es' if count != 1 else ''}"


# ── Formatter Registry ──

_FORMATTERS: dict[str, Callable[..., FormattedToolCall]] = {}


def tool_formatter(name: str):
    """Decorator to register a formatter for a given tool name."""

    def decorator(fn: Callable[..., FormattedToolCall]):
        _FORMATTERS[name] = fn
        return fn

    return decorator


def format_tool_call(call: ToolInvocation) -> FormattedToolCall:
    """Dispatch to the registered formatter for ``call.name``."""
    args = parse_args(call.input)
    formatter = _FORMATTERS.get(call.name, _format_default)
    return formatter(call.name, args, call.result)


def result_summary(name: str, result: str | None, args: Any = None) -> str | None:
    """One-line summary of a tool result for collapsed display."""
    fake = ToolInvocation(name=name, input=parse_args(args), result=result)
    return format_tool_call(fake).result_summary


def _file_formatter(verb: str):
    def _format(name: str, args: dict, result: str | None) -> FormattedToolCall:
        file_path = str(args.get("file_path") or "")
        summary = None
        if result:
            summary = f"{verb} {_file_name(file_path)}" if file_path else generic_result_summary(result)
        sections = [Section(kind="path", content=file_path)] if file_path else []
        sections.extend(_result_section(result))
        return FormattedToolCall(
            icon=TOOL_ICONS[name],
            label=name,
            summary=_file_name(file_path),
            result_summary=summary,
            sections=sections,
        )

    return _format


tool_formatter("Read")(_file_formatter("Read"))
tool_formatter("Write")(_file_formatter("Wrote"))
tool_formatter("Edit")(_file_formatter("Edited"))


@tool_formatter("Bash")
def _format_bash(name: str, args: dict, result: str | None) -> FormattedToolCall:
    command = str(args.get("command", args.get("_raw", "")))
    sections = [
        Section(kind="terminal", title="Terminal", content={"command": command, "output": result or ""}),
    ]
    description = args.get("description")
    if description:
        sections.append(Section(kind="plain", title="Description", content=str(description)))
    return FormattedToolCall(
        icon=TOOL_ICONS["Bash"],
        label="Bash",
        summary=_trunc(command),
        result_summary="Command executed" if result else None,
        sections=sections,
    )


@tool_formatter("Glob")
@tool_formatter("Grep")
def _format_search(name: str, args: dict, result: str | None) -> FormattedToolCall:
    pattern = str(args.get("pattern", ""))
    path = str(args.get("path", ""))
    summary = f'"{_trunc(pattern, 30)}"' if name == "Grep" else pattern
    if path:
        summary += f" in {_file_name(path)}"
    return FormattedToolCall(
        icon=TOOL_ICONS[name],
        label=name,
        summary=summary,
        result_summary=_match_summary(result),
        sections=_result_section(result, title="Matches"),
    )


@tool_formatter("TodoWrite")
def _format_todo_write(name: str, args: dict, result: str | None) -> FormattedToolCall:
    items = []
    todos = args.get("todos", [])
    if isinstance(todos, list):
        for t in todos:
            if isinstance(t, dict):
                items.append({
                    "text": str(t.get("content", t.get("text", ""))),
                    "status": str(t.get("status", "pending")),
                    "active": str(t.get("activeForm", "")),
                })
    done = sum(1 for i in items if i["status"] == "completed")
    return FormattedToolCall(
        icon=TOOL_ICONS["TodoWrite"],
        label="TodoWrite",
        summary=f"{done}/{len(items)} done" if items else "empty",
        result_summary="Todos updated" if result else None,
        sections=[Section(kind="checklist", content=items)] if items else [],
    )


@tool_formatter("Task")
def _format_task(name: str, args: dict, result: str | None) -> FormattedToolCall:
    description = str(args.get("description", ""))
    kv = {k: _trunc(str(args[k]), 100) for k in ("subagent_type", "description", "prompt") if args.get(k)}
    sections = [Section(kind="kv", content=kv)] if kv else []
    sections.extend(_result_section(result))
    return FormattedToolCall(
        icon=TOOL_ICONS["Task"],
        label="Task",
        summary=_trunc(description or str(args.get("prompt", "")), 50),
        result_summary=generic_result_summary(result),
        sections=sections,
    )


@tool_formatter("WebFetch")
@tool_formatter("WebSearch")
def _format_web(name: str, args: dict, result: str | None) -> FormattedToolCall:
    target = str(args.get("url") or args.get("query") or "")
    return FormattedToolCall(
        icon=TOOL_ICONS[name],
        label=name,
        summary=_trunc(target, 50),
        result_summary=generic_result_summary(result),
        sections=_result_section(result),
    )


def _format_default(name: str, args: dict, result: str | None) -> FormattedToolCall:
    """Fallback formatter for unrecognised tool names."""
    raw = args.get("_raw", "")
    if raw:
        summary = _trunc(raw, 50)
        sections = [Section(kind="plain", content=raw)]
    else:
        display_args = {k: _trunc(str(v), 80) for k, v in args.items() if not k.startswith("_")}
        summary = _trunc(", ".join(f"{k}={v}" for k, v in display_args.items()), 50)
        sections = [Section(kind="kv", content=display_args)] if display_args else []
    sections.extend(_result_section(result))
    return FormattedToolCall(
        icon=TOOL_ICONS.get(name, DEFAULT_ICON),
        label=name,
        summary=summary,
        result_summary=generic_result_summary(result),
        sections=sections,
    )


# ── Grouping ──


def group_summary(calls: list[ToolInvocation]) -> ToolGroupSummary | None:
    """Summary header for a collapsed group, or None to show every call."""
    todo_calls = [c for c in calls if c.name == "TodoWrite"]
    others = [c for c in calls if c.name != "TodoWrite"]
    if len(others) < COLLAPSE_THRESHOLD:
        return None
    last = others[-1]
    return ToolGroupSummary(
        total=len(others),
        completed=sum(1 for c in others if c.state is ToolState.COMPLETE),
        running=sum(1 for c in others if c.state is ToolState.RUNNING),
        last_name=last.name,
        last_icon=TOOL_ICONS.get(last.name, DEFAULT_ICON),
        last_running=last.state is ToolState.RUNNING,
        todo_calls=todo_calls,
    )


def local_command_label(kind: str | None) -> str:
    return LOCAL_COMMAND_LABELS.get(kind or "", "Command Output")


def system_context_label(kind: str | None) -> str:
    return SYSTEM_CONTEXT_LABELS.get(kind or "", "Loading Context")


# ── Rich Markup Renderer (for TUI) ──


_STATE_MARKUP = {
    ToolState.PENDING: "[dim]pending[/dim]",
    ToolState.RUNNING: "[yellow]running[/yellow]",
    ToolState.COMPLETE: "[green]done[/green]",
    ToolState.ERROR: "[red]error[/red]",
}


def render_collapsed_rich(fmt: FormattedToolCall, state: ToolState) -> str:
    """One-line Rich markup for a single invocation."""
    parts = ["[dim]▶[/dim]", fmt.icon, f"[cyan]{escape(fmt.label)}[/cyan]"]
    if fmt.summary:
        parts.append(f"[dim]{escape(fmt.summary)}[/dim]")
    if fmt.result_summary:
        parts.append(escape(fmt.result_summary))
    parts.append(_STATE_MARKUP[state])
    return "  ".join(parts)


def render_expanded_rich(fmt: FormattedToolCall, state: ToolState) -> str:
    lines = ["  ".join(["[dim]▼[/dim]", fmt.icon, f"[bold cyan]{escape(fmt.label)}[/bold cyan]", _STATE_MARKUP[state]])]
    for section in fmt.sections:
        if section.title:
            lines.append(f"  [bold dim]{escape(section.title)}[/bold dim]")
        lines.extend(_render_section_rich(section))
    return "\n".join(lines)


def _render_section_rich(section: Section) -> list[str]:
    lines: list[str] = []
    if section.kind == "terminal":
        content = section.content or {}
        for command_line in str(content.get("command", "")).splitlines() or [""]:
            lines.append(f"  [bold green]$[/bold green] {escape(command_line)}")
        for output_line in str(content.get("output", "")).splitlines():
            lines.append(f"  {escape(output_line)}")
    elif section.kind == "path":
        lines.append(f"  [underline]{escape(str(section.content or ''))}[/underline]")
    elif section.kind == "checklist":
        for item in section.content or []:
            marker = {
                "completed": "[green]●[/green]",
                "in_progress": "[yellow]◐[/yellow]",
            }.get(item.get("status"), "[dim]○[/dim]")
            lines.append(f"  {marker} {escape(str(item.get('text', '')))}")
    elif section.kind == "kv":
        for key, value in (section.content or {}).items():
            lines.append(f"  [dim]{escape(str(key))}:[/dim] {escape(str(value))}")
    else:
        for text_line in str(section.content or "").splitlines():
            lines.append(f"  {escape(text_line)}")
    return lines


def render_group_header_rich(summary: ToolGroupSummary) -> str:
    """Header line of a collapsed group."""
    parts = [f"[bold]{summary.total}[/bold] [dim]tools[/dim]", "[dim]│[/dim]"]
    if summary.last_running:
        parts.append(f"[dim]executing[/dim] {summary.last_icon} [cyan]{escape(summary.last_name)}[/cyan]...")
    else:
        parts.append(f"[dim]last:[/dim] {summary.last_icon} {escape(summary.last_name)}")
    if summary.running:
        parts.append(f"[cyan]{summary.running} running[/cyan]")
    parts.append(f"[green]{summary.completed}/{summary.total}[/green]")
    return "  ".join(parts)
