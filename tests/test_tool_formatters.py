"""Tests for agentdeck.shared.formatters.tool_call, the tool invocation formatting system."""

import json

from agentdeck.shared.formatters.tool_call import (
    DEFAULT_ICON,
    FormattedToolCall,
    Section,
    format_tool_call,
    group_summary,
    local_command_label,
    parse_args,
    render_collapsed_rich,
    render_expanded_rich,
    render_group_header_rich,
    result_summary,
    system_context_label,
)
from agentdeck.shared.models.message import ToolInvocation, ToolState


def _call(name, result=None, state=ToolState.RUNNING, **inputs):
    return ToolInvocation(name=name, input=inputs, result=result, state=state)


# ── parse_args tests ──


class TestParseArgs:
    def test_dict_passthrough(self):
        args = {"file_path": "/foo/bar.py"}
        assert parse_args(args) is args

    def test_valid_json_dict(self):
        args = json.dumps({"file_path": "/foo/bar.py", "command": "ls"})
        assert parse_args(args) == {"file_path": "/foo/bar.py", "command": "ls"}

    def test_python_repr_dict(self):
        args = "{'file_path': '/foo/bar.py', 'old_string': 'hello'}"
        assert parse_args(args) == {"file_path": "/foo/bar.py", "old_string": "hello"}

    def test_garbage_input(self):
        args = "not valid at all {{{"
        assert parse_args(args) == {"_raw": "not valid at all {{{"}

    def test_empty(self):
        assert parse_args("") == {}
        assert parse_args(None) == {}


# ── Result summaries ──


class TestResultSummary:
    def test_file_tools_name_the_file(self):
        assert result_summary("Read", "contents", {"file_path": "/src/app/main.py"}) == "Read main.py"
        assert result_summary("Write", "ok", {"file_path": "/src/app/main.py"}) == "Wrote main.py"
        assert result_summary("Edit", "ok", {"file_path": "/src/app/main.py"}) == "Edited main.py"

    def test_bash(self):
        assert result_summary("Bash", "total 12\n", {"command": "ls"}) == "Command executed"

    def test_search_counts_matches(self):
        assert result_summary("Grep", "a.py\nb.py\nc.py\n") == "3 matches"
        assert result_summary("Glob", "only.py\n") == "1 match"
        assert result_summary("Glob", "only.py") == "0 matches"

    def test_todo_write(self):
        assert result_summary("TodoWrite", "updated", {"todos": []}) == "Todos updated"

    def test_generic_success_and_error(self):
        assert result_summary("Task", "Success: all done") == "Success"
        assert result_summary("WebFetch", "Error: 404") == "Error"

    def test_generic_truncates(self):
        text = "abcdefghijklmnopqrstuvwxyz0123456789"
        assert result_summary("CustomTool", text) == text[:30] + "..."

    def test_generic_short_result_verbatim(self):
        assert result_summary("CustomTool", "fine") == "fine"

    def test_no_result(self):
        assert result_summary("Bash", None, {"command": "ls"}) is None
        assert result_summary("Read", "", {"file_path": "/x"}) is None


# ── format_tool_call tests ──


class TestFormatToolCall:
    def test_bash_sections(self):
        fmt = format_tool_call(_call("Bash", result="hi", command="echo hi", description="greet"))
        assert isinstance(fmt, FormattedToolCall)
        assert fmt.label == "Bash"
        assert fmt.summary == "echo hi"
        kinds = [s.kind for s in fmt.sections]
        assert kinds == ["terminal", "plain"]
        assert fmt.sections[0].content == {"command": "echo hi", "output": "hi"}

    def test_read_has_path_section(self):
        fmt = format_tool_call(_call("Read", result="x", file_path="/a/b.py"))
        assert fmt.summary == "b.py"
        assert fmt.sections[0] == Section(kind="path", content="/a/b.py")

    def test_todo_write_checklist(self):
        todos = [
            {"content": "write tests", "status": "completed"},
            {"content": "ship", "status": "pending"},
        ]
        fmt = format_tool_call(_call("TodoWrite", todos=todos))
        assert fmt.summary == "1/2 done"
        assert fmt.sections[0].kind == "checklist"
        assert [i["text"] for i in fmt.sections[0].content] == ["write tests", "ship"]

    def test_unknown_tool_uses_default(self):
        fmt = format_tool_call(_call("mcp__db__query", sql="select 1"))
        assert fmt.icon == DEFAULT_ICON
        assert fmt.label == "mcp__db__query"
        assert fmt.summary == "sql=select 1"
        assert fmt.sections[0].kind == "kv"

    def test_long_command_is_truncated(self):
        fmt = format_tool_call(_call("Bash", command="x" * 100))
        assert len(fmt.summary) == 60
        assert fmt.summary.endswith("...")


# ── Grouping ──


class TestGroupSummary:
    def test_single_call_is_not_grouped(self):
        assert group_summary([_call("Read")]) is None

    def test_todo_write_does_not_count_towards_threshold(self):
        calls = [_call("Read"), _call("TodoWrite", todos=[])]
        assert group_summary(calls) is None

    def test_group_counts(self):
        calls = [
            _call("Read", state=ToolState.COMPLETE),
            _call("TodoWrite", todos=[]),
            _call("Grep", state=ToolState.COMPLETE),
            _call("Bash", state=ToolState.RUNNING),
        ]
        summary = group_summary(calls)
        assert summary is not None
        assert summary.total == 3
        assert summary.completed == 2
        assert summary.running == 1
        assert summary.last_name == "Bash"
        assert summary.last_running is True
        assert len(summary.todo_calls) == 1

    def test_header_markup(self):
        summary = group_summary([
            _call("Read", state=ToolState.COMPLETE),
            _call("Grep", state=ToolState.COMPLETE),
        ])
        header = render_group_header_rich(summary)
        assert "2/2" in header
        assert "last:" in header


# ── Labels ──


def test_local_command_labels():
    assert local_command_label("stderr") == "Command Error"
    assert local_command_label("reminder") == "System Reminder"
    assert local_command_label(None) == "Command Output"


def test_system_context_labels():
    assert system_context_label("skill") == "Loading Skill"
    assert system_context_label("weird") == "Loading Context"


# ── Rich rendering ──


class TestRichRendering:
    def test_collapsed_escapes_markup(self):
        fmt = format_tool_call(_call("Bash", command="echo [red]x[/red]"))
        line = render_collapsed_rich(fmt, ToolState.RUNNING)
        assert "\\[red]" in line
        assert "running" in line

    def test_expanded_lists_sections(self):
        fmt = format_tool_call(_call("Bash", result="line1\nline2", command="ls"))
        text = render_expanded_rich(fmt, ToolState.COMPLETE)
        assert "$[/bold green] ls" in text
        assert "line1" in text and "line2" in text
        assert "done" in text
