"""Tests for transcript reconciliation: dedup, result folding, merging."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from agentdeck.adapters.events import Connected, MessageReceived
from agentdeck.engine.transcript import TranscriptReconciler, truncate_result
from agentdeck.shared.models.message import (
    Entry,
    EntryRole,
    ToolInvocation,
    ToolState,
    entry_from_dict,
)

_T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _user(entry_id: str, text: str, seconds: int = 0) -> Entry:
    return Entry(id=entry_id, role=EntryRole.USER, content=text, timestamp=_T0 + timedelta(seconds=seconds))


def _assistant(entry_id: str, text: str = "", calls: list[ToolInvocation] | None = None) -> Entry:
    return Entry(id=entry_id, role=EntryRole.ASSISTANT, content=text, tool_calls=list(calls or []), timestamp=_T0)


def _call(name: str, tool_id: str | None = None, **inputs) -> ToolInvocation:
    return ToolInvocation(name=name, input=dict(inputs), id=tool_id)


def _result(entry_id: str, content: str, tool_use_id: str | None = None, *, is_error: bool = False) -> Entry:
    return Entry(
        id=entry_id,
        role=EntryRole.USER,
        content=content,
        is_tool_result=True,
        tool_use_id=tool_use_id,
        is_error=is_error,
        timestamp=_T0,
    )


def _ids(rec: TranscriptReconciler) -> list[str]:
    return [e.id for e in rec.materialize()]


def test_duplicate_ids_are_ingested_once():
    rec = TranscriptReconciler()
    assert rec.ingest_entry(_user("m1", "hello")) is True
    assert rec.ingest_entry(_user("m1", "hello again")) is False
    assert _ids(rec) == ["m1"]
    assert rec.materialize()[0].content == "hello"


def test_history_then_live_overlap_keeps_single_copy():
    rec = TranscriptReconciler()
    rec.seed([_user("m1", "a"), _assistant("m2", "b")])
    for entry in (_assistant("m2", "b"), _user("m3", "c")):
        rec.ingest(MessageReceived(message=entry))
    assert _ids(rec) == ["m1", "m2", "m3"]


def test_seed_replaces_previous_transcript():
    rec = TranscriptReconciler()
    rec.ingest_entry(_user("old", "x"))
    rec.seed([_user("new", "y")])
    assert _ids(rec) == ["new"]
    assert not rec.known("old")


def test_tool_result_folds_into_matching_invocation_by_id():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", calls=[_call("Read", "t1", file_path="/x.py")]))
    rec.ingest_entry(_result("r1", "file contents", tool_use_id="t1"))

    entries = rec.materialize()
    assert len(entries) == 1
    call = entries[0].tool_calls[0]
    assert call.result == "file contents"
    assert call.state is ToolState.COMPLETE


def test_tool_use_id_wins_over_positional_match():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", "first", calls=[_call("Bash", "t1", command="ls")]))
    rec.ingest_entry(_assistant("a2", "second", calls=[_call("Bash", "t2", command="pwd")]))
    rec.ingest_entry(_result("r1", "listing", tool_use_id="t1"))

    first, second = rec.materialize()
    assert first.tool_calls[0].result == "listing"
    assert second.tool_calls[0].result is None
    assert second.tool_calls[0].state is ToolState.RUNNING


def test_positional_fallback_targets_last_resultless_call():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", "working", calls=[
        _call("Read", file_path="/a"),
        _call("Read", file_path="/b"),
    ]))
    rec.ingest_entry(_result("r1", "B"))
    rec.ingest_entry(_result("r2", "A"))

    calls = rec.materialize()[0].tool_calls
    assert [c.result for c in calls] == ["A", "B"]


def test_result_does_not_overwrite_completed_invocation():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", calls=[_call("Bash", "t1", command="ls")]))
    rec.ingest_entry(_result("r1", "first", tool_use_id="t1"))
    assert rec.ingest_entry(_result("r2", "second", tool_use_id="t1")) is False
    assert rec.materialize()[0].tool_calls[0].result == "first"


def test_error_result_marks_invocation_error():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", calls=[_call("Bash", "t1", command="false")]))
    rec.ingest_entry(_result("r1", "exit 1", tool_use_id="t1", is_error=True))
    assert rec.materialize()[0].tool_calls[0].state is ToolState.ERROR


def test_unmatched_result_is_discarded():
    rec = TranscriptReconciler()
    rec.ingest_entry(_user("m1", "hi"))
    assert rec.ingest_entry(_result("r1", "orphan", tool_use_id="nope")) is False
    assert _ids(rec) == ["m1"]
    assert rec.known("r1")


def test_results_never_appear_as_entries():
    rec = TranscriptReconciler()
    assert rec.ingest_entry(_result("r1", "orphan")) is False
    assert len(rec) == 0


def test_consecutive_tool_only_entries_merge():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", calls=[_call("Read", "t1")]))
    rec.ingest_entry(_assistant("a2", calls=[_call("Grep", "t2")]))
    rec.ingest_entry(_assistant("a3", calls=[_call("Glob", "t3")]))

    entries = rec.materialize()
    assert [e.id for e in entries] == ["a1"]
    assert [c.name for c in entries[0].tool_calls] == ["Read", "Grep", "Glob"]
    assert rec.known("a2") and rec.known("a3")


def test_text_entry_breaks_the_merge():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", calls=[_call("Read", "t1")]))
    rec.ingest_entry(_assistant("a2", "Let me look further"))
    rec.ingest_entry(_assistant("a3", calls=[_call("Grep", "t2")]))
    assert _ids(rec) == ["a1", "a2", "a3"]


def test_tool_only_entry_does_not_merge_into_text_entry():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", "Reading", calls=[_call("Read", "t1")]))
    rec.ingest_entry(_assistant("a2", calls=[_call("Read", "t2")]))
    assert _ids(rec) == ["a1", "a2"]


def test_result_folds_across_merged_entries():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", calls=[_call("Read", "t1")]))
    rec.ingest_entry(_assistant("a2", calls=[_call("Grep", "t2")]))
    rec.ingest_entry(_result("r1", "contents", tool_use_id="t1"))
    rec.ingest_entry(_result("r2", "a\nb\n", tool_use_id="t2"))

    calls = rec.materialize()[0].tool_calls
    assert [c.result for c in calls] == ["contents", "a\nb\n"]
    assert all(c.state is ToolState.COMPLETE for c in calls)


def test_batch_and_incremental_ingestion_agree():
    feed = [
        _user("m1", "fix the build"),
        _assistant("a1", calls=[_call("Bash", "t1", command="make")]),
        _result("r1", "ok", tool_use_id="t1"),
        _assistant("a2", calls=[_call("Read", "t2")]),
        _result("r2", "src", tool_use_id="t2"),
        _assistant("a1", calls=[_call("Bash", "t1", command="make")]),
        _assistant("a3", "Done."),
    ]
    batch = TranscriptReconciler()
    batch.ingest_many(feed)

    incremental = TranscriptReconciler()
    for entry in feed:
        incremental.ingest(MessageReceived(message=entry))

    assert batch.materialize() == incremental.materialize()


def test_long_results_are_truncated_with_suffix():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", calls=[_call("Read", "t1")]))
    rec.ingest_entry(_result("r1", "x" * 800, tool_use_id="t1"))

    result = rec.materialize()[0].tool_calls[0].result
    assert result == "x" * 500 + "..."


def test_result_at_limit_is_not_truncated():
    assert truncate_result("y" * 500, 500) == "y" * 500
    assert truncate_result("y" * 501, 500) == "y" * 500 + "..."
    assert truncate_result("short", 0) == "short"


def test_custom_result_limit():
    rec = TranscriptReconciler(max_result_chars=10)
    rec.ingest_entry(_assistant("a1", calls=[_call("Bash", "t1")]))
    rec.ingest_entry(_result("r1", "0123456789abc", tool_use_id="t1"))
    assert rec.materialize()[0].tool_calls[0].result == "0123456789..."


def test_malformed_input_is_ignored():
    rec = TranscriptReconciler()
    assert rec.ingest(Connected()) is False
    assert rec.ingest(MessageReceived(message=None)) is False
    assert rec.ingest_entry(None) is False  # type: ignore[arg-type]
    assert rec.ingest_entry(Entry(id="", role=EntryRole.USER)) is False
    assert entry_from_dict({"role": "assistant"}) is None
    assert len(rec) == 0


def test_remove_forgets_id():
    rec = TranscriptReconciler()
    rec.append_local(_user("temp-1", "draft"))
    assert rec.remove("temp-1") is True
    assert len(rec) == 0
    assert not rec.known("temp-1")
    assert rec.remove("temp-1") is False


def test_materialize_returns_copies():
    rec = TranscriptReconciler()
    rec.ingest_entry(_assistant("a1", "text", calls=[_call("Read", "t1")]))
    snapshot = rec.materialize()
    snapshot[0].content = "mutated"
    snapshot[0].tool_calls.clear()
    fresh = rec.materialize()[0]
    assert fresh.content == "text"
    assert len(fresh.tool_calls) == 1


def test_ingested_entry_is_not_aliased():
    rec = TranscriptReconciler()
    original = _assistant("a1", calls=[_call("Read", "t1")])
    rec.ingest_entry(original)
    rec.ingest_entry(_assistant("a2", calls=[_call("Grep", "t2")]))
    assert len(original.tool_calls) == 1


def test_last_entry():
    rec = TranscriptReconciler()
    assert rec.last_entry() is None
    rec.ingest_many([_user("m1", "a"), _assistant("a1", "b")])
    assert rec.last_entry().id == "a1"
