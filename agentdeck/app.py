"""AgentDeck CLI - main application entry point."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from agentdeck.engine.config import DeckConfig
from agentdeck.engine.errors import ConfigError, DeckError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"


def _configure_logging(level_name: str, *, to_stderr: bool) -> Path:
    """Rotating file log, plus stderr when no TUI owns the terminal."""
    log_dir = Path.home() / ".agentdeck" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "agentdeck.log"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name.upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = RotatingFileHandler(
        log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    if to_stderr:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)
    return log_file


def _load_config(args) -> DeckConfig:
    """Explicit --config, else ./.agentdeck/deck.yaml, else env defaults."""
    from agentdeck.engine.yaml_config import discover_config_path, load_yaml_config

    config_path: Path | None = None
    if args.config:
        config_path = Path(args.config)
        logger.info(
            "Using explicit config path: %s (exists=%s)", config_path, config_path.exists(),
        )
    else:
        config_path = discover_config_path()
        if config_path is not None:
            logger.info("Auto-discovered config: %s", config_path)
        else:
            logger.info("No config file found; using defaults")

    config = load_yaml_config(config_path) if config_path else DeckConfig.from_env()
    if args.base_url:
        config.base_url = args.base_url.rstrip("/")
    return config


# ── Headless modes ──


async def _list_sessions(config: DeckConfig, console: Console) -> int:
    from agentdeck.adapters.api_client import DeckApiClient

    async with DeckApiClient(config.base_url, timeout_seconds=config.request_timeout_seconds) as api:
        try:
            sessions = await api.list_sessions()
        except DeckError as exc:
            console.print(f"[red]Error:[/red] {escape(str(exc))}", highlight=False)
            return 1

    if not sessions:
        console.print("No sessions.")
        return 0
    console.print(f"Sessions ({len(sessions)}):")
    for session in sessions:
        last = (
            session.last_activity_at.astimezone().strftime("%Y-%m-%d %H:%M")
            if session.last_activity_at else "unknown"
        )
        console.print(
            f"  [bold]{session.id}[/bold]  {escape(session.display_name)}"
            f"  [dim]{session.project_path} · {session.status.label} · "
            f"{session.message_count} messages · {last}[/dim]",
            markup=True,
            highlight=False,
        )
    return 0


class TranscriptPrinter:
    """Prints entries, tool updates and status changes as they appear."""

    def __init__(self, console: Console) -> None:
        from agentdeck.shared.formatters.tool_call import format_tool_call, render_collapsed_rich

        self._console = console
        self._format = format_tool_call
        self._render = render_collapsed_rich
        self._printed_entries: set[str] = set()
        self._printed_tools: set[tuple[str, int, str]] = set()
        self._status: str | None = None
        self._connected: bool | None = None

    def update(self, view) -> None:
        from agentdeck.shared.models.message import EntryRole

        if view.connected != self._connected:
            self._connected = view.connected
            self._console.print("[green]● live[/green]" if view.connected else "[red]● reconnecting[/red]")
        status = view.status.label
        if status != self._status:
            self._status = status
            self._console.print(f"[dim]status:[/dim] {status}")

        for entry in view.entries:
            if entry.id not in self._printed_entries:
                self._printed_entries.add(entry.id)
                who = {EntryRole.USER: "You", EntryRole.ASSISTANT: "Assistant"}.get(entry.role, "System")
                ts = entry.timestamp.astimezone().strftime("%H:%M:%S")
                self._console.print(f"[bold]{who}[/bold] [dim]{ts}[/dim]")
                if entry.content:
                    self._console.print(entry.content, markup=False, highlight=False)
            for idx, call in enumerate(entry.tool_calls):
                key = (entry.id, idx, call.state.value)
                if key in self._printed_tools:
                    continue
                self._printed_tools.add(key)
                self._console.print("  " + self._render(self._format(call), call.state))

        if view.approval_visible and view.approval.request is not None:
            key = (view.approval.request.entry_id, -1, view.approval.state.value)
            if key not in self._printed_tools:
                self._printed_tools.add(key)
                self._console.print(
                    f"[magenta]Permission required:[/magenta] {escape(view.approval.request.command)}",
                    highlight=False,
                )


async def _watch_session(
    config: DeckConfig, session_id: str, project_path: str, console: Console,
) -> int:
    from agentdeck.adapters.api_client import DeckApiClient
    from agentdeck.engine.session_view import SessionView
    from agentdeck.engine.status import SessionStatusService
    from agentdeck.shared.models.session import Session

    async with DeckApiClient(config.base_url, timeout_seconds=config.request_timeout_seconds) as api:
        status_service = SessionStatusService(api, poll_interval=config.poll_interval_seconds)
        view = SessionView(Session(id=session_id, project_path=project_path), api, status_service, config)
        printer = TranscriptPrinter(console)
        view.add_listener(lambda: printer.update(view))
        await view.open()
        if view.error is not None:
            console.print(f"[red]Failed to load history:[/red] {escape(str(view.error))}", highlight=False)
        try:
            await asyncio.Event().wait()
        finally:
            await view.close()
            status_service.stop()
    return 0


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        prog="agentdeck",
        description="AgentDeck - terminal control panel for coding-agent sessions",
    )
    parser.add_argument(
        "--base-url", metavar="URL",
        help="Backend API root (default: AGENTDECK_BASE_URL or http://localhost:3001/api)",
    )
    parser.add_argument(
        "--config", metavar="PATH",
        help="YAML config file (default: ./.agentdeck/deck.yaml if present)",
    )
    parser.add_argument(
        "--log-level", metavar="LEVEL",
        help="Logging level (default: AGENTDECK_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--list", action="store_true",
        help="List sessions and exit",
    )
    parser.add_argument(
        "--watch", metavar="SESSION",
        help="Print a session's transcript as it grows (requires --project)",
    )
    parser.add_argument(
        "--session", metavar="SESSION",
        help="Session to open directly instead of the session list (requires --project)",
    )
    parser.add_argument(
        "--project", metavar="PATH",
        help="Project path the session belongs to",
    )
    args = parser.parse_args()

    headless = bool(args.list or args.watch)
    log_level = args.log_level or os.getenv("AGENTDECK_LOG_LEVEL", "INFO")
    log_file = _configure_logging(log_level, to_stderr=headless)
    logger.info("Starting AgentDeck cwd=%s log=%s", Path.cwd(), log_file)

    try:
        config = _load_config(args)
    except (ConfigError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    if not args.log_level:
        logging.getLogger().setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

    console = Console()

    if args.list:
        sys.exit(asyncio.run(_list_sessions(config, console)))

    if args.watch:
        if not args.project:
            parser.error("--watch requires --project")
        try:
            code = asyncio.run(_watch_session(config, args.watch, args.project, console))
        except KeyboardInterrupt:
            code = 0
        sys.exit(code)

    if args.session and not args.project:
        parser.error("--session requires --project")

    # TUI mode
    from agentdeck.tui.app import DeckApp

    app = DeckApp(config, args.session, args.project)
    app.run()


if __name__ == "__main__":
    main()
