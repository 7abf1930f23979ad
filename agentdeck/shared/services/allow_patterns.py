"""Allow-list pattern derivation for shell permission requests.

A pattern names the command family a user is willing to pre-approve:

- ``rm -rf build/``          -> ``Bash(rm:*)``
- ``git push origin main``   -> ``Bash(git push:*)``
- ``/usr/bin/npm run test``  -> ``Bash(npm run:*)``

Commands that cannot be tokenised fall back to the exact command text.
"""
from __future__ import annotations

import ast
import json
import logging
import shlex
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TOOL_NAME = "Bash"

# Executables whose first positional argument selects the behaviour.
SUBCOMMAND_EXECUTABLES = frozenset({
    "git", "npm", "pnpm", "yarn", "npx", "bun", "cargo", "go", "pip",
    "uv", "poetry", "docker", "podman", "kubectl", "aws", "gh", "make",
})

# Leading tokens that wrap another command.
_WRAPPERS = frozenset({"sudo", "env", "nohup", "time"})


def _first_command(command: str) -> str:
    """Cut a compound command at the first chaining operator."""
    for sep in ("&&", "||", ";", "|"):
        idx = command.find(sep)
        if idx > 0:
            command = command[:idx]
    return command.strip()


def derive_allow_pattern(command: str) -> str:
    """Derive an allow-list pattern for *command*."""
    cleaned = str(command or "").strip()
    if not cleaned:
        return ""
    try:
        tokens = shlex.split(_first_command(cleaned))
    except ValueError:
        logger.debug("derive_allow_pattern: cannot tokenise %r", cleaned)
        return f"{TOOL_NAME}({cleaned})"

    # Skip wrappers and leading VAR=value assignments.
    while tokens and (tokens[0] in _WRAPPERS or ("=" in tokens[0] and not tokens[0].startswith("="))):
        tokens = tokens[1:]
    if not tokens:
        return f"{TOOL_NAME}({cleaned})"

    exe = Path(tokens[0]).name
    if exe.lower() in SUBCOMMAND_EXECUTABLES:
        for token in tokens[1:]:
            if not token.startswith("-"):
                return f"{TOOL_NAME}({exe} {token}:*)"
    return f"{TOOL_NAME}({exe}:*)"


def extract_command(tool_input: Any) -> str:
    """Pull the shell command out of a tool input (dict or serialized)."""
    parsed: object | None = tool_input
    if isinstance(tool_input, str):
        try:
            parsed = json.loads(tool_input)
        except ValueError:
            try:
                parsed = ast.literal_eval(tool_input)
            except (ValueError, SyntaxError):
                return ""
    if isinstance(parsed, dict):
        value = parsed.get("command") or parsed.get("cmd") or parsed.get("script") or ""
        if isinstance(value, str):
            return value
    return ""
