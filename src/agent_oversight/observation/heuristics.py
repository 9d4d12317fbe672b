"""Heuristic extraction over a captured session buffer.

These are small pure functions so the patterns can be tuned and tested
against fixtures without touching the control flow.  They are heuristics,
not parsers: false positives are acceptable, the outputs are signals.
"""

from __future__ import annotations

import hashlib
import re

from agent_oversight.models.observation import MAX_COMMAND_HISTORY

# A shell prompt marker ($, # or >) at line start, followed by a command.
_COMMAND_LINE = re.compile(r"^\s*[$#>]\s*(.+)$")

# ``git status`` style markers: "modified:   src/app.py".
_VCS_MODIFIED = re.compile(r"modified:[ \t]+(\S.*?)[ \t]*$", re.MULTILINE)

# Source paths under common top-level directories, with a file extension.
_SOURCE_PATH = re.compile(r"(?:src|lib|test|app)/[^\s:'\"()\[\],]+\.[a-z]+", re.IGNORECASE)

# Error markers.  A single alternation is scanned left to right so that each
# buffer position is counted once: "TypeError:" counts as one error, not as
# both a TypeError and an "error:".
_ERROR_MARKERS = re.compile(
    r"\b(?:Type|Syntax|Reference|Range|Attribute|Key|Value|Import|"
    r"ModuleNotFound|Name|Index|Runtime|Assertion|Permission|FileNotFound|"
    r"Connection|Timeout|Recursion|ZeroDivision)Error\b"
    r"|\bE(?:NOENT|PERM|ACCES|CONNREFUSED|ADDRINUSE|EXIST|NOTDIR)\b"
    r"|(?i:error:)"
    r"|\bERROR\b"
    r"|(?i:\bfailed\b)"
    r"|(?i:exception)"
)


def hash_scrollback(text: str) -> str:
    """Return a stable content hash of *text* for cheap equality checks."""
    return hashlib.md5(
        text.encode("utf-8", errors="replace"), usedforsecurity=False,
    ).hexdigest()


def extract_commands(text: str, limit: int = MAX_COMMAND_HISTORY) -> list[str]:
    """Return commands typed at shell prompts, most recent last.

    Lines starting with ``$``, ``#`` or ``>`` (after optional whitespace) are
    treated as prompts; the rest of the line is the command.  Only the last
    *limit* commands are kept.
    """
    commands: list[str] = []
    for line in text.splitlines():
        match = _COMMAND_LINE.match(line)
        if match:
            command = match.group(1).strip()
            if command:
                commands.append(command)
    return commands[-limit:] if limit > 0 else []


def extract_files_modified(text: str) -> list[str]:
    """Return unique file paths the buffer suggests were modified.

    Looks for VCS ``modified:`` markers and for paths under ``src/``,
    ``lib/``, ``test/`` or ``app/`` that end in an extension.  Paths are
    deduplicated, keeping first-seen order.
    """
    seen: dict[str, None] = {}
    for match in _VCS_MODIFIED.finditer(text):
        seen.setdefault(match.group(1).strip(), None)
    for match in _SOURCE_PATH.finditer(text):
        seen.setdefault(match.group(0), None)
    return list(seen)


def count_errors(text: str) -> int:
    """Count error markers in *text*."""
    return sum(1 for _ in _ERROR_MARKERS.finditer(text))
