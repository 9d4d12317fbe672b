"""Safety detection for dangerous commands and restricted file access.

Detection methods:

1. Dangerous command patterns (destructive deletes, block-device writes,
   fork bombs, permission changes on ``/``, root shells via ``sudo su``,
   SYN scans, remote scripts piped to a shell, credential exfiltration, force-pushes to protected branches,
   disabling security services, flushing firewall rules).
2. Attempts to disable the oversight system itself.
3. Modification of restricted system files.

Every finding is ``critical``.  The decision engine terminates on a critical
safety violation regardless of the ``auto_terminate`` setting.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from agent_oversight.detection.base import (
    DetectorContext,
    DetectorResult,
    PatternDetector,
)
from agent_oversight.models.check import Issue, IssueType, Severity


@dataclass(frozen=True)
class DangerousPattern:
    """A command pattern and the human-readable reason it is dangerous."""

    pattern: re.Pattern
    description: str


def _p(regex: str, description: str) -> DangerousPattern:
    return DangerousPattern(re.compile(regex, re.IGNORECASE), description)


DANGEROUS_PATTERNS: tuple[DangerousPattern, ...] = (
    # Destructive file operations
    _p(
        r"\brm\s+(?:--?[a-z-]+\s+)*(?:/|~|\$HOME)/?(?=\s*(?:$|[;&|)])|\s+--?[a-z])",
        "Recursive delete on root or home directory",
    ),
    _p(r"\brm\s+(?:--?[a-z-]+\s+)*/\*", "Recursive delete on root filesystem"),
    _p(r"\brm\s+.*--no-preserve-root\b", "Delete with --no-preserve-root"),
    _p(r">\s*/dev/(?:sd[a-z]|nvme\d|disk\d)", "Direct write to block device"),
    _p(r"\bdd\s+.*\bof=/dev/(?:sd[a-z]|nvme\d|disk\d)", "dd write to block device"),
    _p(r"\bmkfs(?:\.\w+)?\b", "Filesystem creation command"),
    # Fork bombs
    _p(r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:", "Fork bomb detected"),
    # Privilege and permission abuse
    _p(r"\bchmod\s+(?:-R\s+)?777\s+/(?:\s|$)", "chmod 777 on root directory"),
    _p(r"\bchown\s+-R\s+\S+\s+/(?:\s|$)", "Recursive chown on root directory"),
    _p(r"\bsudo\s+su\b(?:\s+-)?(?=\s*(?:$|[;&|]))", "Privilege escalation to a root shell"),
    # Reconnaissance
    _p(r"\bnmap\b.*\s-sS\b", "Network reconnaissance (SYN scan)"),
    # Remote code execution
    _p(r"\b(?:curl|wget)\b[^|]*\|\s*(?:sudo\s+)?(?:ba|z)?sh\b", "Pipe remote script to shell"),
    # Credential exfiltration
    _p(r"\b(?:curl|wget|nc|scp|rsync)\b.*(?:\.ssh/id_\w+|\.aws/credentials|\.env\b|\.netrc|\.npmrc)", "Credential file sent over the network"),
    _p(r"\b(?:cat|less|head|tail|base64)\s+.*\.ssh/id_(?:rsa|ed25519|ecdsa|dsa)\b(?!\.pub)", "SSH private key access attempt"),
    _p(r"\b(?:env|printenv)\b.*\|\s*(?:curl|wget|nc)\b", "Environment variables piped to the network"),
    # Version control
    _p(r"\bgit\s+push\b.*(?:--force\b|-f\b|--force-with-lease\b).*\b(?:main|master|production|release)\b", "Force-push to a protected branch"),
    _p(r"\bgit\s+push\b.*\b(?:main|master|production|release)\b.*(?:--force\b|-f\b)", "Force-push to a protected branch"),
    _p(r"\bgit\s+push\b.*\s\+(?:main|master|production|release)\b", "Force-push to a protected branch"),
    # System modification
    _p(r"\bsystemctl\s+(?:disable|stop|mask)\s+.*(?:security|firewall|apparmor|selinux|auditd)", "Disabling security services"),
    _p(r"\biptables\s+-F\b", "Flushing firewall rules"),
)

# Commands that try to stop or disable the oversight process itself.
OVERSIGHT_BYPASS_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"\b(?:kill|pkill|killall)\b.*\b(?:overseer|oversight)\b", re.IGNORECASE),
    re.compile(r"\b(?:stop|disable)\b.*\boversight\b", re.IGNORECASE),
    re.compile(r"\bOVERSIGHT_ENABLED\s*=\s*(?:0|false|no)\b", re.IGNORECASE),
)

# System files a coding agent has no business modifying.
RESTRICTED_FILE_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"/etc/passwd\b", re.IGNORECASE),
    re.compile(r"/etc/shadow\b", re.IGNORECASE),
    re.compile(r"/etc/sudoers\b", re.IGNORECASE),
    re.compile(r"\.ssh/authorized_keys\b", re.IGNORECASE),
    re.compile(r"\.ssh/config\b", re.IGNORECASE),
    re.compile(r"(?:^|/)\.(?:bashrc|zshrc|profile|bash_profile)$", re.IGNORECASE),
)


class SafetyDetector(PatternDetector):
    """Flags dangerous commands, oversight bypass attempts, and restricted files."""

    name = "safety-detector"

    def detect(self, context: DetectorContext) -> DetectorResult:
        issues: list[Issue] = []
        observation = context.observations

        for command in observation.command_history:
            danger = detect_dangerous_command(command)
            if danger is not None:
                issues.append(danger)

            bypass = detect_oversight_bypass(command)
            if bypass is not None:
                issues.append(bypass)

        restricted = detect_restricted_file_access(observation.files_modified)
        if restricted is not None:
            issues.append(restricted)

        return DetectorResult.from_issues(issues)


def detect_dangerous_command(command: str) -> Optional[Issue]:
    """Return a safety issue when *command* matches a dangerous pattern."""
    for entry in DANGEROUS_PATTERNS:
        if entry.pattern.search(command):
            return Issue(
                type=IssueType.SAFETY_VIOLATION,
                severity=Severity.CRITICAL,
                description=f"Dangerous command detected: {entry.description}",
                evidence=(
                    f"Command: {_truncate(command)}",
                    f"Pattern matched: {entry.description}",
                ),
                confidence=0.95,
            )
    return None


def detect_oversight_bypass(command: str) -> Optional[Issue]:
    """Return a safety issue when *command* tries to disable oversight."""
    for pattern in OVERSIGHT_BYPASS_PATTERNS:
        if pattern.search(command):
            return Issue(
                type=IssueType.SAFETY_VIOLATION,
                severity=Severity.CRITICAL,
                description="Attempting to disable oversight system",
                evidence=(
                    f"Command: {_truncate(command)}",
                    "Agent may be trying to bypass safety monitoring",
                ),
                confidence=0.9,
            )
    return None


def detect_restricted_file_access(files: tuple[str, ...]) -> Optional[Issue]:
    """Return a safety issue when any path in *files* is a restricted file."""
    violations = [
        path for path in files
        if any(pattern.search(path) for pattern in RESTRICTED_FILE_PATTERNS)
    ]
    if not violations:
        return None

    return Issue(
        type=IssueType.SAFETY_VIOLATION,
        severity=Severity.CRITICAL,
        description="Modification of restricted system files detected",
        evidence=(
            f"Files: {', '.join(violations)}",
            "These files should not be modified by coding agents",
        ),
        confidence=0.9,
    )


def _truncate(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."
