"""Keyword extraction used to compare session activity against the task.

Simple tokenisation and normalisation, no NLP dependencies.  The same
functions are applied to the task description, to shell commands, and to
file paths so that the resulting keyword sets are comparable.
"""

from __future__ import annotations

import re

# Common English stop words plus words that say nothing about *what* a
# coding task is about.
STOP_WORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "are", "was", "were", "be", "been",
    "being", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "shall", "can", "this", "that",
    "these", "those", "it", "its", "i", "we", "they", "you", "he", "she",
    "my", "our", "your", "their", "not", "no", "so", "if", "then", "else",
    "when", "while", "as", "up", "out", "about", "into", "over", "after",
    "before", "between", "all", "each", "every", "both", "few", "more",
    "most", "other", "some", "such", "only", "also", "just", "than",
    "very", "too", "now", "new", "use", "using", "used", "add", "added",
    "adding", "create", "created", "creating", "implement", "implemented",
    "implementing", "update", "updated", "updating", "make", "fix", "fixed",
    "please", "task", "file", "files", "code", "module", "function",
    "method",
})

# Tokens that appear in nearly every shell session regardless of the task.
SHELL_NOISE = frozenset({
    "cd", "ls", "ll", "cat", "echo", "grep", "rg", "find", "git", "npm",
    "npx", "pnpm", "yarn", "bun", "node", "python", "python3", "pip", "uv",
    "pytest", "run", "exec", "sudo", "sh", "bash", "zsh", "make", "diff",
    "status", "log", "add", "commit", "push", "pull", "checkout", "branch",
    "install", "dev", "build", "test", "tests", "rm", "mv", "cp", "mkdir",
    "touch", "head", "tail", "less", "vim", "nano", "code", "true", "false",
})

# Path segments that carry no information about the task.
NON_INFORMATIVE_SEGMENTS = frozenset({
    "src", "lib", "app", "tests", "test", "spec", "py", "js", "jsx", "ts",
    "tsx", "json", "md", "yaml", "yml", "cfg", "ini", "txt", "toml", "lock",
    "css", "html", "rs", "go", "index", "__init__", "init", "__pycache__",
})


def extract_keywords(text: str) -> set[str]:
    """Extract meaningful keywords from free text.

    Tokenises on non-alphanumeric boundaries, lowercases, strips stop words,
    and discards very short tokens (< 2 chars) and pure numbers.  camelCase
    and PascalCase words are also split into their parts.
    """
    if not text:
        return set()

    keywords: set[str] = set()
    for token in re.split(r"[^a-zA-Z0-9]+", text.lower()):
        if _is_keyword(token):
            keywords.add(token)

    for part in re.findall(r"[A-Z][a-z]+|[a-z]+", text):
        part = part.lower()
        if _is_keyword(part):
            keywords.add(part)

    return keywords


def extract_command_keywords(command: str) -> set[str]:
    """Extract keywords from a shell command, ignoring ubiquitous tooling words."""
    return {
        kw for kw in extract_keywords(command)
        if kw not in SHELL_NOISE and kw not in NON_INFORMATIVE_SEGMENTS
    }


def extract_path_keywords(file_path: str) -> set[str]:
    """Extract keywords from a file path.

    Splits on path separators, dots, underscores, and hyphens, then on
    camelCase boundaries.  Discards non-informative segments like ``src``.
    """
    if not file_path:
        return set()

    keywords: set[str] = set()
    for segment in re.split(r"[/\\._\-]+", file_path):
        for part in re.findall(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])", segment) or [segment]:
            part = part.lower()
            if part in NON_INFORMATIVE_SEGMENTS:
                continue
            if _is_keyword(part):
                keywords.add(part)
        whole = segment.lower()
        if whole not in NON_INFORMATIVE_SEGMENTS and _is_keyword(whole):
            keywords.add(whole)
    return keywords


def _is_keyword(token: str) -> bool:
    return len(token) >= 2 and not token.isdigit() and token not in STOP_WORDS
