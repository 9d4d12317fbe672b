"""Observation collection: buffer heuristics and the session collector."""

from agent_oversight.observation.collector import ObservationCollector, collect
from agent_oversight.observation.heuristics import (
    count_errors,
    extract_commands,
    extract_files_modified,
    hash_scrollback,
)

__all__ = [
    "ObservationCollector",
    "collect",
    "count_errors",
    "extract_commands",
    "extract_files_modified",
    "hash_scrollback",
]
