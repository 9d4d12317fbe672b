"""Configuration and settings module for the oversight engine.

Provides the :class:`OversightConfig` class which centralises all
configuration: detector thresholds, the ``auto_terminate`` gate, the worker
cadence, and where the file-backed delegation store lives.  Configuration is
resolved in priority order:

1. **Environment variables** (highest priority) -- ``OVERSIGHT_*``
2. **Config file** -- ``<project_root>/.oversight/config.json``
3. **Defaults** (lowest priority) -- owned by each detector module

Typical usage::

    config = OversightConfig.load()                       # auto-detect project root
    config = OversightConfig.load("/path/to/project")     # explicit project root
    config = OversightConfig(error_threshold=3)           # programmatic construction

    print(config.auto_terminate)    # False  (or overridden value)
    print(config.error_threshold)   # 10  (or overridden value)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from agent_oversight.detection.cost import (
    DEFAULT_COST_WARNING_FRACTION,
    DEFAULT_MAX_COST_PER_TASK,
    DEFAULT_MAX_TIME_PER_TASK,
    DEFAULT_TIME_CRITICAL_MULTIPLIER,
)
from agent_oversight.detection.deviation import (
    DEFAULT_DEVIATION_GRACE_PERIOD_SECONDS,
    DEFAULT_DEVIATION_MIN_ACTIVITY,
    DEFAULT_DEVIATION_THRESHOLD,
)
from agent_oversight.detection.error_spiral import (
    DEFAULT_ERROR_CRITICAL_MULTIPLIER,
    DEFAULT_ERROR_THRESHOLD,
    DEFAULT_ERROR_TREND_WINDOW,
)
from agent_oversight.detection.loop import (
    DEFAULT_COMMAND_REPEAT_THRESHOLD,
    DEFAULT_LOOP_REPEAT_THRESHOLD,
    DEFAULT_LOOP_SEVERITY,
    DEFAULT_STALL_WINDOW,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Default storage directory name, placed at the project root.
DEFAULT_STORAGE_DIR_NAME = ".oversight"

# Config file name inside the storage directory.
CONFIG_FILE_NAME = "config.json"

# Environment variable prefix.  Every field can be overridden by setting
# ``OVERSIGHT_<UPPER_FIELD>``.  For example, ``OVERSIGHT_AUTO_TERMINATE=true``.
ENV_PREFIX = "OVERSIGHT_"

# Sentinel files used to detect a project root directory.
PROJECT_ROOT_MARKERS = (
    ".git",
    "pyproject.toml",
    "package.json",
    ".oversight",
)

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_SEVERITIES = {"low", "medium", "high", "critical"}

# ---------------------------------------------------------------------------
# Configuration model
# ---------------------------------------------------------------------------


class OversightConfig(BaseModel):
    """Centralised configuration for the oversight engine.

    Every field has a documented default.  Fields can be overridden by a
    ``config.json`` file or by environment variables (see module docstring).
    """

    # General.
    enabled: bool = Field(
        default=True,
        description="When False, checks short-circuit and return no result.",
    )
    auto_terminate: bool = Field(
        default=False,
        description=(
            "Terminate on critical issues instead of pausing for human review. "
            "Safety violations always terminate."
        ),
    )
    check_interval_seconds: int = Field(
        default=30,
        ge=1,
        description="Seconds between worker cycles.",
    )
    max_concurrent: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum delegations checked concurrently per worker cycle.",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL.",
    )
    storage_path: Optional[str] = Field(
        default=None,
        description="Directory of the file-backed delegation store.",
    )
    project_root: Optional[str] = Field(
        default=None,
        description="Detected or configured project root path.",
    )

    # Loop detection.
    loop_repeat_threshold: int = Field(
        default=DEFAULT_LOOP_REPEAT_THRESHOLD,
        ge=2,
        le=20,
        description="Consecutive identical buffer hashes that count as a loop.",
    )
    loop_severity: str = Field(
        default=DEFAULT_LOOP_SEVERITY,
        description="Severity reported for an identical-buffer loop.",
    )
    command_repeat_threshold: int = Field(
        default=DEFAULT_COMMAND_REPEAT_THRESHOLD,
        ge=2,
        le=20,
        description="Identical trailing commands that count as a loop.",
    )
    stall_window: int = Field(
        default=DEFAULT_STALL_WINDOW,
        ge=2,
        le=20,
        description="Observations without progress that count as a stall.",
    )

    # Cost and time.
    max_cost_per_task: float = Field(
        default=DEFAULT_MAX_COST_PER_TASK,
        gt=0,
        description="Budget ceiling per task in dollars.",
    )
    cost_warning_fraction: float = Field(
        default=DEFAULT_COST_WARNING_FRACTION,
        gt=0,
        le=1,
        description="Fraction of the budget at which cost runaway is flagged.",
    )
    max_time_per_task: int = Field(
        default=DEFAULT_MAX_TIME_PER_TASK,
        ge=1,
        description="Time ceiling per task in seconds.",
    )
    time_critical_multiplier: float = Field(
        default=DEFAULT_TIME_CRITICAL_MULTIPLIER,
        ge=1,
        description="Multiple of the time ceiling at which time runaway is critical.",
    )

    # Errors.
    error_threshold: int = Field(
        default=DEFAULT_ERROR_THRESHOLD,
        ge=0,
        description="Error count above which an error spiral is flagged.",
    )
    error_critical_multiplier: float = Field(
        default=DEFAULT_ERROR_CRITICAL_MULTIPLIER,
        ge=1,
        description="Multiple of the error threshold at which the spiral is critical.",
    )
    error_trend_window: int = Field(
        default=DEFAULT_ERROR_TREND_WINDOW,
        ge=2,
        le=20,
        description="Observations inspected for a rising error count.",
    )

    # Deviation.
    deviation_grace_period_seconds: int = Field(
        default=DEFAULT_DEVIATION_GRACE_PERIOD_SECONDS,
        ge=0,
        description="Seconds after start before deviation is evaluated.",
    )
    deviation_threshold: float = Field(
        default=DEFAULT_DEVIATION_THRESHOLD,
        ge=0,
        le=1,
        description="Relevance score below which task deviation is flagged.",
    )
    deviation_min_activity: int = Field(
        default=DEFAULT_DEVIATION_MIN_ACTIVITY,
        ge=1,
        description="Minimum scored files and commands before deviation is evaluated.",
    )

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def resolve_paths(self) -> "OversightConfig":
        """Resolve ``project_root`` and ``storage_path`` to absolute paths."""
        if self.project_root is not None:
            self.project_root = str(Path(self.project_root).resolve())
        else:
            detected = _detect_project_root()
            self.project_root = str(detected if detected is not None else Path.cwd())

        if self.storage_path is not None:
            self.storage_path = str(Path(self.storage_path).resolve())
        else:
            self.storage_path = str(Path(self.project_root) / DEFAULT_STORAGE_DIR_NAME)
        return self

    @model_validator(mode="after")
    def validate_levels(self) -> "OversightConfig":
        """Normalise and validate the log level and loop severity strings."""
        normalised = self.log_level.upper().strip()
        if normalised not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level '{self.log_level}'. "
                f"Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}."
            )
        self.log_level = normalised

        severity = self.loop_severity.lower().strip()
        if severity not in _VALID_SEVERITIES:
            raise ValueError(
                f"Invalid loop_severity '{self.loop_severity}'. "
                f"Must be one of: {', '.join(sorted(_VALID_SEVERITIES))}."
            )
        self.loop_severity = severity
        return self

    # ------------------------------------------------------------------
    # Factory: load from file + environment
    # ------------------------------------------------------------------

    @classmethod
    def load(
        cls,
        project_root: Optional[str] = None,
        config_path: Optional[str] = None,
    ) -> "OversightConfig":
        """Load configuration with full resolution: env -> file -> defaults.

        Parameters
        ----------
        project_root:
            Explicit project root.  When *None*, auto-detection is used.
        config_path:
            Explicit path to a ``config.json`` file.  When *None*, the file is
            looked up at ``<project_root>/.oversight/config.json``.
        """
        if project_root is not None:
            resolved_root = str(Path(project_root).resolve())
        else:
            detected = _detect_project_root()
            resolved_root = str(detected if detected is not None else Path.cwd())

        merged: dict = {}
        merged.update(_load_config_file(resolved_root, config_path))
        merged.update(_load_env_overrides())
        merged["project_root"] = resolved_root

        return cls.model_validate(merged)

    def with_overrides(self, **overrides) -> "OversightConfig":
        """Return a validated copy with *overrides* applied."""
        data = self.model_dump()
        data.update(overrides)
        return type(self).model_validate(data)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, config_path: Optional[str] = None) -> Path:
        """Save the tunable fields to a JSON file atomically.

        ``project_root`` and a derived ``storage_path`` are not written, which
        keeps the file portable between checkouts.
        """
        if config_path is not None:
            target = Path(config_path).resolve()
        else:
            target = Path(self.storage_path) / CONFIG_FILE_NAME
        target.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude={"project_root", "storage_path"})
        default_storage = str(Path(self.project_root) / DEFAULT_STORAGE_DIR_NAME)
        if self.storage_path != default_storage:
            data["storage_path"] = self.storage_path

        fd, tmp_path = tempfile.mkstemp(
            dir=str(target.parent), prefix=".tmp_", suffix=".json",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                json.dump(data, fp, indent=2, ensure_ascii=False)
                fp.write("\n")
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.info("Saved configuration to %s", target)
        return target

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    def configure_logging(self) -> None:
        """Apply the configured log level to the ``agent_oversight`` logger.

        Adds a single StreamHandler the first time it is called; calling it
        again only updates the level.
        """
        pkg_logger = logging.getLogger("agent_oversight")
        pkg_logger.setLevel(self.log_level)

        if not pkg_logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(self.log_level)
            handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            pkg_logger.addHandler(handler)

    def to_dict(self) -> dict:
        """Return all configuration values as a plain dictionary."""
        return self.model_dump()


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _detect_project_root(start_path: Optional[Path] = None) -> Optional[Path]:
    """Walk upward from *start_path* to the first directory holding a marker."""
    current = (start_path or Path.cwd()).resolve()

    for _ in range(50):
        for marker in PROJECT_ROOT_MARKERS:
            if (current / marker).exists():
                return current
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _load_config_file(
    project_root: str,
    config_path: Optional[str] = None,
) -> dict:
    """Read a ``config.json`` file; an empty dict if missing or malformed."""
    if config_path is not None:
        path = Path(config_path).resolve()
    else:
        path = Path(project_root) / DEFAULT_STORAGE_DIR_NAME / CONFIG_FILE_NAME

    if not path.is_file():
        logger.debug("No config file at %s. Using defaults.", path)
        return {}

    try:
        with open(path, "r", encoding="utf-8") as fp:
            data = json.load(fp)
    except json.JSONDecodeError:
        logger.warning("Config file %s contains invalid JSON. Ignoring.", path, exc_info=True)
        return {}
    except OSError:
        logger.warning("Could not read config file %s. Ignoring.", path, exc_info=True)
        return {}

    if not isinstance(data, dict):
        logger.warning("Config file %s does not contain a JSON object. Ignoring.", path)
        return {}

    logger.info("Loaded configuration from %s", path)
    return data


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


def _load_env_overrides() -> dict:
    """Read ``OVERSIGHT_*`` environment variables and return typed overrides.

    Values that cannot be parsed for their field's type are logged and
    ignored.  ``OVERSIGHT_PROJECT_ROOT`` is not supported; pass the project
    root to :meth:`OversightConfig.load` instead.
    """
    overrides: dict = {}
    parsers = {bool: _parse_bool, int: int, float: float, str: str}

    for field_name, info in OversightConfig.model_fields.items():
        if field_name == "project_root":
            continue
        raw = os.environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if raw is None:
            continue

        annotation = info.annotation
        parser = parsers.get(annotation, str)
        try:
            overrides[field_name] = parser(raw)
        except ValueError:
            logger.warning(
                "Invalid %s%s value: %r. Ignoring.",
                ENV_PREFIX,
                field_name.upper(),
                raw,
            )

    if overrides:
        logger.info("Environment overrides applied: %s", ", ".join(overrides))

    return overrides
