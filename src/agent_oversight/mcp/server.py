"""FastMCP server exposing the oversight engine as tools.

Sets up the FastMCP server instance, builds the delegation store and the
oversight engine from configuration, and registers the oversight tools.

Typical usage as an MCP server entry point::

    # Via the registered entry point (pyproject.toml):
    # [project.entry-points."mcp.servers"]
    # agent-oversight = "agent_oversight.mcp:create_server"

    # Or programmatically:
    from agent_oversight.mcp.server import create_server
    server = create_server()
    server.run(transport="stdio")

Tools:
- health_check -- server, store and engine status
- check_delegation -- run one oversight check, optionally executing the intervention
- get_oversight_state -- bounded history kept for a delegation
- list_active_oversights -- delegations that currently have oversight state
- cleanup_delegation -- release a delegation's oversight state
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastmcp import FastMCP

from agent_oversight import __version__
from agent_oversight.config import OversightConfig
from agent_oversight.engine.service import OversightEngine
from agent_oversight.session.control import SessionControl, TmuxSessionControl
from agent_oversight.storage.store import JsonDelegationStore

logger = logging.getLogger(__name__)

# Module-level references shared by every tool.  Created by create_server().
_server_instance: Optional[FastMCP] = None
_engine: Optional[OversightEngine] = None
_store: Optional[JsonDelegationStore] = None
_config: Optional[OversightConfig] = None


def create_server(
    project_root: Optional[str] = None,
    config_path: Optional[str] = None,
    session_control: Optional[SessionControl] = None,
) -> FastMCP:
    """Create and configure the FastMCP server instance.

    1. Loads configuration (OversightConfig) with project root auto-detection.
    2. Creates the JSON delegation store and the oversight engine.
    3. Instantiates the FastMCP server and registers the oversight tools.

    Parameters
    ----------
    project_root:
        Explicit project root path.  When None, it is auto-detected.
    config_path:
        Explicit config file path.  When None, looks for
        ``<project_root>/.oversight/config.json``.
    session_control:
        Session control surface.  Defaults to :class:`TmuxSessionControl`.

    Returns
    -------
    FastMCP
        The configured server instance.
    """
    global _server_instance, _engine, _store, _config

    _config = OversightConfig.load(
        project_root=project_root,
        config_path=config_path,
    )
    _config.configure_logging()

    logger.info("Initializing agent oversight MCP server v%s", __version__)
    logger.info("Storage path: %s", _config.storage_path)

    _store = JsonDelegationStore(_config.storage_path)
    _engine = OversightEngine(
        _store,
        session_control if session_control is not None else TmuxSessionControl(),
        config=_config,
    )

    _server_instance = FastMCP(
        name="agent-oversight",
        instructions=(
            "Agent Oversight watches autonomous agent sessions for loops, cost "
            "and time runaway, error spirals, task deviation and unsafe "
            "commands. Use check_delegation to run a check and "
            "get_oversight_state to inspect the recent history."
        ),
        version=__version__,
    )

    _register_tools(_server_instance)

    logger.info("FastMCP server created successfully. Tools registered.")
    return _server_instance


def get_server() -> FastMCP:
    """Return the existing server instance, creating it if necessary."""
    if _server_instance is None:
        return create_server()
    return _server_instance


def get_engine() -> OversightEngine:
    """Return the engine used by the server.

    Raises
    ------
    RuntimeError
        If the server has not been created yet.
    """
    if _engine is None:
        raise RuntimeError(
            "Server has not been initialized. Call create_server() first."
        )
    return _engine


def get_store() -> JsonDelegationStore:
    """Return the delegation store used by the server."""
    if _store is None:
        raise RuntimeError(
            "Server has not been initialized. Call create_server() first."
        )
    return _store


def get_config() -> OversightConfig:
    """Return the configuration used by the server."""
    if _config is None:
        raise RuntimeError(
            "Server has not been initialized. Call create_server() first."
        )
    return _config


def reset_server() -> None:
    """Clear the module-level references (primarily for testing)."""
    global _server_instance, _engine, _store, _config
    _server_instance = None
    _engine = None
    _store = None
    _config = None
    logger.debug("Server singleton reset.")


def _error(message: str) -> dict:
    return {
        "error": True,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---------------------------------------------------------------------------
# Tool registration
# ---------------------------------------------------------------------------


def _register_tools(server: FastMCP) -> None:
    """Register all MCP tools on the server instance."""

    @server.tool()
    def health_check() -> dict:
        """Check the health and status of the oversight server.

        Returns:
            A dictionary with:
            - server_version: The server version string
            - status: "healthy", "disabled" or "degraded"
            - storage_path: Path to the .oversight directory
            - storage_accessible: Whether the storage directory exists
            - enabled: Whether oversight checks run
            - auto_terminate: Whether critical issues terminate sessions
            - detectors: Registered detector names, in run order
            - active_oversights: Number of delegations with oversight state
            - project_root: The detected project root path
            - timestamp: ISO 8601 timestamp of this health check
        """
        engine = get_engine()
        cfg = get_config()
        store = get_store()

        storage_accessible = store.storage_root.is_dir()
        if not storage_accessible:
            status = "degraded"
        elif not cfg.enabled:
            status = "disabled"
        else:
            status = "healthy"

        return {
            "server_version": __version__,
            "status": status,
            "storage_path": str(store.storage_root),
            "storage_accessible": storage_accessible,
            "enabled": cfg.enabled,
            "auto_terminate": cfg.auto_terminate,
            "detectors": engine.registry.names,
            "active_oversights": len(engine.get_active_oversights()),
            "project_root": cfg.project_root,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @server.tool()
    def check_delegation(delegation_id: str, execute: bool = False) -> dict:
        """Run one oversight check on a delegation.

        Captures the delegation's session, runs every detector, and decides
        an intervention.  With execute=True the intervention is carried out
        (text injected into the session, delegation paused, or session
        terminated).

        Args:
            delegation_id: The delegation to check.
            execute: Execute the chosen intervention.  Defaults to False.

        Returns:
            A dictionary with the check (observation, issues, intervention,
            status), or an error if the delegation is missing or inactive.
        """
        engine = get_engine()
        check = engine.check_delegation(delegation_id)
        if check is None:
            return _error(
                f"No check performed for {delegation_id}: the delegation is "
                "missing, not active, or oversight is disabled."
            )

        if execute and check.requires_intervention():
            check = engine.execute_intervention(check)

        return {"error": False, "check": check.to_dict()}

    @server.tool()
    def get_oversight_state(delegation_id: str) -> dict:
        """Return the oversight state kept for a delegation.

        Args:
            delegation_id: The delegation to inspect.

        Returns:
            A dictionary with the recent observation history and the last
            check, or an error if the delegation has no state.
        """
        state = get_engine().get_oversight_state(delegation_id)
        if state is None:
            return _error(f"No oversight state for delegation {delegation_id}.")
        return {"error": False, "state": state.to_dict()}

    @server.tool()
    def list_active_oversights() -> dict:
        """List delegations that currently have oversight state.

        Returns:
            A dictionary with the delegation IDs and their count.
        """
        ids = get_engine().get_active_oversights()
        return {"error": False, "delegation_ids": ids, "count": len(ids)}

    @server.tool()
    def cleanup_delegation(delegation_id: str) -> dict:
        """Release the oversight state for a delegation.

        Safe to call at any time, including for delegations without state.

        Args:
            delegation_id: The delegation whose state is released.

        Returns:
            A dictionary confirming the cleanup.
        """
        engine = get_engine()
        had_state = delegation_id in engine.get_active_oversights()
        engine.cleanup_delegation(delegation_id)
        return {
            "error": False,
            "delegation_id": delegation_id,
            "released": had_state,
        }
