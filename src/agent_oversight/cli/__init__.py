"""Click CLI commands for operating the oversight engine.

Provides the ``oversight`` CLI entry point with subcommands:
- ``oversight check``  -- Run one check on a delegation, optionally executing the intervention.
- ``oversight watch``  -- Run the periodic worker over all active delegations.
- ``oversight status`` -- Show active delegations and the configuration summary.
- ``oversight config`` -- Print the resolved configuration.
"""

from agent_oversight.cli.main import check, cli, show_config, status, watch

__all__ = ["check", "cli", "show_config", "status", "watch"]
