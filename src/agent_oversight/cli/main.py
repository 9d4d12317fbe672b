"""Main Click CLI entry point for the oversight command.

Provides the ``oversight`` CLI group with commands to check a single
delegation, run the periodic worker, and inspect store and configuration.

Entry point registered in pyproject.toml::

    [project.scripts]
    oversight = "agent_oversight.cli.main:cli"

Usage examples::

    oversight --version
    oversight status
    oversight status --json-output
    oversight check d-123 --execute
    oversight watch --once
    oversight --storage-path /path/to/.oversight config
"""

from __future__ import annotations

import json
import sys
import time
from datetime import datetime, timezone
from typing import Optional

import click

from agent_oversight import __version__
from agent_oversight.config import OversightConfig
from agent_oversight.engine.service import OversightEngine
from agent_oversight.models.check import CheckStatus
from agent_oversight.models.records import ACTIVE_STATUSES, DelegationStatus
from agent_oversight.session.control import TmuxSessionControl
from agent_oversight.storage.store import JsonDelegationStore
from agent_oversight.worker import OversightWorker

_STATUS_COLOURS = {
    CheckStatus.HEALTHY.value: "green",
    CheckStatus.WARNING.value: "yellow",
    CheckStatus.CRITICAL.value: "red",
}


@click.group()
@click.version_option(version=__version__, prog_name="agent-oversight")
@click.option(
    "--storage-path",
    type=click.Path(exists=False),
    default=None,
    envvar="OVERSIGHT_STORAGE_PATH",
    help="Path to the .oversight storage directory. Auto-detected if not set.",
)
@click.option(
    "--tmux-binary",
    default="tmux",
    envvar="OVERSIGHT_TMUX_BINARY",
    show_default=True,
    help="tmux executable used to read and drive agent sessions.",
)
@click.pass_context
def cli(ctx: click.Context, storage_path: Optional[str], tmux_binary: str) -> None:
    """Agent Oversight -- Watch autonomous agent sessions and intervene."""
    ctx.ensure_object(dict)
    ctx.obj["storage_path"] = storage_path
    ctx.obj["tmux_binary"] = tmux_binary


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("delegation_id")
@click.option(
    "--execute",
    is_flag=True,
    default=False,
    help="Execute the chosen intervention instead of only reporting it.",
)
@click.option(
    "--json-output",
    "output_json",
    is_flag=True,
    default=False,
    help="Output the check as JSON instead of human-readable text.",
)
@click.pass_context
def check(ctx: click.Context, delegation_id: str, execute: bool, output_json: bool) -> None:
    """Run one oversight check on DELEGATION_ID.

    Prints the observation, the detected issues and the chosen intervention.
    Exits with status 1 when the delegation is missing or no longer active.
    """
    config, store, engine = _build(ctx)

    result = engine.check_delegation(delegation_id)
    if result is None:
        click.secho(
            f"No check performed: delegation {delegation_id} is missing, "
            "inactive, or oversight is disabled.",
            fg="yellow",
            err=True,
        )
        sys.exit(1)

    if execute and result.requires_intervention():
        result = engine.execute_intervention(result)

    data = result.to_dict()
    if output_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        _render_check_text(data)


@cli.command()
@click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Run a single cycle and exit.",
)
@click.option(
    "--interval",
    type=click.IntRange(min=1),
    default=None,
    help="Seconds between cycles. Defaults to the configured check interval.",
)
@click.pass_context
def watch(ctx: click.Context, once: bool, interval: Optional[int]) -> None:
    """Oversee every active delegation on a fixed interval.

    Checks each running or monitoring delegation, executes the interventions
    the checks call for, and releases state for delegations that finished.
    """
    config, store, engine = _build(ctx)
    if interval is not None:
        config = config.with_overrides(check_interval_seconds=interval)

    worker = OversightWorker(engine, store, config)

    if once:
        report = worker.run_cycle()
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    config.configure_logging()
    click.secho(
        f"Watching delegations every {config.check_interval_seconds}s "
        "(Ctrl+C to stop).",
        fg="cyan",
    )
    worker.start()
    try:
        while worker.is_running():
            time.sleep(0.5)
    except KeyboardInterrupt:
        click.echo()
    finally:
        worker.stop()
    click.secho("Stopped.", fg="cyan")


@cli.command()
@click.option(
    "--json-output",
    "output_json",
    is_flag=True,
    default=False,
    help="Output status as JSON instead of human-readable text.",
)
@click.pass_context
def status(ctx: click.Context, output_json: bool) -> None:
    """Show active delegations and the oversight configuration."""
    data = _collect_status(ctx.obj.get("storage_path"))

    if output_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        _render_status_text(data)


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Print the resolved configuration as JSON."""
    config = _load_config(ctx.obj.get("storage_path"))
    click.echo(json.dumps(config.to_dict(), indent=2, default=str))


# ---------------------------------------------------------------------------
# Construction helpers
# ---------------------------------------------------------------------------


def _load_config(storage_path: Optional[str]) -> OversightConfig:
    config = OversightConfig.load()
    if storage_path:
        config = config.with_overrides(storage_path=storage_path)
    return config


def _build(ctx: click.Context) -> tuple[OversightConfig, JsonDelegationStore, OversightEngine]:
    config = _load_config(ctx.obj.get("storage_path"))
    store = JsonDelegationStore(config.storage_path)
    engine = OversightEngine(
        store,
        TmuxSessionControl(tmux_binary=ctx.obj.get("tmux_binary", "tmux")),
        config=config,
    )
    return config, store, engine


# ---------------------------------------------------------------------------
# Status data collection
# ---------------------------------------------------------------------------


def _collect_status(storage_path: Optional[str]) -> dict:
    """Collect store and configuration information into a dictionary.

    Parameters
    ----------
    storage_path:
        Explicit storage path.  When None, auto-detection is used.

    Returns
    -------
    dict
        Status data suitable for JSON serialisation or text rendering.
    """
    try:
        config = _load_config(storage_path)
        store = JsonDelegationStore(config.storage_path)
    except Exception as exc:
        return {
            "status": "error",
            "error": f"Failed to initialise oversight: {exc}",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    delegations = store.list_delegations()
    counts = {s.value: 0 for s in DelegationStatus}
    for delegation in delegations:
        counts[delegation.status.value] += 1

    active = [
        {
            "id": d.id,
            "status": d.status.value,
            "task_id": d.task_id,
            "session_id": d.session_id,
            "agent_provider": d.agent_provider,
            "cost_accumulated": d.cost_accumulated,
            "created_at": d.created_at.isoformat(),
        }
        for d in delegations
        if d.status in ACTIVE_STATUSES
    ]

    return {
        "status": "ok",
        "version": __version__,
        "storage_path": config.storage_path,
        "delegation_counts": counts,
        "active_delegations": active,
        "config": {
            "enabled": config.enabled,
            "auto_terminate": config.auto_terminate,
            "check_interval_seconds": config.check_interval_seconds,
            "max_concurrent": config.max_concurrent,
            "max_cost_per_task": config.max_cost_per_task,
            "max_time_per_task": config.max_time_per_task,
            "error_threshold": config.error_threshold,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _render_status_text(data: dict) -> None:
    if data.get("status") == "error":
        click.secho("ERROR: " + data.get("error", "Unknown error"), fg="red", err=True)
        sys.exit(1)

    click.secho("Agent Oversight -- Status", fg="cyan", bold=True)
    click.secho("=" * 42, fg="cyan")
    click.echo(f"Version: {data.get('version', 'unknown')}")
    click.echo(f"Storage: {data.get('storage_path', '?')}")
    click.echo()

    active = data.get("active_delegations", [])
    if active:
        click.secho("Active Delegations", fg="green", bold=True)
        click.secho("-" * 20, fg="green")
        for d in active:
            click.echo(
                f"  {d['id']:16s} {d['status']:11s} task={d['task_id']} "
                f"cost=${d['cost_accumulated']:.2f}"
            )
    else:
        click.secho("No active delegations", fg="yellow")
    click.echo()

    counts = data.get("delegation_counts", {})
    click.secho("Delegations by Status", fg="blue", bold=True)
    click.secho("-" * 20, fg="blue")
    for name, count in counts.items():
        click.echo(f"  {name:11s} {count}")
    click.echo()

    cfg = data.get("config", {})
    click.secho("Configuration", fg="white", bold=True)
    click.secho("-" * 20, fg="white")
    click.echo(f"  Enabled:          {cfg.get('enabled', '?')}")
    click.echo(f"  Auto-terminate:   {cfg.get('auto_terminate', '?')}")
    click.echo(f"  Check interval:   {cfg.get('check_interval_seconds', '?')}s")
    click.echo(f"  Max concurrent:   {cfg.get('max_concurrent', '?')}")
    click.echo(f"  Max cost:         ${cfg.get('max_cost_per_task', '?')}")
    click.echo(f"  Max time:         {cfg.get('max_time_per_task', '?')}s")
    click.echo(f"  Error threshold:  {cfg.get('error_threshold', '?')}")


def _render_check_text(data: dict) -> None:
    status_value = data.get("status", "?")
    click.secho(
        f"Delegation {data['delegation_id']}: {status_value.upper()}",
        fg=_STATUS_COLOURS.get(status_value, "white"),
        bold=True,
    )

    obs = data.get("observations", {})
    click.echo(
        f"  Elapsed {obs.get('time_elapsed', 0)}s, "
        f"cost ${obs.get('cost_accumulated', 0.0):.2f}, "
        f"{obs.get('error_count', 0)} error marker(s), "
        f"{len(obs.get('command_history', []))} command(s)"
    )

    issues = data.get("issues", [])
    if issues:
        click.echo()
        click.secho("Issues", bold=True)
        for issue in issues:
            click.echo(f"  [{issue['severity']}] {issue['type']}: {issue['description']}")

    intervention = data.get("intervention") or {}
    click.echo()
    click.echo(f"Intervention: {intervention.get('type', 'none')}")
    if intervention.get("action"):
        click.echo(f"  Action:   {intervention['action']}")
    if intervention.get("type", "none") != "none":
        executed = "yes" if data.get("intervention_executed") else "no"
        click.echo(f"  Executed: {executed}")


if __name__ == "__main__":
    cli()
