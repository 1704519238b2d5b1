import dataclasses
import shutil
import sys
from datetime import datetime

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from clawback import __version__
from clawback.config import ENV_KEYS, STORAGE_KEYS, load_config, save_global_config
from clawback.credentials import load_credentials, save_credential
from clawback.errors import ClawbackError, ConfigurationError
from clawback.layout import data_prefix, volumes_prefix
from clawback.log import LOGS_FILE, read_logs
from clawback.secrets import ensure_injected
from clawback.staging import OVERWRITE, RESTORE_MODES

STORAGE_ENV = [ENV_KEYS[k] for k in STORAGE_KEYS]
DEPLOY_ENV = ["COOLIFY_API_TOKEN"]
SECRET_FIELDS = {"r2_access_key_id", "r2_secret_access_key", "restic_password", "coolify_api_token"}


def _config(label, required_env, console, **overrides):
    """Inject secrets if needed, then resolve the config once for this command."""
    ensure_injected(required_env, console=console)
    config = _run(label, load_config)
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return dataclasses.replace(config, **overrides) if overrides else config


def _fail(label, error):
    Console(stderr=True).print(f"[red]\\[{label}] ERROR: {escape(str(error))}[/red]",
                               highlight=False, soft_wrap=True)
    raise SystemExit(error.exit_code)


def _run(label, func, *args, **kwargs):
    """Call a workflow; turn ClawbackError into one red line and its exit code."""
    try:
        return func(*args, **kwargs)
    except ClawbackError as e:
        _fail(label, e)


@click.group()
@click.version_option(version=__version__)
def main():
    """clawback: backup, restore and redeploy for OpenClaw on Coolify."""
    load_credentials()


@main.command()
@click.argument("key")
@click.argument("value")
def auth(key, value):
    """Save a credential. Stored in ~/.clawback/credentials.

    Examples:
        clawback auth RESTIC_PASSWORD correct-horse-battery-staple
        clawback auth COOLIFY_API_TOKEN 3|abc...
    """
    save_credential(key, value)
    click.echo(f"Saved {key} to ~/.clawback/credentials")


@main.command("config")
@click.argument("key", required=False)
@click.argument("value", required=False)
def config_cmd(key, value):
    """Show the effective config, or set a host-wide default (e.g. keep_daily 14)."""
    console = Console()
    if key and value is not None:
        _run("config", save_global_config, {key: value})
        console.print(f"Saved {key} to ~/.clawback/config.json")
        return
    if key:
        _fail("config", ConfigurationError("usage: clawback config KEY VALUE"))

    config = _run("config", load_config)
    table = Table(title="Config")
    table.add_column("Key", style="bold cyan")
    table.add_column("Env", style="dim")
    table.add_column("Value")
    for field in dataclasses.fields(config):
        val = getattr(config, field.name)
        if field.name in SECRET_FIELDS and val:
            val = "********"
        table.add_row(field.name, ENV_KEYS[field.name], escape(str(val)))
    console.print(table)


# ----------------------------------------------------------------------
# backup
# ----------------------------------------------------------------------

@main.group()
def backup():
    """Back up OpenClaw state to R2."""


@backup.command("volumes")
@click.argument("resource_uuid", required=False)
def backup_volumes_cmd(resource_uuid):
    """Back up <uuid>_openclaw-data and <uuid>_browser-data from the Docker host."""
    from clawback.backup import backup_volumes

    console = Console()
    config = _config("backup", STORAGE_ENV, console)
    _run("backup", backup_volumes, config, console, resource_uuid=resource_uuid)


@backup.command("data")
def backup_data_cmd():
    """Back up BACKUP_DIR (default /data) from inside the OpenClaw container."""
    from clawback.backup import backup_data

    console = Console()
    config = _config("backup", STORAGE_ENV, console)
    _run("backup", backup_data, config, console)


# ----------------------------------------------------------------------
# restore
# ----------------------------------------------------------------------

def _confirm_overwrite(config, yes, what):
    if config.restore_mode != OVERWRITE or yes or not sys.stdin.isatty():
        return
    if not click.confirm(f"Overwrite mode replaces everything in {what}. Continue?", default=False):
        click.echo("Cancelled.")
        raise SystemExit(0)


@main.group()
def restore():
    """Restore OpenClaw state from an R2 snapshot."""


@restore.command("volumes")
@click.argument("resource_uuid", required=False)
@click.argument("snapshot", required=False)
@click.option("--mode", type=click.Choice(RESTORE_MODES), default=None,
              help="safe: destinations must be empty (default). overwrite: replace their contents.")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt in overwrite mode.")
def restore_volumes_cmd(resource_uuid, snapshot, mode, yes):
    """Restore both OpenClaw volumes from SNAPSHOT ('latest' or a snapshot id)."""
    from clawback.restore import restore_volumes

    console = Console()
    config = _config("restore", STORAGE_ENV, console, restore_mode=mode)
    _confirm_overwrite(config, yes, "both volumes")
    _run("restore", restore_volumes, config, console, snapshot,
         resource_uuid=resource_uuid)


@restore.command("data")
@click.argument("snapshot", required=False)
@click.option("--mode", type=click.Choice(RESTORE_MODES), default=None,
              help="safe: BACKUP_DIR must be empty (default). overwrite: replace its contents.")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt in overwrite mode.")
def restore_data_cmd(snapshot, mode, yes):
    """Restore BACKUP_DIR in place from SNAPSHOT (or $SNAPSHOT)."""
    from clawback.restore import restore_data

    console = Console()
    config = _config("restore", STORAGE_ENV, console, restore_mode=mode)
    _confirm_overwrite(config, yes, config.backup_dir)
    _run("restore", restore_data, config, console, snapshot_ref=snapshot)


# ----------------------------------------------------------------------
# redeploy
# ----------------------------------------------------------------------

@main.command()
@click.option("--force", is_flag=True, default=None, help="Deploy even if already up to date.")
@click.option("--resource", "resource_uuid", default=None, help="Coolify resource uuid.")
def redeploy(force, resource_uuid):
    """Redeploy the Coolify resource if a newer OpenClaw release exists."""
    from clawback.redeploy import redeploy_if_newer

    console = Console()
    config = _config("redeploy", DEPLOY_ENV, console, coolify_force=force or None, resource_uuid=resource_uuid)
    _run("redeploy", redeploy_if_newer, config, console)


# ----------------------------------------------------------------------
# inspection
# ----------------------------------------------------------------------

@main.command()
@click.option("--data", "data_repo", is_flag=True, help="List the data-directory repository.")
@click.option("--resource", "resource_uuid", default=None, help="Coolify resource uuid.")
@click.option("--tag", default=None, help="Only snapshots with this tag.")
@click.option("-n", "--limit", default=25, help="Number of snapshots to show.")
def snapshots(data_repo, resource_uuid, tag, limit):
    """List snapshots in the repository."""
    from clawback.engine import create_engine
    from clawback.repository import Repository

    console = Console()
    config = _config("snapshots", STORAGE_ENV, console, resource_uuid=resource_uuid)
    if data_repo:
        prefix, backend = data_prefix(config.resource_uuid), "local"
    else:
        if not config.resource_uuid:
            _fail("snapshots", ConfigurationError(
                "missing Coolify resource uuid (--resource or COOLIFY_RESOURCE_UUID)"))
        prefix, backend = volumes_prefix(config.resource_uuid), "docker"

    repository = _run("snapshots", Repository.from_config, config, prefix)
    engine = create_engine(backend, repository, config)
    snapshot_list = _run("snapshots", engine.list_snapshots, tag)

    if not snapshot_list:
        console.print("[dim]No snapshots found.[/dim]")
        return

    table = Table(title=f"Snapshots: {repository.locator}")
    table.add_column("ID", style="bold cyan")
    table.add_column("Time", style="dim")
    table.add_column("Host", style="dim")
    table.add_column("Tags")
    table.add_column("Paths", style="dim")

    for s in snapshot_list[-limit:]:
        created = s["time"]
        try:
            created = datetime.fromisoformat(created[:19]).strftime("%Y-%m-%d %H:%M")
        except ValueError:
            pass
        table.add_row(s["short_id"], created, s["hostname"],
                      escape(", ".join(s["tags"])), escape(", ".join(s["paths"])))

    console.print(table)


@main.command()
@click.option("-n", "--limit", default=20, help="Number of log entries to show.")
@click.option("--event", type=click.Choice(["backup", "restore", "redeploy"]), default=None,
              help="Only show one kind of operation.")
def logs(limit, event):
    """Show the operation audit log."""
    console = Console()

    if not LOGS_FILE.exists():
        console.print("[dim]No logs yet. Run a backup first.[/dim]")
        return

    entries = read_logs(event)
    if not entries:
        console.print("[dim]No logs found.[/dim]")
        return

    table = Table(title="Operation Log")
    table.add_column("Time", style="dim")
    table.add_column("Event", style="bold")
    table.add_column("Target", max_width=50)
    table.add_column("Snapshot", style="cyan")
    table.add_column("Result", style="bold")

    for entry in entries[-limit:]:
        ts = entry.get("timestamp", "")
        if ts:
            try:
                ts = datetime.fromisoformat(ts).strftime("%m-%d %H:%M")
            except ValueError:
                pass
        result = entry.get("result", "")
        result_style = {
            "ok": "[green]ok[/green]",
            "deployed": "[green]deployed[/green]",
            "skipped": "[dim]skipped[/dim]",
            "failed": "[red]failed[/red]",
        }.get(result, result)
        target = entry.get("destination") or entry.get("resource") or ""
        table.add_row(
            ts,
            entry.get("event", ""),
            escape(str(target))[:50],
            entry.get("snapshot") or entry.get("latest") or "",
            result_style,
        )

    console.print(table)


@main.command()
@click.option("--bucket", "check_bucket", is_flag=True,
              help="Also confirm the R2 bucket is reachable (needs the r2 extra).")
def check(check_bucket):
    """Check tools and configuration before a scheduled run."""
    from clawback.repository import Repository

    console = Console()
    ok = True

    console.print("[bold]Tools[/bold]")
    for tool in ("docker", "restic", "openclaw", "infisical"):
        found = shutil.which(tool)
        mark = "[green]found[/green]" if found else "[yellow]missing[/yellow]"
        console.print(f"  {tool:<10} {mark}  [dim]{found or ''}[/dim]")
    if not (shutil.which("docker") or shutil.which("restic")):
        console.print("  [red]Need docker (host backups) or restic (in-container backups).[/red]")
        ok = False

    console.print("[bold]Config[/bold]")
    config = _run("check", load_config)
    for key in STORAGE_KEYS + ("coolify_api_token", "resource_uuid"):
        present = bool(getattr(config, key))
        mark = "[green]set[/green]" if present else "[yellow]missing[/yellow]"
        console.print(f"  {ENV_KEYS[key]:<22} {mark}")
        if key in STORAGE_KEYS and not present:
            ok = False

    if check_bucket:
        console.print("[bold]Bucket[/bold]")
        repository = _run("check", Repository.from_config, config,
                          volumes_prefix(config.resource_uuid or "unknown"))
        _run("check", repository.check_bucket)
        console.print(f"  [green]{repository.bucket} reachable[/green]")

    if not ok:
        raise SystemExit(2)
    console.print("[bold green]Ready.[/bold green]")
