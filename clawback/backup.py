import shutil
import socket
from datetime import datetime, timezone
from pathlib import Path

from clawback.destination import create_destination
from clawback.engine import create_engine
from clawback.engine.base import BackupSource
from clawback.errors import ConfigurationError
from clawback.layout import (
    COOLIFY_APP_MOUNT,
    DATA_TAG,
    SNAPSHOT_ROOT,
    VOLUMES,
    VOLUMES_TAG,
    coolify_app_dir,
    data_prefix,
    volume_name,
    volumes_prefix,
)
from clawback.log import write_log
from clawback.repository import Repository
from clawback.tracing import StageTimer

SUMMARY_KEYWORDS = ("added", "processed", "snapshot")
RECENT_SNAPSHOTS = 25


def _say(console, message):
    console.print(f"\\[backup] {message}", highlight=False)


def require_tool(name):
    if shutil.which(name) is None:
        raise ConfigurationError(f"{name} not found on PATH")


def timestamp_tag(now=None):
    now = now or datetime.now(timezone.utc)
    return f"ts={now.strftime('%Y%m%dT%H%M%SZ')}"


def run_backup(engine, sources, tags, tag, retention, console):
    """Initialize if needed, snapshot sources, apply retention. Returns recent snapshots."""
    timer = StageTimer(console)

    if engine.ensure_repository():
        _say(console, "initialized restic repository")
    timer.mark("repository")

    _say(console, "running backup...")
    summary = engine.backup(sources, tags)
    for line in (summary or "").splitlines():
        if any(word in line.lower() for word in SUMMARY_KEYWORDS):
            console.print(f"  {line.strip()}", highlight=False)
    timer.mark("backup")

    _say(console, f"applying retention ({retention})...")
    engine.forget(tag, retention)
    timer.mark("retention")

    return engine.list_snapshots(tag)[-RECENT_SNAPSHOTS:]


def backup_volumes(config, console, resource_uuid=None, engine=None):
    """Back up a Coolify resource's OpenClaw volumes from the Docker host."""
    resource_uuid = resource_uuid or config.resource_uuid
    if not resource_uuid:
        raise ConfigurationError("missing Coolify resource uuid (argument or COOLIFY_RESOURCE_UUID)")
    require_tool("docker")

    repository = Repository.from_config(config, volumes_prefix(resource_uuid))
    engine = engine or create_engine("docker", repository, config)
    tag = config.restic_tag or VOLUMES_TAG

    sources = []
    for volume in VOLUMES:
        name = volume_name(resource_uuid, volume)
        if not create_destination("volume", name).exists():
            raise ConfigurationError(f"docker volume not found: {name}")
        sources.append(BackupSource(name, f"{SNAPSHOT_ROOT}/{volume}"))

    _say(console, f"resource: {resource_uuid}")
    _say(console, f"volumes: {', '.join(s.host for s in sources)}")

    app_dir = coolify_app_dir(resource_uuid)
    if config.include_coolify_app_dir and app_dir.is_dir():
        _say(console, f"including coolify app dir: {app_dir}")
        sources.append(BackupSource(app_dir, COOLIFY_APP_MOUNT))
    else:
        exists = "yes" if app_dir.is_dir() else "no"
        _say(console, f"skipping coolify app dir (INCLUDE_COOLIFY_APP_DIR="
                      f"{str(config.include_coolify_app_dir).lower()}, exists={exists})")

    tags = [
        tag,
        f"resource={resource_uuid}",
        f"host={socket.gethostname() or 'unknown'}",
        timestamp_tag(),
    ]
    _say(console, f"restic repo: {repository.locator}")
    return _logged_backup(engine, sources, tags, tag, config, console, repository, resource_uuid)


def backup_data(config, console, engine=None):
    """Back up OpenClaw's data directory from inside its container."""
    if engine is None:
        require_tool("restic")
    resource_uuid = config.resource_uuid or "unknown"
    repository = Repository.from_config(config, data_prefix(config.resource_uuid))

    backup_dir = Path(config.backup_dir)
    if not backup_dir.is_dir():
        raise ConfigurationError(f"BACKUP_DIR does not exist: {backup_dir}")

    engine = engine or create_engine("local", repository, config)
    tag = config.restic_tag or DATA_TAG
    tags = [tag, f"resource={resource_uuid}", timestamp_tag()]

    _say(console, f"repo: {repository.locator}")
    _say(console, f"dir:  {backup_dir}")
    _say(console, f"tag:  {tag}")
    sources = [BackupSource(backup_dir, backup_dir)]
    return _logged_backup(engine, sources, tags, tag, config, console, repository, resource_uuid)


def _logged_backup(engine, sources, tags, tag, config, console, repository, resource_uuid):
    entry = {
        "event": "backup",
        "resource": resource_uuid,
        "repository": repository.locator,
        "sources": [s.host for s in sources],
        "tag": tag,
    }
    try:
        snapshots = run_backup(engine, sources, tags, tag, config.retention, console)
    except Exception:
        write_log({**entry, "result": "failed"})
        raise
    write_log({**entry, "result": "ok", "snapshot": snapshots[-1]["short_id"] if snapshots else ""})
    _say(console, "done")
    return snapshots
