from clawback.backup import require_tool
from clawback.destination import create_destination
from clawback.engine import create_engine
from clawback.errors import ClawbackError, ConfigurationError, DestinationMissing
from clawback.layout import (
    VOLUMES,
    data_prefix,
    data_subtree,
    volume_name,
    volume_subtree,
    volumes_prefix,
)
from clawback.log import write_log
from clawback.repository import Repository
from clawback.staging import RestoreTarget, parse_restore_mode, restore_all
from clawback.tracing import StageTimer


def _say(console, message):
    console.print(f"\\[restore] {message}", highlight=False)


def restore_volumes(config, console, snapshot_ref, resource_uuid=None, mode=None, engine=None):
    """Restore a Coolify resource's OpenClaw volumes from a host-side snapshot."""
    resource_uuid = resource_uuid or config.resource_uuid
    if not resource_uuid:
        raise ConfigurationError("missing Coolify resource uuid (argument or COOLIFY_RESOURCE_UUID)")
    if not snapshot_ref:
        raise ConfigurationError("missing snapshot id, use 'latest' or a snapshot hash")
    require_tool("docker")

    repository = Repository.from_config(config, volumes_prefix(resource_uuid))
    mode = parse_restore_mode(mode or config.restore_mode)

    targets = []
    for volume in VOLUMES:
        destination = create_destination("volume", volume_name(resource_uuid, volume))
        if not destination.exists():
            raise DestinationMissing(f"docker volume not found: {destination.name}",
                                     destination=destination.name)
        targets.append(RestoreTarget(destination, volume_subtree(volume)))

    engine = engine or create_engine("docker", repository, config)
    _say(console, f"resource: {resource_uuid}")
    _say(console, f"repo: {repository.locator}")
    return _logged_restore(targets, snapshot_ref, mode, engine, console, repository)


def restore_data(config, console, snapshot_ref=None, mode=None, engine=None):
    """Restore OpenClaw's data directory in place, from inside its container."""
    snapshot_ref = snapshot_ref or config.snapshot
    if not snapshot_ref:
        raise ConfigurationError("SNAPSHOT is required (e.g. latest)")
    if engine is None:
        require_tool("restic")

    repository = Repository.from_config(config, data_prefix(config.resource_uuid))
    mode = parse_restore_mode(mode or config.restore_mode)

    subtree = data_subtree(config.backup_dir)
    if not subtree:
        raise ConfigurationError(f"BACKUP_DIR cannot be the filesystem root: {config.backup_dir}")
    destination = create_destination("directory", config.backup_dir)

    engine = engine or create_engine("local", repository, config)
    _say(console, f"repo: {repository.locator}")
    _say(console, f"backup_dir: {config.backup_dir}")
    return _logged_restore([RestoreTarget(destination, subtree)], snapshot_ref, mode,
                           engine, console, repository)


def _logged_restore(targets, snapshot_ref, mode, engine, console, repository):
    _say(console, f"snapshot: {snapshot_ref}")
    _say(console, f"mode: {mode}")
    entry = {
        "event": "restore",
        "snapshot": snapshot_ref,
        "mode": mode,
        "repository": repository.locator,
    }

    timer = StageTimer(console)
    try:
        restored = restore_all(targets, snapshot_ref, mode, engine, console=console)
    except ClawbackError as e:
        write_log({**entry, "result": "failed", "destination": e.destination, "error": str(e)})
        raise
    timer.mark("restore")

    write_log({**entry, "result": "ok", "destination": ", ".join(restored)})
    _say(console, "restore completed.")
    return restored
