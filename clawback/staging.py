"""Snapshot staging: restore a snapshot subtree into a live destination.

A restore never writes into the destination root until the snapshot engine has
produced the expected subtree in a staging directory beside the live data:

    1. create  <dest>/__restic_restore-<id>
    2. engine materializes <subtree>/** from the snapshot into it
    3. verify  <dest>/__restic_restore-<id>/<subtree> is a directory
    4. overwrite mode: rename prior entries into <dest>/__restic_restore-<id>-previous
    5. copy the children of the restored subtree into the root
    6. overwrite mode: drop the set-aside entries (or move them back if step 4 or 5 failed)
    7. remove the staging directory

Safe mode refuses to start unless the destination has no direct children. Any
nested entry has a direct-child ancestor, so checking depth 1 is enough.
"""

import uuid

from clawback.errors import (
    ClawbackError,
    ConfigurationError,
    DestinationMissing,
    DestinationNotEmpty,
    EngineFailure,
    RestoreEngineFailure,
    UnexpectedSnapshotLayout,
)

SAFE = "safe"
OVERWRITE = "overwrite"
RESTORE_MODES = (SAFE, OVERWRITE)

STAGING_PREFIX = "__restic_restore"


def parse_restore_mode(value):
    mode = str(value or SAFE).strip().lower()
    if mode not in RESTORE_MODES:
        raise ConfigurationError(f"invalid RESTORE_MODE: {value} (expected safe|overwrite)")
    return mode


class RestoreTarget:
    """A destination and the snapshot subtree that belongs in it."""

    def __init__(self, destination, subtree):
        self.destination = destination
        self.subtree = subtree.strip("/")

    @property
    def include(self):
        return f"{self.subtree}/**"

    def __repr__(self):
        return f"RestoreTarget({self.destination.name!r}, {self.subtree!r})"


def _say(console, message):
    if console is not None:
        console.print(f"\\[restore] {message}", highlight=False)


def check_destination(destination, mode):
    """Raise if the destination cannot be restored into under this mode."""
    if not destination.exists():
        raise DestinationMissing(
            f"destination not found or not writable: {destination.name}",
            destination=destination.name,
        )
    if mode == SAFE and destination.entries():
        raise DestinationNotEmpty(
            f"destination not empty: {destination.name} (set RESTORE_MODE=overwrite if intended)",
            destination=destination.name,
        )


def restore(target, snapshot_ref, mode, engine, console=None):
    """Restore one target from snapshot_ref. Returns the destination name."""
    mode = parse_restore_mode(mode)
    destination = target.destination
    check_destination(destination, mode)

    staging = f"{STAGING_PREFIX}-{uuid.uuid4().hex[:8]}"
    previous = f"{staging}-previous"
    restored = f"{staging}/{target.subtree}"

    _say(console, f"restoring {target.subtree} into {destination.name} ({mode})...")
    try:
        _stage_and_apply(target, snapshot_ref, mode, engine, staging, previous, restored)
    except ClawbackError as e:
        if e.destination is None:
            e.destination = destination.name
        raise
    except OSError as e:
        raise EngineFailure(f"restore into {destination.name} failed: {e}",
                            destination=destination.name) from e

    _say(console, f"restored {destination.name}")
    return destination.name


def _stage_and_apply(target, snapshot_ref, mode, engine, staging, previous, restored):
    destination = target.destination
    destination.make_dir(staging)
    try:
        try:
            engine.materialize(snapshot_ref, target.include, destination, staging)
        except EngineFailure as e:
            raise RestoreEngineFailure(str(e), destination=destination.name) from e

        if not destination.is_dir(restored):
            raise UnexpectedSnapshotLayout(
                f"expected restored dir missing: {target.subtree} "
                f"(snapshot {snapshot_ref} has no such path)",
                destination=destination.name,
            )

        if mode == OVERWRITE:
            _apply_overwrite(destination, staging, previous, restored)
        else:
            destination.copy_into_root(restored)
    finally:
        destination.remove(staging)


def _apply_overwrite(destination, staging, previous, restored):
    try:
        destination.move_children("", previous, keep=(staging, previous))
    except Exception:
        # Entries not yet set aside are still in the root; only move back the rest.
        _put_back(destination, previous)
        raise
    try:
        destination.copy_into_root(restored)
    except Exception:
        destination.clear(keep=(staging, previous))
        _put_back(destination, previous)
        raise
    destination.remove(previous)


def _put_back(destination, previous):
    if destination.is_dir(previous):
        destination.move_children(previous, "")
        destination.remove(previous)


def restore_all(targets, snapshot_ref, mode, engine, console=None):
    """Restore several independent targets from one snapshot, in order.

    Safe mode checks every destination before any data moves. After that each
    target is its own transaction: a failure stops the run and propagates with
    the failing destination attached, and earlier targets keep their content.
    """
    mode = parse_restore_mode(mode)
    if mode == SAFE:
        _say(console, "checking destinations are empty...")
        for target in targets:
            check_destination(target.destination, mode)

    done = []
    for target in targets:
        done.append(restore(target, snapshot_ref, mode, engine, console=console))
    return done
