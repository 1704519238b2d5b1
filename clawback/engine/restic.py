import json
import os
import subprocess

from clawback.engine.base import SnapshotEngine
from clawback.errors import ConfigurationError, EngineFailure, RestoreEngineFailure
from clawback.repository import RESTIC_OPTIONS


def _tail(text, limit=500):
    text = (text or "").strip()
    return text[-limit:] if text else "no output"


class ResticEngine(SnapshotEngine):
    """restic installed on this host (e.g. inside the OpenClaw image)."""

    def __init__(self, repository, binary="restic"):
        self.repository = repository
        self.binary = binary

    def materialize(self, snapshot_ref, include, destination, staging):
        result = self._run(
            ["restore", *RESTIC_OPTIONS, snapshot_ref,
             "--target", self._target(destination, staging),
             "--include", include],
            mounts=self._restore_mounts(destination),
        )
        if result.returncode != 0:
            raise RestoreEngineFailure(
                f"restic restore of {snapshot_ref} failed: {_tail(result.stderr)}",
                destination=destination.name,
            )

    def list_snapshots(self, tag=None):
        args = ["snapshots", *RESTIC_OPTIONS, "--json"]
        if tag:
            args += ["--tag", tag]
        result = self._check(args, "snapshots")
        try:
            snapshots = json.loads(result.stdout or "[]") or []
        except json.JSONDecodeError as e:
            raise EngineFailure(f"restic snapshots returned invalid JSON: {e}")
        return [
            {
                "id": s.get("id", ""),
                "short_id": s.get("short_id") or s.get("id", "")[:8],
                "time": s.get("time", ""),
                "hostname": s.get("hostname", ""),
                "tags": s.get("tags") or [],
                "paths": s.get("paths") or [],
            }
            for s in snapshots
        ]

    def init_repository(self):
        self._check(["init", *RESTIC_OPTIONS], "init")

    def backup(self, sources, tags):
        args = ["backup", *RESTIC_OPTIONS]
        for tag in tags:
            args += ["--tag", tag]
        args += [s.path for s in sources]
        result = self._check(args, "backup", mounts=self._backup_mounts(sources))
        return result.stdout

    def forget(self, tag, retention):
        self._check(
            ["forget", *RESTIC_OPTIONS, "--tag", tag, *retention.args(), "--prune"],
            "forget",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _target(self, destination, staging):
        if destination.local_path is None:
            raise ConfigurationError(
                f"{destination.name} is not a local directory; restore it with the docker engine"
            )
        return str(destination.local_path / staging)

    def _restore_mounts(self, destination):
        return []

    def _backup_mounts(self, sources):
        return []

    def _command(self, args, mounts):
        return [self.binary, *args]

    def _run(self, args, mounts=()):
        cmd = self._command(args, mounts)
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                env={**os.environ, **self.repository.env()},
            )
        except FileNotFoundError:
            raise ConfigurationError(f"{cmd[0]} not found on PATH")

    def _check(self, args, action, mounts=()):
        result = self._run(args, mounts=mounts)
        if result.returncode != 0:
            raise EngineFailure(f"restic {action} failed: {_tail(result.stderr)}")
        return result
