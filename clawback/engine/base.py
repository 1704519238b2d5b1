from abc import ABC, abstractmethod

from clawback.errors import EngineFailure


class BackupSource:
    """Something to back up: `host` is what a container mounts, `path` is where the engine reads it."""

    def __init__(self, host, path):
        self.host = str(host)
        self.path = str(path)

    def __repr__(self):
        return f"BackupSource({self.host!r} -> {self.path!r})"


class SnapshotEngine(ABC):
    """Base interface for snapshot engines.

    Implementations: ResticEngine (restic on PATH), DockerResticEngine (restic image).
    """

    @abstractmethod
    def materialize(self, snapshot_ref, include, destination, staging):
        """Restore the paths matching include from snapshot_ref into destination/staging."""
        pass

    @abstractmethod
    def list_snapshots(self, tag=None):
        """List snapshots, oldest first. Raises EngineFailure if the repository can't be read."""
        pass

    @abstractmethod
    def init_repository(self):
        pass

    @abstractmethod
    def backup(self, sources, tags):
        """Snapshot the given BackupSources. Returns the engine's summary output."""
        pass

    @abstractmethod
    def forget(self, tag, retention):
        """Apply a RetentionPolicy to snapshots carrying tag, pruning unreferenced data."""
        pass

    def ensure_repository(self):
        """Initialize the repository if it can't be listed. Returns True if it was initialized."""
        try:
            self.list_snapshots()
            return False
        except EngineFailure:
            self.init_repository()
            return True
