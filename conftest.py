import pytest

from clawback.engine.base import SnapshotEngine
from clawback.errors import EngineFailure


class FakeEngine(SnapshotEngine):
    """Materializes an in-memory snapshot into a destination's local path.

    files maps snapshot paths (e.g. "data/notes/a.txt") to their content.
    """

    def __init__(self, files, fail_for=()):
        self.files = files
        self.fail_for = set(fail_for)
        self.calls = []

    def materialize(self, snapshot_ref, include, destination, staging):
        self.calls.append((snapshot_ref, include, destination.name, staging))
        if destination.name in self.fail_for:
            raise EngineFailure(f"restic restore of {snapshot_ref} failed: boom")
        prefix = include[: -len("/**")] + "/"
        root = destination.local_path / staging
        for path, content in self.files.items():
            if not path.startswith(prefix):
                continue
            target = root / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)

    def list_snapshots(self, tag=None):
        return []

    def init_repository(self):
        pass

    def backup(self, sources, tags):
        return ""

    def forget(self, tag, retention):
        pass


@pytest.fixture
def fake_engine():
    return FakeEngine


@pytest.fixture
def clawback_home(tmp_path, monkeypatch):
    """Point every ~/.clawback file at a temporary directory."""
    home = tmp_path / "clawback-home"
    monkeypatch.setattr("clawback.config.GLOBAL_CONFIG_FILE", home / "config.json")
    monkeypatch.setattr("clawback.log.LOGS_FILE", home / "logs.jsonl")
    monkeypatch.setattr("clawback.cli.LOGS_FILE", home / "logs.jsonl")
    monkeypatch.setattr("clawback.credentials.CREDENTIALS_FILE", home / "credentials")
    return home
