import io
import json
from datetime import datetime, timezone

import pytest
from rich.console import Console

from clawback import backup
from clawback.backup import backup_data, backup_volumes, timestamp_tag
from clawback.config import load_config
from clawback.destination.volume import VolumeDestination
from clawback.errors import ConfigurationError, EngineFailure

STORAGE = {
    "R2_ENDPOINT": "https://acct.r2.cloudflarestorage.com",
    "R2_BUCKET": "backups",
    "R2_ACCESS_KEY_ID": "key-id",
    "R2_SECRET_ACCESS_KEY": "key-secret",
    "RESTIC_PASSWORD": "pw",
}


@pytest.fixture
def engine(fake_engine):
    class RecordingEngine(fake_engine):
        def __init__(self):
            super().__init__({})
            self.initialized = False
            self.backups = []
            self.forgotten = []
            self.fail_backup = False

        def init_repository(self):
            self.initialized = True

        def backup(self, sources, tags):
            if self.fail_backup:
                raise EngineFailure("restic backup failed: unable to open repository")
            self.backups.append(([(s.host, s.path) for s in sources], tags))
            return "Files: 12 new, 0 changed\nAdded to the repository: 1.2 MiB\nsnapshot 1a2b3c4d saved\n"

        def forget(self, tag, retention):
            self.forgotten.append((tag, retention.args()))

        def list_snapshots(self, tag=None):
            return [{"id": "1a2b3c4d" * 8, "short_id": "1a2b3c4d", "time": "", "hostname": "",
                     "tags": [tag], "paths": []}]

    return RecordingEngine()


def console():
    out = io.StringIO()
    return Console(file=out, width=200), out


def test_timestamp_tag():
    assert timestamp_tag(datetime(2024, 6, 1, 3, 4, 5, tzinfo=timezone.utc)) == "ts=20240601T030405Z"


def test_backup_data(clawback_home, tmp_path, engine):
    data = tmp_path / "data"
    data.mkdir()
    config = load_config(environ={**STORAGE, "BACKUP_DIR": str(data), "KEEP_DAILY": "3"},
                         dotenv_path=None)
    c, out = console()

    snapshots = backup_data(config, c, engine=engine)

    sources, tags = engine.backups[0]
    assert sources == [(str(data), str(data))]
    assert tags[:2] == ["openclaw-data", "resource=unknown"]
    assert tags[2].startswith("ts=")
    assert engine.forgotten == [("openclaw-data", ["--keep-daily", "3", "--keep-weekly", "4",
                                                   "--keep-monthly", "6"])]
    assert snapshots[-1]["short_id"] == "1a2b3c4d"
    assert "Added to the repository" in out.getvalue()
    assert "coolify/openclaw-data/unknown" in out.getvalue()

    entry = json.loads((clawback_home / "logs.jsonl").read_text().splitlines()[-1])
    assert entry["event"] == "backup"
    assert entry["result"] == "ok"
    assert entry["snapshot"] == "1a2b3c4d"


def test_backup_data_requires_existing_dir(clawback_home, tmp_path, engine):
    config = load_config(environ={**STORAGE, "BACKUP_DIR": str(tmp_path / "nope")}, dotenv_path=None)
    with pytest.raises(ConfigurationError):
        backup_data(config, console()[0], engine=engine)
    assert engine.backups == []


def test_backup_data_requires_storage(clawback_home, tmp_path, engine):
    config = load_config(environ={"BACKUP_DIR": str(tmp_path)}, dotenv_path=None)
    with pytest.raises(ConfigurationError) as exc:
        backup_data(config, console()[0], engine=engine)
    assert "RESTIC_PASSWORD" in str(exc.value)


def test_backup_failure_is_logged(clawback_home, tmp_path, engine):
    engine.fail_backup = True
    config = load_config(environ={**STORAGE, "BACKUP_DIR": str(tmp_path)}, dotenv_path=None)
    with pytest.raises(EngineFailure):
        backup_data(config, console()[0], engine=engine)
    entry = json.loads((clawback_home / "logs.jsonl").read_text().splitlines()[-1])
    assert entry["result"] == "failed"
    assert engine.forgotten == []


@pytest.fixture
def docker_host(monkeypatch, tmp_path):
    monkeypatch.setattr(backup.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(VolumeDestination, "exists", lambda self: True)
    apps = tmp_path / "applications"
    monkeypatch.setattr(backup, "coolify_app_dir", lambda uuid: apps / uuid)
    return apps


def test_backup_volumes(clawback_home, docker_host, engine):
    (docker_host / "abc123").mkdir(parents=True)
    config = load_config(environ=STORAGE, dotenv_path=None)
    c, out = console()

    backup_volumes(config, c, resource_uuid="abc123", engine=engine)

    sources, tags = engine.backups[0]
    assert sources == [
        ("abc123_openclaw-data", "/src/openclaw-data"),
        ("abc123_browser-data", "/src/browser-data"),
        (str(docker_host / "abc123"), "/src/coolify-app"),
    ]
    assert tags[0] == "openclaw"
    assert "resource=abc123" in tags
    assert any(t.startswith("host=") for t in tags)
    assert engine.initialized is False
    assert "coolify/openclaw/abc123" in out.getvalue()


def test_backup_volumes_can_skip_app_dir(clawback_home, docker_host, engine):
    (docker_host / "abc123").mkdir(parents=True)
    config = load_config(environ={**STORAGE, "INCLUDE_COOLIFY_APP_DIR": "false",
                                  "RESTIC_TAG": "nightly"}, dotenv_path=None)
    c, out = console()

    backup_volumes(config, c, resource_uuid="abc123", engine=engine)

    sources, tags = engine.backups[0]
    assert len(sources) == 2
    assert tags[0] == "nightly"
    assert engine.forgotten[0][0] == "nightly"
    assert "skipping coolify app dir (INCLUDE_COOLIFY_APP_DIR=false, exists=yes)" in out.getvalue()


def test_backup_volumes_requires_uuid(clawback_home, docker_host, engine):
    config = load_config(environ=STORAGE, dotenv_path=None)
    with pytest.raises(ConfigurationError):
        backup_volumes(config, console()[0], engine=engine)


def test_backup_volumes_missing_volume(clawback_home, docker_host, engine, monkeypatch):
    monkeypatch.setattr(VolumeDestination, "exists", lambda self: self.volume != "abc123_browser-data")
    config = load_config(environ=STORAGE, dotenv_path=None)
    with pytest.raises(ConfigurationError) as exc:
        backup_volumes(config, console()[0], resource_uuid="abc123", engine=engine)
    assert "abc123_browser-data" in str(exc.value)
