"""Where OpenClaw keeps its state under Coolify.

Coolify names an application's volumes `<resource_uuid>_<volume>`. Host-side
backups mount each volume under /src, so snapshots contain `src/<volume>/**`.
"""

from pathlib import Path

VOLUMES = ("openclaw-data", "browser-data")
SNAPSHOT_ROOT = "/src"
COOLIFY_APPLICATIONS_DIR = Path("/data/coolify/applications")
COOLIFY_APP_MOUNT = f"{SNAPSHOT_ROOT}/coolify-app"

VOLUMES_TAG = "openclaw"
DATA_TAG = "openclaw-data"


def volume_name(resource_uuid, volume):
    return f"{resource_uuid}_{volume}"


def volume_subtree(volume):
    """Path of a volume's contents inside a host-side snapshot."""
    return f"{SNAPSHOT_ROOT.lstrip('/')}/{volume}"


def volumes_prefix(resource_uuid):
    return f"coolify/openclaw/{resource_uuid}"


def data_prefix(resource_uuid):
    return f"coolify/openclaw-data/{resource_uuid or 'unknown'}"


def data_subtree(backup_dir):
    """restic stores /data as data/**, /var/lib/x as var/lib/x/**."""
    return str(backup_dir).strip("/")


def coolify_app_dir(resource_uuid):
    return COOLIFY_APPLICATIONS_DIR / resource_uuid
