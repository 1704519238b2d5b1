import json
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values

from clawback.errors import ConfigurationError
from clawback.repository import RetentionPolicy

CLAWBACK_HOME = Path.home() / ".clawback"
GLOBAL_CONFIG_FILE = CLAWBACK_HOME / "config.json"
DOTENV_FILE = ".env"

# Config field -> environment variable that sets it.
ENV_KEYS = {
    "r2_endpoint": "R2_ENDPOINT",
    "r2_bucket": "R2_BUCKET",
    "r2_access_key_id": "R2_ACCESS_KEY_ID",
    "r2_secret_access_key": "R2_SECRET_ACCESS_KEY",
    "restic_password": "RESTIC_PASSWORD",
    "r2_prefix": "R2_PREFIX",
    "aws_default_region": "AWS_DEFAULT_REGION",
    "restic_image": "RESTIC_IMAGE",
    "restic_tag": "RESTIC_TAG",
    "keep_daily": "KEEP_DAILY",
    "keep_weekly": "KEEP_WEEKLY",
    "keep_monthly": "KEEP_MONTHLY",
    "include_coolify_app_dir": "INCLUDE_COOLIFY_APP_DIR",
    "resource_uuid": "COOLIFY_RESOURCE_UUID",
    "backup_dir": "BACKUP_DIR",
    "restore_mode": "RESTORE_MODE",
    "snapshot": "SNAPSHOT",
    "coolify_api_base": "COOLIFY_API_BASE",
    "coolify_api_token": "COOLIFY_API_TOKEN",
    "coolify_force": "COOLIFY_FORCE",
}

DEFAULT_CONFIG = {
    "r2_endpoint": "",
    "r2_bucket": "",
    "r2_access_key_id": "",
    "r2_secret_access_key": "",
    "restic_password": "",
    # None means "use the default for the command being run"
    "r2_prefix": None,
    "aws_default_region": "us-east-1",
    "restic_image": "restic/restic:latest",
    "restic_tag": None,
    "keep_daily": 7,
    "keep_weekly": 4,
    "keep_monthly": 6,
    "include_coolify_app_dir": True,
    "resource_uuid": "",
    "backup_dir": "/data",
    "restore_mode": "safe",
    "snapshot": "",
    "coolify_api_base": "https://app.coolify.io",
    "coolify_api_token": "",
    "coolify_force": False,
}

# Keys every restic-backed command needs.
STORAGE_KEYS = (
    "r2_endpoint",
    "r2_bucket",
    "r2_access_key_id",
    "r2_secret_access_key",
    "restic_password",
)

DEPLOY_KEYS = ("coolify_api_token", "resource_uuid")


@dataclass(frozen=True)
class Config:
    """Everything a command needs, resolved once at process start."""

    r2_endpoint: str
    r2_bucket: str
    r2_access_key_id: str
    r2_secret_access_key: str
    restic_password: str
    r2_prefix: str | None
    aws_default_region: str
    restic_image: str
    restic_tag: str | None
    keep_daily: int
    keep_weekly: int
    keep_monthly: int
    include_coolify_app_dir: bool
    resource_uuid: str
    backup_dir: str
    restore_mode: str
    snapshot: str
    coolify_api_base: str
    coolify_api_token: str
    coolify_force: bool

    @property
    def retention(self):
        return RetentionPolicy(self.keep_daily, self.keep_weekly, self.keep_monthly)

    def require(self, *keys):
        """Raise ConfigurationError naming every missing key, by its env var."""
        missing = [ENV_KEYS[k] for k in keys if not getattr(self, k)]
        if missing:
            verb = "is" if len(missing) == 1 else "are"
            raise ConfigurationError(f"{', '.join(missing)} {verb} required")


def load_global_config():
    """Load ~/.clawback/config.json, host-wide defaults."""
    if GLOBAL_CONFIG_FILE.exists():
        try:
            return json.loads(GLOBAL_CONFIG_FILE.read_text())
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def save_global_config(updates):
    """Merge updates into ~/.clawback/config.json."""
    unknown = set(updates) - set(DEFAULT_CONFIG)
    if unknown:
        raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")
    existing = load_global_config()
    existing.update(updates)
    GLOBAL_CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    GLOBAL_CONFIG_FILE.write_text(json.dumps(existing, indent=2) + "\n")


def _flag(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _count(raw, key):
    value = raw[key]
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{ENV_KEYS[key]} must be a whole number, got {value!r}")
    if count < 0:
        raise ConfigurationError(f"{ENV_KEYS[key]} must not be negative, got {count}")
    return count


def load_config(environ=None, dotenv_path=DOTENV_FILE):
    # Merge order: defaults, then global config, then .env, then the process environment
    raw = dict(DEFAULT_CONFIG)
    raw.update({k: v for k, v in load_global_config().items() if k in DEFAULT_CONFIG})

    env = {}
    if dotenv_path and Path(dotenv_path).exists():
        env.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
    env.update(os.environ if environ is None else environ)

    for key, var in ENV_KEYS.items():
        value = env.get(var)
        if value is not None and value != "":
            raw[key] = value

    return Config(
        r2_endpoint=str(raw["r2_endpoint"]),
        r2_bucket=str(raw["r2_bucket"]),
        r2_access_key_id=str(raw["r2_access_key_id"]),
        r2_secret_access_key=str(raw["r2_secret_access_key"]),
        restic_password=str(raw["restic_password"]),
        r2_prefix=raw["r2_prefix"],
        aws_default_region=str(raw["aws_default_region"]),
        restic_image=str(raw["restic_image"]),
        restic_tag=raw["restic_tag"],
        keep_daily=_count(raw, "keep_daily"),
        keep_weekly=_count(raw, "keep_weekly"),
        keep_monthly=_count(raw, "keep_monthly"),
        include_coolify_app_dir=_flag(raw["include_coolify_app_dir"]),
        resource_uuid=str(raw["resource_uuid"]),
        backup_dir=str(raw["backup_dir"]),
        restore_mode=str(raw["restore_mode"]).strip().lower(),
        snapshot=str(raw["snapshot"]),
        coolify_api_base=str(raw["coolify_api_base"]),
        coolify_api_token=str(raw["coolify_api_token"]),
        coolify_force=_flag(raw["coolify_force"]),
    )
