"""Host credentials for scheduled runs.

~/.clawback/credentials keeps R2 keys, the restic password and the Coolify
token out of crontabs and Coolify task definitions. It is a dotenv file
(KEY=VALUE, # comments) readable only by its owner.
"""

import os
from pathlib import Path

from dotenv import dotenv_values, load_dotenv, set_key

CREDENTIALS_FILE = Path.home() / ".clawback" / "credentials"


def load_credentials():
    """Export the credentials file into os.environ. Variables already set win.

    Returns everything the file defines.
    """
    if not CREDENTIALS_FILE.exists():
        return {}
    load_dotenv(CREDENTIALS_FILE, override=False)
    return {k: v for k, v in dotenv_values(CREDENTIALS_FILE).items() if v is not None}


def save_credential(key, value):
    """Set one credential (used by `clawback auth`) and export it for this process."""
    CREDENTIALS_FILE.parent.mkdir(parents=True, exist_ok=True)
    CREDENTIALS_FILE.parent.chmod(0o700)
    CREDENTIALS_FILE.touch(mode=0o600, exist_ok=True)
    set_key(CREDENTIALS_FILE, key, value, quote_mode="auto")
    CREDENTIALS_FILE.chmod(0o600)
    os.environ[key] = value
