"""Operation audit logging.

Appends structured JSON entries to ~/.clawback/logs.jsonl.
Each entry records one backup, restore or redeploy run with its result,
the snapshot involved and the destination or resource it touched.
"""

import json
from datetime import datetime
from pathlib import Path

LOGS_FILE = Path.home() / ".clawback" / "logs.jsonl"


def write_log(entry):
    """Append an operation log entry."""
    LOGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    entry["timestamp"] = datetime.now().isoformat()
    with open(LOGS_FILE, "a") as f:
        f.write(json.dumps(entry) + "\n")


def read_logs(event=None):
    """Return logged entries oldest-first, optionally only one event type."""
    if not LOGS_FILE.exists():
        return []
    entries = []
    for line in LOGS_FILE.read_text().splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if event and entry.get("event") != event:
            continue
        entries.append(entry)
    return entries
