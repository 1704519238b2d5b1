"""Release comparison: should a newer upstream OpenClaw release be deployed?

Versions compare on (major, minor, patch) only. Each component keeps its
leading digits (`1-rc1` is 1), and missing or non-numeric components count as 0.
"""

import json
import re
import subprocess
import urllib.error
import urllib.request

from clawback.errors import EngineFailure

UPSTREAM_REPO = "openclaw/openclaw"
GITHUB_API = "https://api.github.com"
CURRENT_VERSION_COMMAND = ["openclaw", "--version"]
_HTTP_TIMEOUT = 30

_VERSION_RE = re.compile(r"\d+(?:\.\d+)*")
_LEADING_DIGITS = re.compile(r"\d+")


def _version_text(raw):
    """First line of raw from its first digit on: 'openclaw v1.x.3' -> '1.x.3'."""
    if not raw:
        return ""
    lines = str(raw).strip().splitlines()
    if not lines:
        return ""
    match = re.search(r"\d", lines[0])
    return lines[0][match.start():].strip() if match else ""


def normalize_version(raw):
    """'v2.10.1-beta' -> '2.10.1'. Returns '' when no digits are found."""
    match = _VERSION_RE.match(_version_text(raw))
    return match.group(0) if match else ""


def parse_version(raw):
    """Parse into a (major, minor, patch) tuple of ints.

    Each dot-separated component contributes its leading digits; a missing or
    non-numeric component counts as 0, so '1.x.3' is (1, 0, 3).
    """
    parts = _version_text(raw).split(".")
    triple = []
    for part in (parts + ["", "", ""])[:3]:
        digits = _LEADING_DIGITS.match(part)
        triple.append(int(digits.group(0)) if digits else 0)
    return tuple(triple)


def compare_versions(a, b):
    """-1 if a < b, 0 if equal, 1 if a > b."""
    va, vb = parse_version(a), parse_version(b)
    return (va > vb) - (va < vb)


def should_deploy(current, latest, force=False):
    if force:
        return True
    if not normalize_version(latest):
        raise ValueError("latest version is required to decide on a deploy")
    if not normalize_version(current):
        return True
    return compare_versions(latest, current) > 0


def current_installed_version(command=None):
    """Version reported by the installed OpenClaw CLI, or '' if unavailable."""
    try:
        result = subprocess.run(
            command or CURRENT_VERSION_COMMAND,
            capture_output=True,
            text=True,
        )
    except (FileNotFoundError, PermissionError):
        return ""
    if result.returncode != 0:
        return ""
    return normalize_version(result.stdout)


def latest_upstream_version(repo=UPSTREAM_REPO, api=GITHUB_API):
    """tag_name of the latest GitHub release, normalized. Raises EngineFailure if unresolvable."""
    url = f"{api.rstrip('/')}/repos/{repo}/releases/latest"
    req = urllib.request.Request(
        url,
        headers={"Accept": "application/vnd.github+json", "User-Agent": "clawback"},
    )
    try:
        with urllib.request.urlopen(req, timeout=_HTTP_TIMEOUT) as resp:
            payload = json.loads(resp.read().decode())
    except urllib.error.HTTPError as e:
        raise EngineFailure(f"could not determine latest upstream version: HTTP {e.code} from {url}")
    except (urllib.error.URLError, OSError) as e:
        raise EngineFailure(f"could not determine latest upstream version: {e}")
    except json.JSONDecodeError:
        raise EngineFailure(f"could not determine latest upstream version: invalid JSON from {url}")

    tag = payload.get("tag_name") if isinstance(payload, dict) else None
    latest = normalize_version(str(tag or ""))
    if not latest:
        raise EngineFailure("could not determine latest upstream version: release has no tag_name")
    return latest
