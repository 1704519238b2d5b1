"""Infisical secrets injection for scheduled tasks.

Coolify runs scheduled tasks with `docker exec`, which does not inherit the
environment that `infisical run` injected into the container's main process.
When a command's secrets are missing and Infisical is configured, the process
re-execs itself under `infisical run` so the secrets arrive as environment
variables. A marker variable stops a second wrap.

Env:
    INFISICAL_PROJECT_ID        enables injection
    INFISICAL_TOKEN             access token, or
    INFISICAL_CLIENT_ID/SECRET  Universal Auth machine identity
    INFISICAL_API_URL           default https://app.infisical.com/api
    INFISICAL_ENV               default prod
    INFISICAL_PATH              default /
"""

import json
import os
import shutil
import sys
import urllib.error
import urllib.request

WRAPPED_ENV = "CLAWBACK_INFISICAL_WRAPPED"
DEFAULT_API_URL = "https://app.infisical.com/api"
_HTTP_TIMEOUT = 30


def missing_keys(required, environ=None):
    environ = os.environ if environ is None else environ
    return [key for key in required if not environ.get(key)]


def fetch_universal_auth_token(api_url, client_id, client_secret):
    """Exchange a machine identity for an access token. Returns '' on any failure."""
    req = urllib.request.Request(
        f"{api_url.rstrip('/')}/v1/auth/universal-auth/login",
        data=json.dumps({"clientId": client_id, "clientSecret": client_secret}).encode(),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=_HTTP_TIMEOUT) as resp:
            body = json.loads(resp.read().decode())
    except (urllib.error.URLError, OSError, json.JSONDecodeError):
        return ""
    if not isinstance(body, dict):
        return ""
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    return body.get("accessToken") or body.get("access_token") or data.get("accessToken") or ""


def resolve_token(environ):
    if environ.get("INFISICAL_TOKEN"):
        return environ["INFISICAL_TOKEN"]
    client_id = environ.get("INFISICAL_CLIENT_ID")
    client_secret = environ.get("INFISICAL_CLIENT_SECRET")
    if client_id and client_secret:
        api_url = environ.get("INFISICAL_API_URL") or DEFAULT_API_URL
        return fetch_universal_auth_token(api_url, client_id, client_secret)
    return ""


def injection_command(argv, environ, token):
    return [
        "infisical", "run",
        "--domain", environ.get("INFISICAL_API_URL") or DEFAULT_API_URL,
        "--token", token,
        "--projectId", environ["INFISICAL_PROJECT_ID"],
        "--env", environ.get("INFISICAL_ENV") or "prod",
        "--path", environ.get("INFISICAL_PATH") or "/",
        "--", "env", f"{WRAPPED_ENV}=1", *argv,
    ]


def self_command():
    return [sys.executable, "-m", "clawback", *sys.argv[1:]]


def ensure_injected(required, argv=None, environ=None, console=None, execvp=os.execvp):
    """Re-exec under `infisical run` if required keys are missing and Infisical can supply them.

    Returns False when nothing needed doing (or injection isn't possible); the
    caller's normal validation then reports whatever is still missing. Does not
    return when it re-execs.
    """
    environ = os.environ if environ is None else environ
    if not missing_keys(required, environ):
        return False
    # Already wrapped once: let validation fail instead of looping.
    if environ.get(WRAPPED_ENV):
        return False
    if not environ.get("INFISICAL_PROJECT_ID"):
        return False
    if shutil.which("infisical") is None:
        return False

    token = resolve_token(environ)
    if not token:
        return False

    cmd = injection_command(argv or self_command(), environ, token)
    if console is not None:
        console.print(
            f"[dim]infisical: injecting secrets (env={environ.get('INFISICAL_ENV') or 'prod'} "
            f"path={environ.get('INFISICAL_PATH') or '/'})[/dim]",
            highlight=False,
        )
    execvp(cmd[0], cmd)
    return True
