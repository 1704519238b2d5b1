from clawback.coolify import CoolifyClient
from clawback.log import write_log
from clawback.release import current_installed_version, latest_upstream_version, should_deploy


def _say(console, message):
    console.print(f"\\[redeploy] {message}", highlight=False)


def redeploy_if_newer(config, console, client=None,
                      current_version=current_installed_version,
                      latest_version=latest_upstream_version):
    """Trigger a Coolify deploy when upstream has a newer release (or when forced).

    Returns a dict describing the decision: deployed, current, latest, force, url.
    """
    config.require("coolify_api_token", "resource_uuid")
    client = client or CoolifyClient(config.coolify_api_token, config.coolify_api_base)
    force = config.coolify_force

    # Raises EngineFailure when upstream can't be resolved.
    latest = latest_version()
    current = current_version()

    outcome = {
        "event": "redeploy",
        "resource": config.resource_uuid,
        "current": current,
        "latest": latest,
        "force": force,
        "deployed": False,
        "url": None,
    }

    if not current:
        _say(console, "[yellow]WARN: could not determine current version; deploying anyway.[/yellow]")

    if not should_deploy(current, latest, force):
        _say(console, f"Up to date or ahead (current={current} latest={latest}); skipping deploy.")
        write_log({**outcome, "result": "skipped"})
        return outcome

    _say(console, f"Triggering deploy (current={current or 'unknown'} latest={latest} force={str(force).lower()})")
    try:
        url = client.deploy(config.resource_uuid, force=force)
    except Exception:
        write_log({**outcome, "result": "failed"})
        raise
    _say(console, f"Deploy requested: {url}")

    outcome.update(deployed=True, url=url)
    write_log({**outcome, "result": "deployed"})
    return outcome
