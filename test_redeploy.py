import io
import json

import pytest
from rich.console import Console

from clawback.config import load_config
from clawback.coolify import CoolifyClient
from clawback.errors import ConfigurationError, DeployFailure, EngineFailure
from clawback.redeploy import redeploy_if_newer

ENV = {"COOLIFY_API_TOKEN": "3|token", "COOLIFY_RESOURCE_UUID": "abc123"}


class FakeClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def deploy(self, resource_uuid, force=False):
        self.calls.append((resource_uuid, force))
        if self.fail:
            raise DeployFailure("deploy request failed: HTTP 401 from https://app.coolify.io")
        return CoolifyClient("t").deploy_url(resource_uuid, force)


def run(client, current, latest, **env):
    out = io.StringIO()
    config = load_config(environ={**ENV, **env}, dotenv_path=None)
    outcome = redeploy_if_newer(
        config, Console(file=out, width=200), client=client,
        current_version=lambda: current, latest_version=lambda: latest,
    )
    return outcome, out.getvalue()


def logged(home):
    return [json.loads(line) for line in (home / "logs.jsonl").read_text().splitlines()]


def test_deploys_newer_release(clawback_home):
    client = FakeClient()
    outcome, out = run(client, "1.2.3", "1.2.4")

    assert client.calls == [("abc123", False)]
    assert outcome["deployed"] is True
    assert outcome["url"] == "https://app.coolify.io/api/v1/deploy?uuid=abc123&force=false"
    assert "Deploy requested" in out
    assert logged(clawback_home)[-1]["result"] == "deployed"


def test_skips_when_up_to_date(clawback_home):
    client = FakeClient()
    outcome, out = run(client, "1.3.0", "1.2.9")

    assert client.calls == []
    assert outcome["deployed"] is False
    assert "[redeploy] Up to date or ahead (current=1.3.0 latest=1.2.9); skipping deploy." in out
    assert logged(clawback_home)[-1]["result"] == "skipped"


def test_force_deploys_same_version(clawback_home):
    client = FakeClient()
    outcome, _ = run(client, "1.0.0", "1.0.0", COOLIFY_FORCE="true")
    assert client.calls == [("abc123", True)]
    assert outcome["force"] is True


def test_unknown_current_version_deploys_with_warning(clawback_home):
    client = FakeClient()
    outcome, out = run(client, "", "2.0.0")
    assert outcome["deployed"] is True
    assert "WARN" in out


def test_requires_token_and_resource(clawback_home):
    config = load_config(environ={"COOLIFY_RESOURCE_UUID": "abc123"}, dotenv_path=None)
    with pytest.raises(ConfigurationError) as exc:
        redeploy_if_newer(config, Console(file=io.StringIO()), client=FakeClient(),
                          current_version=lambda: "1", latest_version=lambda: "2")
    assert "COOLIFY_API_TOKEN" in str(exc.value)


def test_upstream_lookup_failure_propagates(clawback_home):
    def no_latest():
        raise EngineFailure("could not determine latest upstream version: HTTP 403")

    config = load_config(environ=ENV, dotenv_path=None)
    client = FakeClient()
    with pytest.raises(EngineFailure):
        redeploy_if_newer(config, Console(file=io.StringIO()), client=client,
                          current_version=lambda: "1.0.0", latest_version=no_latest)
    assert client.calls == []


def test_deploy_failure_is_logged(clawback_home):
    with pytest.raises(DeployFailure):
        run(FakeClient(fail=True), "1.0.0", "1.1.0")
    entry = logged(clawback_home)[-1]
    assert entry["result"] == "failed"
    assert entry["latest"] == "1.1.0"


def test_deploy_url_encodes_query():
    client = CoolifyClient("t", "https://coolify.example.com/")
    assert client.deploy_url("a b", force=True) == \
        "https://coolify.example.com/api/v1/deploy?uuid=a+b&force=true"
