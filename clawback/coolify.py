import urllib.error
import urllib.parse
import urllib.request

from clawback.errors import DeployFailure

DEFAULT_API_BASE = "https://app.coolify.io"
_HTTP_TIMEOUT = 30


class CoolifyClient:
    """Minimal Coolify API client: just the deploy trigger."""

    def __init__(self, token, api_base=DEFAULT_API_BASE):
        self.token = token
        self.api_base = (api_base or DEFAULT_API_BASE).rstrip("/")

    def deploy_url(self, resource_uuid, force=False):
        query = urllib.parse.urlencode({"uuid": resource_uuid, "force": "true" if force else "false"})
        return f"{self.api_base}/api/v1/deploy?{query}"

    def deploy(self, resource_uuid, force=False):
        """Ask Coolify to redeploy a resource. Returns the URL that was called."""
        url = self.deploy_url(resource_uuid, force)
        req = urllib.request.Request(
            url,
            headers={"Authorization": f"Bearer {self.token}", "Accept": "application/json"},
            method="GET",
        )
        try:
            with urllib.request.urlopen(req, timeout=_HTTP_TIMEOUT) as resp:
                resp.read()
        except urllib.error.HTTPError as e:
            raise DeployFailure(f"deploy request failed: HTTP {e.code} from {self.api_base}")
        except (urllib.error.URLError, OSError) as e:
            raise DeployFailure(f"deploy request failed: {e}")
        return url
