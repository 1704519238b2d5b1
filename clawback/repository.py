"""restic repository on Cloudflare R2.

The repository locator is plain concatenation:
    s3:<endpoint>/<bucket>/<prefix>      (or s3:<endpoint>/<bucket> at bucket root)

R2 is S3-compatible but only answers path-style bucket lookups, so every
restic call carries `-o s3.bucket-lookup=path`.
"""

from dataclasses import dataclass

from clawback.errors import ConfigurationError, EngineFailure

RESTIC_OPTIONS = ["-o", "s3.bucket-lookup=path"]


@dataclass(frozen=True)
class RetentionPolicy:
    keep_daily: int = 7
    keep_weekly: int = 4
    keep_monthly: int = 6

    def args(self):
        return [
            "--keep-daily", str(self.keep_daily),
            "--keep-weekly", str(self.keep_weekly),
            "--keep-monthly", str(self.keep_monthly),
        ]

    def __str__(self):
        return f"daily={self.keep_daily} weekly={self.keep_weekly} monthly={self.keep_monthly}"


def build_locator(endpoint, bucket, prefix=""):
    prefix = (prefix or "").lstrip("/")
    base = f"s3:{endpoint.rstrip('/')}/{bucket}"
    return f"{base}/{prefix}" if prefix else base


class Repository:
    """A restic repository locator plus the credentials needed to open it."""

    def __init__(self, endpoint, bucket, prefix, access_key_id, secret_access_key,
                 password, region="us-east-1"):
        self.endpoint = endpoint
        self.bucket = bucket
        self.prefix = (prefix or "").lstrip("/")
        self.locator = build_locator(endpoint, bucket, prefix)
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._password = password
        self.region = region

    @classmethod
    def from_config(cls, config, default_prefix):
        config.require("r2_endpoint", "r2_bucket", "r2_access_key_id",
                       "r2_secret_access_key", "restic_password")
        prefix = config.r2_prefix if config.r2_prefix is not None else default_prefix
        return cls(
            endpoint=config.r2_endpoint,
            bucket=config.r2_bucket,
            prefix=prefix,
            access_key_id=config.r2_access_key_id,
            secret_access_key=config.r2_secret_access_key,
            password=config.restic_password,
            region=config.aws_default_region,
        )

    def env(self):
        """Environment restic reads the repository and credentials from."""
        return {
            "RESTIC_REPOSITORY": self.locator,
            "RESTIC_PASSWORD": self._password,
            "AWS_ACCESS_KEY_ID": self._access_key_id,
            "AWS_SECRET_ACCESS_KEY": self._secret_access_key,
            "AWS_DEFAULT_REGION": self.region,
        }

    def check_bucket(self):
        """Confirm the bucket answers with these credentials.

        Requires boto3: pip install -e ".[r2]"
        """
        try:
            import boto3
            from botocore.config import Config as BotoConfig
        except ImportError:
            raise ConfigurationError(
                "boto3 is required for bucket checks. "
                "Install with: pip install -e '.[r2]'"
            )
        s3 = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            aws_access_key_id=self._access_key_id,
            aws_secret_access_key=self._secret_access_key,
            region_name=self.region,
            config=BotoConfig(s3={"addressing_style": "path"}),
        )
        try:
            s3.head_bucket(Bucket=self.bucket)
        except Exception as e:
            error_code = (getattr(e, "response", None) or {}).get("Error", {}).get("Code", "")
            if error_code in ("404", "NoSuchBucket"):
                raise EngineFailure(f"R2 bucket '{self.bucket}' does not exist") from e
            raise EngineFailure(f"R2 bucket '{self.bucket}' is not reachable: {e}") from e

    def __repr__(self):
        return f"Repository({self.locator!r})"
