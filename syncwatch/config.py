from __future__ import annotations

import json
import os
from urllib.parse import urlparse
from dataclasses import asdict, dataclass, field
from pathlib import Path

from syncwatch.errors import ConfigError


CONFIG_FILENAME = ".syncwatch.json"
DEFAULT_BUCKET = "test-bucket"
DEFAULT_REGION = "local"
DEFAULT_MAX_ATTEMPTS = 3

ENV_ACCESS_KEY = "S3_ACCESS_KEY"
ENV_SECRET_KEY = "S3_SECRET_KEY"
ENV_ENDPOINT = "S3_STORAGE_URL"
ENV_BUCKET = "S3_BUCKET"


@dataclass(slots=True)
class SyncWatchConfig:
    bucket: str
    local_root: str
    endpoint_url: str = ""
    access_key: str = ""
    secret_key: str = ""
    region: str = DEFAULT_REGION
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    @property
    def local_root_path(self) -> Path:
        return Path(self.local_root).resolve()

    def resolved_credentials(self) -> tuple[str, str]:
        """Environment wins over the config file for secrets."""
        access_key = os.getenv(ENV_ACCESS_KEY, "").strip() or self.access_key
        secret_key = os.getenv(ENV_SECRET_KEY, "").strip() or self.secret_key
        return access_key, secret_key

    def resolved_endpoint(self) -> str:
        return os.getenv(ENV_ENDPOINT, "").strip() or self.endpoint_url


def config_path(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()).resolve() / CONFIG_FILENAME


def _string_list(value, name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"`{name}` must be a list of glob patterns")
    return [str(item) for item in value if str(item).strip()]


def _positive_int(value, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"`{name}` must be an integer") from exc
    if number < 1:
        raise ConfigError(f"`{name}` must be >= 1")
    return number


def validate_endpoint(url: str) -> str:
    """Return *url* stripped, or raise ConfigError unless it is an http(s) URL with a host."""
    url = url.strip()
    if not url:
        return url
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigError(f"Invalid endpoint URL {url!r}; expected e.g. http://localhost:9000")
    return url


def load_config(base_dir: Path | None = None) -> SyncWatchConfig:
    path = config_path(base_dir)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}. Run `sw init <bucket>` first."
        )

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")

    bucket = str(data.get("bucket") or os.getenv(ENV_BUCKET, "") or "").strip()
    if not bucket:
        raise ConfigError(f"No bucket configured in {path}")
    local_root = data.get("local_root")
    if not local_root:
        raise ConfigError(f"No local_root configured in {path}")

    return SyncWatchConfig(
        bucket=bucket,
        local_root=str(local_root),
        endpoint_url=validate_endpoint(str(data.get("endpoint_url") or "")),
        access_key=str(data.get("access_key", "")),
        secret_key=str(data.get("secret_key", "")),
        region=str(data.get("region") or DEFAULT_REGION),
        include=_string_list(data.get("include"), "include"),
        exclude=_string_list(data.get("exclude"), "exclude"),
        max_attempts=_positive_int(data.get("max_attempts", DEFAULT_MAX_ATTEMPTS), "max_attempts"),
    )


def save_config(config: SyncWatchConfig, base_dir: Path | None = None) -> Path:
    path = config_path(base_dir)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(asdict(config), fh, indent=2)
        fh.write("\n")
    return path


def default_bucket() -> str:
    return os.getenv(ENV_BUCKET, "") or DEFAULT_BUCKET


def default_endpoint() -> str:
    return os.getenv(ENV_ENDPOINT, "")
