"""
Configuration management for servicectl.

Loads config.yaml from the servicectl home directory:
    $SERVICECTL_HOME/config.yaml     (default ~/.config/servicectl/config.yaml)

An optional env_file is loaded into the process environment (existing
variables win) so blob store credentials can stay out of the YAML.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

DEFAULT_HEALTHCHECK_URL = "http://file_server.service.dc1.consul:8080/v1/static/healthcheck.tgz"


class ConfigError(Exception):
    """Configuration validation error."""
    pass


def get_servicectl_home() -> Path:
    """Directory holding config.yaml, logs and the local blob store."""
    home = os.environ.get("SERVICECTL_HOME")
    if home:
        return Path(home).expanduser()
    return Path("~/.config/servicectl").expanduser()


def default_config_dict(home: Path) -> dict[str, Any]:
    """Config written by `servicectl init`."""
    return {
        "domain": "local.example.io",
        "blob_store": {
            "type": "file",
            "path": str(home / "blobs"),
        },
        "app_runner_factory": None,
        "metadata_fetcher_factory": None,
        "factory_allowlist": [],
        "default_timeout": 120,
        "poll_interval": 1.0,
        "healthcheck_url": DEFAULT_HEALTHCHECK_URL,
        "healthcheck_user": "vcap",
        "service_types": {},
        "logging": {
            "file": str(home / "logs" / "servicectl.log"),
            "level": "INFO",
            "format": "structured",
            "console": False,
        },
        "env_file": str(home / ".env"),
    }


@dataclass
class ServicectlConfig:
    """
    Loaded servicectl configuration.

    Attributes:
        domain: System domain; apps are reachable at <route>.<domain>
        blob_store: Store settings (type: memory|file|dav, path, url, username, password)
        app_runner_factory: "module:function" returning an AppRunner + AppExaminer
        metadata_fetcher_factory: "module:function" returning an ImageMetadataFetcher
        factory_allowlist: Modules factories may be loaded from
        default_timeout: Readiness timeout in seconds when --timeout is not given
        poll_interval: Seconds between readiness polls
        healthcheck_url: Where the setup action downloads the health-check helper
        healthcheck_user: User the setup action runs as
        service_types: Extra service types (tag -> {label, scheme, env})
        log_file: Log file path
        log_level: DEBUG, INFO, WARNING, ERROR
        log_format: "structured" (JSON lines) or "pretty"
        log_console: Also log to the console
        env_file: dotenv file loaded at startup
        home: Directory the config was loaded from
    """
    domain: str = "local.example.io"
    blob_store: dict[str, Any] = field(default_factory=lambda: {"type": "file"})
    app_runner_factory: Optional[str] = None
    metadata_fetcher_factory: Optional[str] = None
    factory_allowlist: list[str] = field(default_factory=list)
    default_timeout: float = 120.0
    poll_interval: float = 1.0
    healthcheck_url: str = DEFAULT_HEALTHCHECK_URL
    healthcheck_user: str = "vcap"
    service_types: dict[str, Any] = field(default_factory=dict)
    log_file: Optional[str] = None
    log_level: str = "INFO"
    log_format: str = "structured"
    log_console: bool = False
    env_file: Optional[str] = None
    home: Path = field(default_factory=get_servicectl_home)

    def validate(self) -> None:
        """Validate values that would otherwise fail deep inside a command."""
        if self.default_timeout <= 0:
            raise ConfigError("default_timeout must be > 0")
        if self.poll_interval <= 0:
            raise ConfigError("poll_interval must be > 0")
        if self.blob_store.get("type", "file") not in ("memory", "file", "dav"):
            raise ConfigError(f"Unknown blob_store type: {self.blob_store.get('type')}")
        if self.log_format not in ("structured", "pretty"):
            raise ConfigError(f"Unknown log format: {self.log_format}")
        if not isinstance(self.service_types, dict):
            raise ConfigError("service_types must be a mapping")

    def get_log_file_path(self) -> Path:
        if self.log_file:
            return Path(self.log_file).expanduser()
        return self.home / "logs" / "servicectl.log"

    @classmethod
    def from_dict(cls, data: dict[str, Any], home: Optional[Path] = None) -> "ServicectlConfig":
        logging_cfg = data.get("logging") or {}
        return cls(
            domain=data.get("domain", "local.example.io"),
            blob_store=dict(data.get("blob_store") or {"type": "file"}),
            app_runner_factory=data.get("app_runner_factory"),
            metadata_fetcher_factory=data.get("metadata_fetcher_factory"),
            factory_allowlist=list(data.get("factory_allowlist") or []),
            default_timeout=float(data.get("default_timeout", 120)),
            poll_interval=float(data.get("poll_interval", 1.0)),
            healthcheck_url=data.get("healthcheck_url", DEFAULT_HEALTHCHECK_URL),
            healthcheck_user=data.get("healthcheck_user", "vcap"),
            service_types=data.get("service_types") or {},
            log_file=logging_cfg.get("file"),
            log_level=str(logging_cfg.get("level", "INFO")).upper(),
            log_format=logging_cfg.get("format", "structured"),
            log_console=bool(logging_cfg.get("console", False)),
            env_file=data.get("env_file"),
            home=home or get_servicectl_home(),
        )


def load_config(config_path: Optional[Path] = None) -> ServicectlConfig:
    """
    Load servicectl configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to $SERVICECTL_HOME/config.yaml

    Returns:
        ServicectlConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If the YAML is invalid or values fail validation
    """
    home = get_servicectl_home()
    if config_path is None:
        config_path = home / "config.yaml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"servicectl config.yaml not found at {config_path}. Run 'servicectl init'."
        )

    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    if not isinstance(data, dict):
        raise ConfigError("config.yaml must contain a mapping")

    config = ServicectlConfig.from_dict(data, home=config_path.parent)
    config.validate()

    if config.env_file:
        env_path = Path(config.env_file).expanduser()
        if env_path.exists():
            load_dotenv(env_path, override=False)

    return config
