"""
WorkerConfig: Startup configuration, read once and passed explicitly.

=== Environment (required) ===
    DEFAULT_CA_PATH    PEM bundle used to verify the queue's TLS certificate
    MODULE_AUTH_TOKEN  path to a file holding the Module-Auth-Token value
    GET_JOB_URI        endpoint polled for the next job
    POST_RESULT_URI    base URL; results go to <POST_RESULT_URI>/<jobId>

=== Tunables (optional) ===
configs/worker.yaml, or the file named by WORKER_CONFIG:

    worker:
      fetch_retry_delay: 1.0     # seconds slept after a failed fetch
      connect_timeout: 10
      read_timeout: 120
      log_level: INFO            # LOG_LEVEL in the environment wins
    detector:
      recompress_quality: 99

A missing tunables file means defaults.  Anything else that is missing or
unreadable raises ConfigError, which aborts the process before any job is
fetched.
"""

from __future__ import annotations

import os
import ssl
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigError

CONFIG_PATH = Path(__file__).parent.parent / "configs" / "worker.yaml"

ENV_CA_PATH = "DEFAULT_CA_PATH"
ENV_AUTH_TOKEN = "MODULE_AUTH_TOKEN"
ENV_GET_JOB_URI = "GET_JOB_URI"
ENV_POST_RESULT_URI = "POST_RESULT_URI"
ENV_CONFIG_FILE = "WORKER_CONFIG"
ENV_LOG_LEVEL = "LOG_LEVEL"

DEFAULT_FETCH_RETRY_DELAY = 1.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 120.0
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_RECOMPRESS_QUALITY = 99


@dataclass(frozen=True)
class WorkerConfig:
    """Immutable process configuration."""

    ca_path: Path
    auth_token: str
    get_job_uri: str
    post_result_uri: str

    fetch_retry_delay: float = DEFAULT_FETCH_RETRY_DELAY
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL
    recompress_quality: int = DEFAULT_RECOMPRESS_QUALITY

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        config_path: str | Path | None = None,
    ) -> "WorkerConfig":
        """
        Build the configuration from the environment and the tunables file.

        Raises:
            ConfigError: on a missing variable, an unreadable or empty token
                         file, an unreadable or malformed CA bundle, or a
                         malformed tunables file.
        """
        env = os.environ if environ is None else environ

        ca_path = Path(_require(env, ENV_CA_PATH))
        token_path = Path(_require(env, ENV_AUTH_TOKEN))
        get_job_uri = _require(env, ENV_GET_JOB_URI)
        post_result_uri = _require(env, ENV_POST_RESULT_URI)

        auth_token = _read_token(token_path)
        _check_ca_bundle(ca_path)

        if config_path is None:
            config_path = env.get(ENV_CONFIG_FILE) or CONFIG_PATH
        tunables = load_tunables(config_path)
        w_cfg = _section(tunables, "worker", config_path)
        d_cfg = _section(tunables, "detector", config_path)

        try:
            return cls(
                ca_path=ca_path,
                auth_token=auth_token,
                get_job_uri=get_job_uri,
                post_result_uri=post_result_uri.rstrip("/"),
                fetch_retry_delay=float(w_cfg.get("fetch_retry_delay", DEFAULT_FETCH_RETRY_DELAY)),
                connect_timeout=float(w_cfg.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT)),
                read_timeout=float(w_cfg.get("read_timeout", DEFAULT_READ_TIMEOUT)),
                log_level=str(env.get(ENV_LOG_LEVEL) or w_cfg.get("log_level", DEFAULT_LOG_LEVEL)).upper(),
                recompress_quality=int(d_cfg.get("recompress_quality", DEFAULT_RECOMPRESS_QUALITY)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value in {config_path}: {exc}") from exc


def load_tunables(config_path: str | Path) -> dict[str, Any]:
    """Parse the YAML tunables file; a missing file yields ``{}``."""
    path = Path(config_path)
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            cfg = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return cfg


def _section(tunables: dict[str, Any], name: str, config_path: str | Path) -> dict[str, Any]:
    section = tunables.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{name}' in {config_path} must be a mapping")
    return section


def _require(env: Mapping[str, str], name: str) -> str:
    value = env.get(name)
    if not value:
        raise ConfigError(f"{name} env var not set")
    return value


def _read_token(path: Path) -> str:
    try:
        token = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read module auth token from {path}: {exc}") from exc
    if not token:
        raise ConfigError(f"Module auth token file {path} is empty")
    return token


def _check_ca_bundle(path: Path) -> None:
    """Fail unless *path* loads as a PEM certificate bundle."""
    try:
        ssl.create_default_context(cafile=str(path))
    except FileNotFoundError as exc:
        raise ConfigError(f"Failed to read cert path {path}: {exc}") from exc
    except (ssl.SSLError, OSError, ValueError) as exc:
        raise ConfigError(f"Failed to load cert {path}: {exc}") from exc
