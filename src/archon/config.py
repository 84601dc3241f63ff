"""
Configuration dataclasses for the Archon console.

Settings are persisted together with the inventory. Logging, HTTP client and
file locations are runtime configuration, read from the environment (a
``.env`` file is honoured by the CLI) and overridable by command-line flags.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional


DEFAULT_CONFIG_PATH = Path.home() / ".config" / "archon" / "config.toml"
DEFAULT_LOG_PATH = Path.home() / ".config" / "archon" / "archon.log"


@dataclass
class Settings:
    """Operator settings stored in the inventory file."""

    auto_save: bool = True
    health_check_interval_seconds: int = 300
    default_dns_ttl: int = 300
    theme: str = "default"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'
    log_file: Optional[Path] = None


@dataclass
class ClientConfig:
    """Remote node API client configuration."""

    timeout_seconds: float = 30.0
    log_lines: int = 100


@dataclass
class RuntimeConfig:
    """Everything the console needs that is not part of the inventory."""

    config_path: Path = DEFAULT_CONFIG_PATH
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    client: ClientConfig = field(default_factory=ClientConfig)


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        return int(env.get(name, str(default)))
    except ValueError:
        return default


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    try:
        return float(env.get(name, str(default)))
    except ValueError:
        return default


def runtime_config_from_env(env: Optional[Mapping[str, str]] = None) -> RuntimeConfig:
    """
    Build runtime configuration from environment variables.

    Recognised variables: ARCHON_CONFIG, ARCHON_LOG_LEVEL, ARCHON_LOG_FORMAT,
    ARCHON_LOG_FILE, ARCHON_HTTP_TIMEOUT, ARCHON_LOG_LINES. Malformed numbers
    fall back to their defaults.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        RuntimeConfig
    """
    if env is None:
        env = os.environ

    config_path = env.get("ARCHON_CONFIG", "").strip()
    log_file = env.get("ARCHON_LOG_FILE", "").strip()
    log_format = (env.get("ARCHON_LOG_FORMAT", "text") or "text").lower()
    if log_format not in ("json", "text", "both"):
        log_format = "text"

    return RuntimeConfig(
        config_path=Path(config_path).expanduser() if config_path else DEFAULT_CONFIG_PATH,
        logging=LoggingConfig(
            level=(env.get("ARCHON_LOG_LEVEL", "info") or "info").lower(),
            output_format=log_format,
            log_file=Path(log_file).expanduser() if log_file else None,
        ),
        client=ClientConfig(
            timeout_seconds=_float_env(env, "ARCHON_HTTP_TIMEOUT", 30.0),
            log_lines=_int_env(env, "ARCHON_LOG_LINES", 100),
        ),
    )
