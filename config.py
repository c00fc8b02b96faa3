"""
config.py
Configuration loading from environment variables and socagent.toml.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

_DEFAULT_DB_FILE = Path.home() / ".socagent" / "socagent.db"
_CONFIG_FILENAME = "socagent.toml"

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class SocAgentConfig:
    """Top-level SocAgent configuration."""

    db_file: Path = _DEFAULT_DB_FILE
    log_level: str = "INFO"
    default_admin_email: str = "admin@socagent.cz"
    default_admin_password: str = "admin123"
    seed_sample_data: bool = False


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def load_config(config_path: Path | None = None) -> SocAgentConfig:
    """Load configuration from environment variables and optional socagent.toml.

    Priority: environment variables > socagent.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".socagent" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    auth_data = file_data.get("auth", {})

    return SocAgentConfig(
        db_file=Path(os.getenv("SOCAGENT_DB_FILE", file_data.get("db_file", str(_DEFAULT_DB_FILE)))).expanduser(),
        log_level=os.getenv("SOCAGENT_LOG_LEVEL", file_data.get("log_level", "INFO")),
        default_admin_email=os.getenv(
            "SOCAGENT_ADMIN_EMAIL", auth_data.get("admin_email", "admin@socagent.cz")
        ),
        default_admin_password=os.getenv(
            "SOCAGENT_ADMIN_PASSWORD", auth_data.get("admin_password", "admin123")
        ),
        seed_sample_data=_as_bool(
            os.getenv("SOCAGENT_SAMPLE_DATA", file_data.get("seed_sample_data", False))
        ),
    )
