"""Configuration schema for daxbridge."""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field


def _resolve_env_vars(value: Any) -> Any:
    """Resolve ${ENV_VAR} patterns in string values."""
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")

        def replacer(match):
            env_var = match.group(1)
            return os.environ.get(env_var, match.group(0))

        return pattern.sub(replacer, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def default_config_path() -> Path:
    return Path.home() / ".daxbridge" / "config.yaml"


# ---------------------------------------------------------------------------
# Engine discovery
# ---------------------------------------------------------------------------

class EngineConfig(BaseModel):
    process_name: str = "msmdsrv.exe"


class DiscoveryConfig(BaseModel):
    strategy: Literal["auto", "psutil", "netstat"] = "auto"
    netstat_command: list[str] = Field(default_factory=lambda: ["netstat", "-ano"])
    loopback_prefixes: list[str] = Field(default_factory=lambda: ["127.0.0.1"])
    address_field: int = 1


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------

class ConnectionConfig(BaseModel):
    data_source: str = "DataSource=localhost"
    adomd_path: str = ""  # folder holding Microsoft.AnalysisServices.AdomdClient.dll


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

class LoggingConfig(BaseModel):
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root configuration
# ---------------------------------------------------------------------------

class DaxBridgeConfig(BaseModel):
    engine: EngineConfig = Field(default_factory=EngineConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "DaxBridgeConfig":
        """Load configuration from YAML file with env var resolution."""
        if path is None:
            path = default_config_path()

        if not path.exists():
            return cls()

        with open(path) as f:
            raw = yaml.safe_load(f) or {}

        resolved = _resolve_env_vars(raw)
        return cls.model_validate(resolved)

    def save(self, path: Path | None = None) -> None:
        """Save configuration to YAML file."""
        if path is None:
            path = default_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(
                self.model_dump(exclude_defaults=False),
                f,
                default_flow_style=False,
                sort_keys=False,
            )
