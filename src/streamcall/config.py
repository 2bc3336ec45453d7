"""Configuration for streamcall.

Config discovery (first match wins):
  1. explicit path (``--config`` flag)
  2. ``./streamcall.yaml``
  3. ``~/.config/streamcall/config.yaml``
  4. Built-in defaults

Environment variables override file values:
``STREAMCALL_API_KEY``, ``STREAMCALL_ENDPOINT``, ``STREAMCALL_MODEL``,
``STREAMCALL_TOOL_SERVER_URL``.

The loaded ``StreamConfig`` is passed explicitly to the objects that need
it; nothing here keeps process-wide state.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from streamcall.errors import ConfigError
from streamcall.types import ToolDescriptor

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Config data structures
# ---------------------------------------------------------------------------

@dataclass
class EndpointSpec:
    """The remote streaming completion endpoint."""

    url: str = "http://localhost:11434/v1/chat/completions"
    api_key: str = "no-key"
    model: str = "qwen3-8b"
    temperature: float = 0.7
    max_tokens: int = 2048
    timeout: float = 60
    read_timeout: float = 120
    retries: int = 3
    extra_params: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolServerSpec:
    """Remote tool server.  An empty ``url`` disables remote execution."""

    url: str = ""
    client_id: str = ""
    timeout: float = 30


@dataclass
class StreamConfig:
    """Top-level config for streamcall."""

    endpoint: EndpointSpec = field(default_factory=EndpointSpec)
    tool_server: ToolServerSpec = field(default_factory=ToolServerSpec)
    tools: list[ToolDescriptor] = field(default_factory=list)
    system_prompt: str = ""

    # Upper bound on streaming turns per prompt (0 = unlimited)
    max_turns: int = 50


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./streamcall.yaml"),
    Path.home() / ".config" / "streamcall" / "config.yaml",
]

_ENV_OVERRIDES = {
    "STREAMCALL_API_KEY": ("endpoint", "api_key"),
    "STREAMCALL_ENDPOINT": ("endpoint", "url"),
    "STREAMCALL_MODEL": ("endpoint", "model"),
    "STREAMCALL_TOOL_SERVER_URL": ("tool_server", "url"),
}


def _parse_endpoint(raw: dict[str, Any] | None) -> EndpointSpec:
    if not raw:
        return EndpointSpec()
    base = EndpointSpec()
    return EndpointSpec(
        url=raw.get("url", base.url),
        api_key=raw.get("api_key", base.api_key),
        model=raw.get("model", base.model),
        temperature=float(raw.get("temperature", base.temperature)),
        max_tokens=int(raw.get("max_tokens", base.max_tokens)),
        timeout=float(raw.get("timeout", base.timeout)),
        read_timeout=float(raw.get("read_timeout", base.read_timeout)),
        retries=int(raw.get("retries", base.retries)),
        extra_params=raw.get("extra_params", {}) or {},
    )


def _parse_tool_server(raw: dict[str, Any] | None) -> ToolServerSpec:
    if not raw:
        return ToolServerSpec()
    return ToolServerSpec(
        url=raw.get("url", ""),
        client_id=raw.get("client_id", ""),
        timeout=float(raw.get("timeout", 30)),
    )


def _parse_tools(raw: list[dict[str, Any]] | None) -> list[ToolDescriptor]:
    tools: list[ToolDescriptor] = []
    for entry in raw or []:
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ConfigError(f"Tool entry needs a name: {entry!r}")
        tools.append(
            ToolDescriptor(
                name=entry["name"],
                description=entry.get("description", ""),
                parameters=entry.get("parameters", {}) or {},
            )
        )
    return tools


def _apply_env(config: StreamConfig) -> None:
    for var, (section, attr) in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            setattr(getattr(config, section), attr, value)
            _logger.debug("Config override from %s", var)


def load_config(path: str | Path | None = None) -> StreamConfig:
    """Load configuration from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Returns
    -------
    StreamConfig

    Raises
    ------
    ConfigError
        If the file exists but is not valid YAML or has a malformed tools
        section.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s, using defaults", path)
            config = StreamConfig()
            _apply_env(config)
            return config
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found, using defaults")
        config = StreamConfig()
        _apply_env(config)
        return config

    _logger.info("Loading config from %s", config_path)
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Config root must be a mapping: {config_path}")

    config = StreamConfig(
        endpoint=_parse_endpoint(raw.get("endpoint")),
        tool_server=_parse_tool_server(raw.get("tool_server")),
        tools=_parse_tools(raw.get("tools")),
        system_prompt=raw.get("system_prompt", "") or "",
        max_turns=int(raw.get("max_turns", 50)),
    )
    _apply_env(config)
    return config
