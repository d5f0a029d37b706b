"""Source binding configuration loading."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from watchtower.lib import oj
from watchtower.transport.types import TransportConfig

logger = logging.getLogger(__name__)

# Config file locations
SOURCES_CONFIG_FILENAME = "sources.json"
GLOBAL_SOURCES_CONFIG = Path.home() / ".watchtower" / SOURCES_CONFIG_FILENAME
LOCAL_SOURCES_CONFIG_DIR = ".watchtower"


@dataclass
class SourceBinding:
    """How to reach one named source and what to initialize it with."""

    name: str
    url: str | None = None
    command: list[str] | None = None
    credentials: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None

    def __post_init__(self) -> None:
        if not self.name or "." in self.name:
            raise ValueError(f"source name must be non-empty and contain no '.': {self.name!r}")

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "SourceBinding":
        """Create from config dict."""
        command = data.get("command")
        if isinstance(command, str):
            command = command.split()
        return cls(
            name=name,
            url=data.get("url"),
            command=command,
            credentials={k: str(v) for k, v in data.get("credentials", {}).items()},
            timeout=data.get("timeout"),
        )

    def transport_config(self) -> TransportConfig:
        return TransportConfig(url=self.url, command=self.command, timeout=self.timeout)


def _read_sources(path: Path) -> dict[str, SourceBinding]:
    bindings: dict[str, SourceBinding] = {}
    try:
        data = oj.loads(path.read_bytes())
    except (OSError, oj.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable source config {path}: {e}")
        return bindings

    sources = data.get("sources", {}) if isinstance(data, dict) else {}
    for name, source_data in sources.items():
        if not isinstance(source_data, dict):
            logger.warning(f"Ignoring source {name!r} in {path}: entry must be an object")
            continue
        try:
            binding = SourceBinding.from_dict(name, source_data)
            binding.transport_config()
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring source {name!r} in {path}: {e}")
            continue
        bindings[name] = binding
    return bindings


def load_source_config(working_dir: Path | None = None) -> dict[str, SourceBinding]:
    """Load source bindings from global and local config files.

    Global config (~/.watchtower/sources.json) is loaded first.
    Local config ({working_dir}/.watchtower/sources.json) overrides global
    entries with the same name.

    Returns:
        Dict mapping source name to binding.
    """
    bindings: dict[str, SourceBinding] = {}

    if GLOBAL_SOURCES_CONFIG.exists():
        bindings.update(_read_sources(GLOBAL_SOURCES_CONFIG))

    if working_dir:
        local_config = working_dir / LOCAL_SOURCES_CONFIG_DIR / SOURCES_CONFIG_FILENAME
        if local_config.exists():
            bindings.update(_read_sources(local_config))

    return bindings
