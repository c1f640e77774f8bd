"""
Configuration — tree parameters shared by producer and consumer.

Sources, later ones win:
    1. Built-in defaults (DEFAULT_CHUNK_SIZE, DEFAULT_READ_SIZE)
    2. ~/.chunkseal/config.toml, [tree] table
    3. CHUNKSEAL_CHUNK_SIZE / CHUNKSEAL_READ_SIZE environment variables

Example config.toml:

    [tree]
    chunk_size = 262144
    read_size = 1048576

    [logging]
    level = "INFO"

chunk_size is a protocol parameter: an outboard built with one value can
only be verified with the same value.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from chunkseal import CONFIG_DIR, DEFAULT_CHUNK_SIZE, DEFAULT_READ_SIZE
from chunkseal._format.spec import validate_chunk_size

log = logging.getLogger(__name__)

ENV_CHUNK_SIZE = "CHUNKSEAL_CHUNK_SIZE"
ENV_READ_SIZE = "CHUNKSEAL_READ_SIZE"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class TreeConfig:
    """Validated tree parameters.

    Attributes:
        chunk_size: Leaf size in bytes (power of two). Protocol constant.
        read_size: Builder read buffer size. Never changes the output.
        log_level: Logging level name for the CLI.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    read_size: int = DEFAULT_READ_SIZE
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        validate_chunk_size(self.chunk_size)
        if not isinstance(self.read_size, int) or self.read_size <= 0:
            raise ValueError(f"read_size must be a positive integer, got {self.read_size!r}")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level!r}")


def default_config_path() -> Path:
    return Path.home() / CONFIG_DIR / "config.toml"


def _read_toml(path: Path) -> dict[str, Any]:
    """Read a TOML file. Missing or unreadable files yield an empty dict."""
    if not path.is_file():
        return {}
    try:
        import tomllib
    except ImportError:
        try:
            import tomli as tomllib
        except ImportError:
            log.warning("tomllib/tomli not available, ignoring %s", path)
            return {}

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        log.warning("Failed to load config from %s: %s", path, e)
        return {}


def _env_int(env: Mapping[str, str], name: str) -> int | None:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip(), 0)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> TreeConfig:
    """Load tree parameters from file and environment.

    Args:
        path: Config file; defaults to ~/.chunkseal/config.toml.
        env: Environment mapping; defaults to os.environ.

    Raises:
        ValueError: If a configured value is invalid.
    """
    env = os.environ if env is None else env
    data = _read_toml(Path(path) if path else default_config_path())

    tree = data.get("tree", {})
    logging_section = data.get("logging", {})
    if not isinstance(tree, dict) or not isinstance(logging_section, dict):
        raise ValueError("[tree] and [logging] must be TOML tables")

    values: dict[str, Any] = {}
    if "chunk_size" in tree:
        values["chunk_size"] = tree["chunk_size"]
    if "read_size" in tree:
        values["read_size"] = tree["read_size"]
    if "level" in logging_section:
        values["log_level"] = str(logging_section["level"])

    chunk_size = _env_int(env, ENV_CHUNK_SIZE)
    if chunk_size is not None:
        values["chunk_size"] = chunk_size
    read_size = _env_int(env, ENV_READ_SIZE)
    if read_size is not None:
        values["read_size"] = read_size

    return TreeConfig(**values)
