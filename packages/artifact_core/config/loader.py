"""Engine configuration loading."""

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from artifact_core.config.schemas import EngineConfig

CONFIG_FILENAME = "engine.yaml"

# ${VAR} or ${VAR:-default}
_ENV_REF = re.compile(r"^\$\{(?P<name>\w+)(?::-(?P<default>.*))?\}$")


def find_config_file(filename: str = CONFIG_FILENAME) -> Path:
    """Locate an engine config file.

    ``COLLAB_CONFIG_DIR`` wins when set; otherwise the nearest ``config/``
    directory above this package that holds the file is used.

    Raises:
        FileNotFoundError: If no candidate location has the file
    """
    override = os.environ.get("COLLAB_CONFIG_DIR")
    if override:
        candidates = [Path(override) / filename]
    else:
        candidates = [parent / "config" / filename for parent in Path(__file__).resolve().parents]

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise FileNotFoundError(f"Config file not found: {filename}")


def _expand_env_vars(value: Any) -> Any:
    """Substitute environment references in string leaves."""
    if isinstance(value, dict):
        return {key: _expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    if isinstance(value, str):
        match = _ENV_REF.match(value)
        if match:
            return os.environ.get(match["name"], match["default"] or "")
    return value


@lru_cache
def load_engine_config() -> EngineConfig:
    """Load the engine configuration.

    Returns:
        Validated EngineConfig

    Raises:
        FileNotFoundError: If engine.yaml cannot be located
        ValidationError: If schema validation fails
    """
    path = find_config_file()
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return EngineConfig(**_expand_env_vars(data))


def reload_configs() -> None:
    """Clear cached configs to force reload."""
    load_engine_config.cache_clear()
