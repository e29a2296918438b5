"""Configuration loaders and schemas."""

from artifact_core.config.loader import load_engine_config, reload_configs
from artifact_core.config.schemas import (
    AnnotationsConfig,
    APIClientConfig,
    CleanupConfig,
    EngineConfig,
    StreamingConfig,
    VariantTagsConfig,
)

__all__ = [
    "load_engine_config",
    "reload_configs",
    "AnnotationsConfig",
    "APIClientConfig",
    "CleanupConfig",
    "EngineConfig",
    "StreamingConfig",
    "VariantTagsConfig",
]
