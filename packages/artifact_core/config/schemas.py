"""Pydantic schemas for the engine configuration file."""

from pydantic import BaseModel, Field

from artifact_core.models.artifact import VARIANT_PRIORITY, Variant


class VariantTagsConfig(BaseModel):
    """Delimiters wrapping each variant in the model output."""

    order: list[Variant] = Field(default_factory=lambda: list(VARIANT_PRIORITY))
    default: Variant = Variant.A
    open_tag: str = "<version_{variant}>"
    close_tag: str = "</version_{variant}>"

    def open_for(self, variant: Variant) -> str:
        """Opening delimiter for a variant."""
        return self.open_tag.format(variant=variant.value)

    def close_for(self, variant: Variant) -> str:
        """Closing delimiter for a variant."""
        return self.close_tag.format(variant=variant.value)


class CleanupConfig(BaseModel):
    """Display cleanup options."""

    strip_code_fences: bool = True
    strip_approach_line: bool = False


class AnnotationsConfig(BaseModel):
    """Collaborative annotation behaviour."""

    fallback_on_schema_drift: bool = True
    reduced_fields: list[str] = Field(
        default_factory=lambda: [
            "conversation_id",
            "content",
            "quoted_text",
            "author_id",
            "client_ref",
        ]
    )
    reconnect_attempts: int = 5
    reconnect_max_wait_seconds: float = 10.0


class APIClientConfig(BaseModel):
    """HTTP client settings for talking to the collaboration API."""

    base_url: str = "http://localhost:8000"
    api_key: str = ""
    timeout_seconds: float = 30.0
    retry_attempts: int = 3


class StreamingConfig(BaseModel):
    """Stream session settings."""

    commit_retry_attempts: int = 3
    commit_retry_max_wait_seconds: float = 10.0


class EngineConfig(BaseModel):
    """Top-level engine configuration."""

    variants: VariantTagsConfig = Field(default_factory=VariantTagsConfig)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    annotations: AnnotationsConfig = Field(default_factory=AnnotationsConfig)
    api: APIClientConfig = Field(default_factory=APIClientConfig)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
