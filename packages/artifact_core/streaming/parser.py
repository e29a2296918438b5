"""Incremental parser for multi-variant model output.

The model writes up to three variants into a single stream, each wrapped in
its own delimiters::

    <version_a>
    **Approach:** Lead with urgency.

    ...body...
    </version_a>

The parser is always handed the whole buffer accumulated so far, never a
delta, and is a pure function of that buffer. A variant whose opening
delimiter has arrived but whose closing delimiter has not is reported as
partial content rather than missing, so the UI can render it while the model
is still writing.

Invariants:
- Idempotent: the same buffer always yields the same result.
- Monotonic: for a later buffer of the same stream, a variant that was
  present is still present and its content only grows, except for the
  whitespace trim applied once the closing delimiter arrives. A trailing
  fragment that could be the start of the closing delimiter is withheld
  until the next chunk disambiguates it.
"""

import re
from dataclasses import dataclass, field

from artifact_core.config.schemas import VariantTagsConfig
from artifact_core.models.artifact import VARIANT_PRIORITY, Variant

_DEFAULT_TAGS = VariantTagsConfig()


@dataclass(frozen=True)
class VariantExtraction:
    """Best-known content for one variant."""

    variant: Variant
    content: str
    complete: bool


@dataclass(frozen=True)
class ParseResult:
    """Everything the parser could extract from a buffer snapshot."""

    variants: dict[Variant, VariantExtraction] = field(default_factory=dict)
    default_content: str | None = None
    preamble: str = ""
    postscript: str = ""

    @property
    def has_variants(self) -> bool:
        """True once any tagged variant has been seen."""
        return bool(self.variants)

    @property
    def in_progress(self) -> list[Variant]:
        """Variants whose opening delimiter arrived without the closing one."""
        return [v for v, ext in self.variants.items() if not ext.complete]

    def get(self, variant: Variant) -> str | None:
        """Content for a variant, or None when absent."""
        extraction = self.variants.get(variant)
        return extraction.content if extraction is not None else None

    def has_content(self, variant: Variant) -> bool:
        """True if the variant is present with non-empty content."""
        extraction = self.variants.get(variant)
        return extraction is not None and bool(extraction.content.strip())

    def available(self, order: tuple[Variant, ...] | list[Variant] = VARIANT_PRIORITY) -> list[Variant]:
        """Variants with content, in the given priority order."""
        return [v for v in order if self.has_content(v)]

    def contents(self) -> dict[Variant, str]:
        """Plain variant -> content mapping of everything present."""
        return {v: ext.content for v, ext in self.variants.items()}


def _partial_suffix_length(text: str, delimiter: str) -> int:
    """Length of the longest suffix of text that is a proper prefix of delimiter."""
    for size in range(min(len(text), len(delimiter) - 1), 0, -1):
        if text.endswith(delimiter[:size]):
            return size
    return 0


def _extract_variant(
    buffer: str, variant: Variant, tags: VariantTagsConfig
) -> VariantExtraction | None:
    open_tag = tags.open_for(variant)
    close_tag = tags.close_for(variant)

    start = buffer.find(open_tag)
    if start == -1:
        return None

    content_start = start + len(open_tag)
    end = buffer.find(close_tag, content_start)
    if end != -1:
        return VariantExtraction(
            variant=variant,
            content=buffer[content_start:end].strip(),
            complete=True,
        )

    tail = buffer[content_start:]
    held = _partial_suffix_length(tail, close_tag)
    return VariantExtraction(
        variant=variant,
        content=tail[: len(tail) - held],
        complete=False,
    )


def _preamble(buffer: str, tags: VariantTagsConfig) -> str:
    positions = [
        pos
        for pos in (buffer.find(tags.open_for(v)) for v in tags.order)
        if pos != -1
    ]
    if not positions:
        return ""
    return buffer[: min(positions)].strip()


def _postscript(
    buffer: str, variants: dict[Variant, VariantExtraction], tags: VariantTagsConfig
) -> str:
    if not variants or any(not ext.complete for ext in variants.values()):
        return ""

    last_end = -1
    for variant in variants:
        close_tag = tags.close_for(variant)
        pos = buffer.rfind(close_tag)
        if pos != -1:
            last_end = max(last_end, pos + len(close_tag))
    if last_end == -1:
        return ""

    after = buffer[last_end:]
    for variant in tags.order:
        after = after.replace(tags.close_for(variant), "")
    return after.strip()


def parse_stream(buffer: str, tags: VariantTagsConfig | None = None) -> ParseResult:
    """Extract per-variant content from the cumulative stream buffer.

    Args:
        buffer: Whole text received so far for one stream
        tags: Delimiter configuration (defaults to version_a/b/c tags)

    Returns:
        ParseResult. When no tagged variant exists anywhere in the buffer,
        ``default_content`` carries the raw buffer so untagged output still
        renders; an empty buffer has no default content.
    """
    tags = tags or _DEFAULT_TAGS

    variants: dict[Variant, VariantExtraction] = {}
    for variant in tags.order:
        extraction = _extract_variant(buffer, variant, tags)
        if extraction is not None:
            variants[variant] = extraction

    if not variants:
        return ParseResult(default_content=buffer if buffer else None)

    return ParseResult(
        variants=variants,
        preamble=_preamble(buffer, tags),
        postscript=_postscript(buffer, variants, tags),
    )


def is_variant_in_progress(
    buffer: str, variant: Variant, tags: VariantTagsConfig | None = None
) -> bool:
    """True if the variant's opening delimiter is present without its closing one."""
    tags = tags or _DEFAULT_TAGS
    start = buffer.find(tags.open_for(variant))
    if start == -1:
        return False
    return buffer.find(tags.close_for(variant), start) == -1


def has_variant_markers(buffer: str, tags: VariantTagsConfig | None = None) -> bool:
    """Check if a buffer contains any variant opening delimiter."""
    tags = tags or _DEFAULT_TAGS
    return any(tags.open_for(v) in buffer for v in tags.order)


def strip_variant_markers(buffer: str, tags: VariantTagsConfig | None = None) -> str:
    """Remove complete tagged blocks, leaving only untagged text."""
    tags = tags or _DEFAULT_TAGS
    result = buffer
    for variant in tags.order:
        pattern = re.escape(tags.open_for(variant)) + r"[\s\S]*?" + re.escape(
            tags.close_for(variant)
        )
        result = re.sub(pattern, "", result)
    return result.strip()
