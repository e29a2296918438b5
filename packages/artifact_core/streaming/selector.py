"""Variant selection state machine.

States:
    no_variants_yet -> partial    first content (tagged or untagged) arrives
    partial         -> complete   the stream signals completion
    no_variants_yet -> complete   the stream ended without producing anything
    complete        -> no_variants_yet   reset() for a new stream

The user's choice (``requested``) is never overwritten by the machine. When
the requested variant has no content, display falls back through the
priority order; the fallback is reported, not persisted, so the display
reverts to the requested variant as soon as it has content.
"""

from dataclasses import dataclass
from enum import Enum

import structlog

from artifact_core.models.artifact import DEFAULT_VARIANT, VARIANT_PRIORITY, Variant
from artifact_core.streaming.parser import ParseResult

logger = structlog.get_logger()


class SelectorState(str, Enum):
    """Lifecycle state of the variants of one stream."""

    NO_VARIANTS = "no_variants_yet"
    PARTIAL = "partial"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Selection:
    """What should be displayed right now."""

    state: SelectorState
    requested: Variant
    variant: Variant | None
    content: str | None
    is_fallback: bool
    options: tuple[Variant, ...]
    in_progress: tuple[Variant, ...]


class VariantSelector:
    """Tracks available variants and resolves which one to display."""

    def __init__(
        self,
        selected: Variant = DEFAULT_VARIANT,
        order: tuple[Variant, ...] | list[Variant] = VARIANT_PRIORITY,
        default_variant: Variant = DEFAULT_VARIANT,
    ) -> None:
        self._requested = selected
        self._order = tuple(order)
        self._default_variant = default_variant
        self._state = SelectorState.NO_VARIANTS
        self._result = ParseResult()

    @property
    def state(self) -> SelectorState:
        return self._state

    @property
    def requested(self) -> Variant:
        return self._requested

    @property
    def is_streaming(self) -> bool:
        return self._state is not SelectorState.COMPLETE

    def select(self, variant: Variant) -> Selection:
        """Record the user's choice; it persists across updates and completion."""
        self._requested = variant
        return self.current()

    def observe(self, result: ParseResult) -> Selection:
        """Feed the parse of the latest buffer snapshot."""
        if self._state is SelectorState.COMPLETE:
            raise RuntimeError("Stream already complete; call reset() for a new stream")

        self._result = result
        if result.has_variants or result.default_content is not None:
            if self._state is SelectorState.NO_VARIANTS:
                logger.debug("First variant content observed", options=self._options())
            self._state = SelectorState.PARTIAL
        return self.current()

    def complete(self, result: ParseResult | None = None) -> Selection:
        """Mark the stream finished, optionally with the final parse."""
        if result is not None:
            self._result = result
        self._state = SelectorState.COMPLETE
        return self.current()

    def reset(self) -> None:
        """Forget the previous stream; the requested variant is kept."""
        self._state = SelectorState.NO_VARIANTS
        self._result = ParseResult()

    def content_for(self, variant: Variant) -> str | None:
        """Content of a variant; untagged output counts as the default variant."""
        if self._result.has_variants:
            if self._result.has_content(variant):
                return self._result.get(variant)
            return None
        if variant == self._default_variant and self._result.default_content:
            return self._result.default_content
        return None

    def _options(self) -> tuple[Variant, ...]:
        if not self._result.has_variants:
            if self._result.default_content:
                return (self._default_variant,)
            return ()
        return tuple(v for v in self._order if v in self._result.variants)

    def current(self) -> Selection:
        """Resolve the displayed variant for the current state."""
        in_progress: tuple[Variant, ...] = ()
        if self.is_streaming:
            in_progress = tuple(v for v in self._order if v in self._result.in_progress)

        displayed: Variant | None = None
        content = self.content_for(self._requested)
        if content is not None:
            displayed = self._requested
        else:
            for variant in self._order:
                content = self.content_for(variant)
                if content is not None:
                    displayed = variant
                    break

        return Selection(
            state=self._state,
            requested=self._requested,
            variant=displayed,
            content=content,
            is_fallback=displayed is not None and displayed != self._requested,
            options=self._options(),
            in_progress=in_progress,
        )
