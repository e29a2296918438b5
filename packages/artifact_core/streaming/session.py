"""Stream session: one generation from first chunk to commit."""

import asyncio
from collections.abc import AsyncIterable, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from artifact_core.config.schemas import StreamingConfig, VariantTagsConfig
from artifact_core.errors import SchemaDriftError, StoreUnavailableError
from artifact_core.models.version import ChangeType, StreamCommit
from artifact_core.streaming.cleanup import extract_approach
from artifact_core.streaming.parser import ParseResult, parse_stream
from artifact_core.streaming.selector import Selection, VariantSelector

logger = structlog.get_logger()

Committer = Callable[[StreamCommit], Awaitable[Any]]


class StreamStatus(str, Enum):
    """Terminal state of a session."""

    COMMITTED = "committed"
    EMPTY = "empty"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class StreamSnapshot:
    """State after one chunk was applied."""

    buffer_length: int
    result: ParseResult
    selection: Selection


@dataclass(frozen=True)
class StreamOutcome:
    """Result of running a session to its end."""

    status: StreamStatus
    commit: StreamCommit | None = None
    committed: Any = None


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, StoreUnavailableError) and not isinstance(exc, SchemaDriftError)


class StreamSession:
    """Accumulates a token stream, re-parses it per chunk and commits once.

    The parser is re-run on the whole buffer for every chunk; chunks are
    applied strictly in arrival order, so the parser never sees an older
    buffer after a newer one.
    """

    def __init__(
        self,
        committer: Committer | None = None,
        selector: VariantSelector | None = None,
        tags: VariantTagsConfig | None = None,
        on_update: Callable[[StreamSnapshot], None] | None = None,
        title: str | None = None,
        change_type: ChangeType | None = None,
        config: StreamingConfig | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            committer: Coroutine called exactly once with the final commit
            selector: Variant selector to drive (a fresh one by default)
            tags: Delimiter configuration
            on_update: Listener called after every applied chunk
            title: Title to commit with, if the artifact should be renamed
            change_type: Explicit change type for the commit
            config: Commit retry settings
            retry_wait: Override for the wait between commit retries
        """
        self.tags = tags or VariantTagsConfig()
        self.selector = selector or VariantSelector(
            order=self.tags.order, default_variant=self.tags.default
        )
        self._committer = committer
        self._on_update = on_update
        self._title = title
        self._change_type = change_type
        self._config = config or StreamingConfig()
        self._retry_wait = retry_wait or wait_exponential(
            multiplier=1, min=1, max=self._config.commit_retry_max_wait_seconds
        )

        self._chunks: list[str] = []
        self._buffer = ""
        self._result = ParseResult()
        self._cancelled = False
        self._finished = False
        self._committed = False

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def result(self) -> ParseResult:
        return self._result

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: str) -> StreamSnapshot:
        """Append a chunk and re-parse the cumulative buffer."""
        if self._finished:
            raise RuntimeError("Stream session already finished")

        self._chunks.append(chunk)
        self._buffer = "".join(self._chunks)
        self._result = parse_stream(self._buffer, self.tags)
        selection = self.selector.observe(self._result)

        snapshot = StreamSnapshot(
            buffer_length=len(self._buffer),
            result=self._result,
            selection=selection,
        )
        if self._on_update is not None:
            self._on_update(snapshot)
        return snapshot

    def cancel(self) -> None:
        """Stop reacting to further chunks; nothing will be committed."""
        if not self._finished:
            self._cancelled = True

    def finalize(self) -> StreamCommit:
        """Build the commit payload from the final parse."""
        result = self._result
        if result.has_variants:
            variants = {
                variant: extraction.content.strip()
                for variant, extraction in result.variants.items()
                if extraction.content.strip()
            }
        else:
            text = (result.default_content or "").strip()
            variants = {self.tags.default: text} if text else {}
            if text:
                logger.debug(
                    "Stream has no variant tags; using raw output",
                    variant=self.tags.default.value,
                    length=len(text),
                )

        approaches = {}
        for variant, content in variants.items():
            note = extract_approach(content, legacy=False)
            if note:
                approaches[variant] = note

        return StreamCommit(
            variants=variants,
            approaches=approaches,
            title=self._title,
            change_type=self._change_type,
        )

    async def _commit(self, commit: StreamCommit) -> Any:
        if self._committed:
            raise RuntimeError("Stream session already committed")
        self._committed = True

        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self._config.commit_retry_attempts),
            wait=self._retry_wait,
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying stream commit",
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await self._committer(commit)

    async def run(self, source: AsyncIterable[str]) -> StreamOutcome:
        """Consume the token source to completion and commit.

        Exhaustion of the source is the completion signal. A source that
        stalls keeps the session in its partial state; no timeout is applied.

        Args:
            source: Async iterable of text chunks

        Returns:
            StreamOutcome describing how the session ended

        Raises:
            CommitConflictError: If the store rejected the commit as a race
            StoreUnavailableError: If the commit failed after retries
        """
        try:
            async for chunk in source:
                if self._cancelled:
                    break
                self.feed(chunk)
        except asyncio.CancelledError:
            self._cancelled = True
            logger.info("Stream session cancelled", buffer_length=len(self._buffer))
            raise

        if self._cancelled:
            logger.info("Stream session cancelled", buffer_length=len(self._buffer))
            return StreamOutcome(status=StreamStatus.CANCELLED)

        self._finished = True
        self.selector.complete(self._result)
        commit = self.finalize()

        if not commit.variants:
            logger.warning("Stream completed without content; nothing to commit")
            return StreamOutcome(status=StreamStatus.EMPTY, commit=commit)

        committed = None
        if self._committer is not None:
            committed = await self._commit(commit)

        logger.info(
            "Stream session committed",
            variants=sorted(v.value for v in commit.variants),
            buffer_length=len(self._buffer),
        )
        return StreamOutcome(status=StreamStatus.COMMITTED, commit=commit, committed=committed)
