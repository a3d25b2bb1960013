# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Request manager: completion cache, continuation cache and single flight.

Two caches answer requests without a provider call:

- The request cache, an LRU keyed by ``(prefix, next_non_empty_line)``,
  holds the first result of every request plus the hot streak follow-ups
  under the context the user will reach after accepting.
- The continuation slot remembers the raw stream of the last request. When
  the user types characters the stream already predicted, the remainder is
  returned directly.

Only one stream is live at a time: a request that is not a continuation
aborts the previous stream before starting its own.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import AsyncIterator, Callable, List, Optional, Tuple

from ghost_text.cancellation import CancellationToken
from ghost_text.protocol import (
    CompletionCandidate,
    DocumentContext,
    Range,
    RequestManagerResult,
    RequestParams,
    ResultSource,
    StreamChunk,
    StreamContinuationState,
)
from ghost_text.streaming.fetch_and_process import StreamProcessor
from ghost_text.streaming.provider import BaseCompletionProvider
from ghost_text.text_processing.postprocess import process_inline_completions
from ghost_text.text_processing.utils import (
    get_position_after_text_insertion_same_line,
    lines,
    remove_indentation,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 50

CacheKey = Tuple[str, str]


class RequestCache:
    """LRU of results keyed by prefix and the next non-empty line."""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        self._max_size = max_size
        self._entries: "OrderedDict[CacheKey, RequestManagerResult]" = OrderedDict()

    @staticmethod
    def to_cache_key(doc_context: DocumentContext) -> CacheKey:
        return doc_context.prefix, doc_context.next_non_empty_line

    def get(self, doc_context: DocumentContext) -> Optional[RequestManagerResult]:
        key = self.to_cache_key(doc_context)
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
        return entry

    def set(self, doc_context: DocumentContext, result: RequestManagerResult) -> None:
        key = self.to_cache_key(doc_context)
        self._entries[key] = result
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def delete(self, doc_context: DocumentContext) -> None:
        self._entries.pop(self.to_cache_key(doc_context), None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RequestManager:
    """Serves completion requests from cache or from a single live stream."""

    def __init__(self, cache_size: int = DEFAULT_CACHE_SIZE):
        self.cache = RequestCache(cache_size)
        self._continuation: Optional[StreamContinuationState] = None
        self._tasks: "set[asyncio.Task]" = set()

    @property
    def continuation(self) -> Optional[StreamContinuationState]:
        return self._continuation

    def check_cache(self, params: RequestParams, is_cache_enabled: bool = True) -> Optional[RequestManagerResult]:
        if not is_cache_enabled:
            return None
        cached = self.cache.get(params.doc_context)
        if cached is not None:
            logger.debug(f"Request cache hit at {params.position}")
        return cached

    async def request_plain(
        self,
        params: RequestParams,
        provider: BaseCompletionProvider,
    ) -> Optional[RequestManagerResult]:
        """Return completions for ``params``, streaming from ``provider`` if needed.

        Resolves with the first usable result; the stream keeps running in the
        background to fill the hot streak cache.

        Returns:
            The result, or None when the request was cancelled

        Raises:
            Exception: Whatever the provider raised before the first result
        """
        prefix = params.doc_context.prefix

        continued = self._continue_stream(params)
        if continued is not None:
            return continued

        self._abort_continuation()

        token = params.token.fork() if params.token is not None else CancellationToken()
        state = StreamContinuationState(raw_prefix=prefix, token=token, uri=params.document.uri)
        self._continuation = state

        loop = asyncio.get_running_loop()
        future: "asyncio.Future[Optional[RequestManagerResult]]" = loop.create_future()

        task = loop.create_task(self._generate(params, provider, state, future))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        def on_cancelled() -> None:
            if not future.done():
                future.set_result(None)
            task.cancel()

        token.on_cancelled(on_cancelled)

        logger.info(f"Started completion stream with {provider.name} at {params.position}")
        return await future

    def _continue_stream(self, params: RequestParams) -> Optional[RequestManagerResult]:
        state = self._continuation
        prefix = params.doc_context.prefix
        if (
            state is None
            or not state.accumulated_text
            or state.uri != params.document.uri
            or not prefix.startswith(state.raw_prefix)
            or not state.full_text.startswith(prefix)
        ):
            return None

        completion_to_show = state.full_text[len(prefix) :].rstrip()
        position = params.position
        logger.debug(f"Continuation cache hit, {len(completion_to_show)} chars left")

        return RequestManagerResult(
            candidates=[
                CompletionCandidate(
                    insert_text=completion_to_show,
                    range=Range(
                        position,
                        get_position_after_text_insertion_same_line(position, completion_to_show),
                    ),
                )
            ],
            source=ResultSource.CACHE,
        )

    async def _generate(
        self,
        params: RequestParams,
        provider: BaseCompletionProvider,
        state: StreamContinuationState,
        future: "asyncio.Future[Optional[RequestManagerResult]]",
    ) -> None:
        abort_token = state.token.fork()
        processor = StreamProcessor(provider.options, state.token, abort_token, provider.post_process)
        chunks = self._track_chunks(
            provider.generate_completions(abort_token), state, provider.post_process
        )

        try:
            first_result_seen = False
            async for result in processor.process(chunks):
                candidates = process_inline_completions([result.completion])

                if not first_result_seen:
                    # The first result belongs to the cursor; later ones to virtual lines
                    first_result_seen = True
                    if candidates:
                        self.cache.set(
                            params.doc_context,
                            RequestManagerResult(candidates, ResultSource.CACHE),
                        )
                    if not future.done():
                        future.set_result(RequestManagerResult(candidates, ResultSource.NETWORK))
                    continue

                if candidates:
                    self.cache.set(
                        result.doc_context,
                        RequestManagerResult(candidates, ResultSource.HOT_STREAK),
                    )
                    logger.debug(f"Cached hot streak completion at {result.doc_context.position}")

        except asyncio.CancelledError:
            logger.debug("Completion stream cancelled")
            raise
        except Exception as e:
            if self._continuation is state:
                self._continuation = None
            if not future.done():
                future.set_exception(e)
            else:
                logger.warning(f"Completion stream failed after first result: {e}")
        finally:
            if not future.done():
                future.set_result(
                    None if state.token.is_cancelled else RequestManagerResult([], ResultSource.NETWORK)
                )
            abort_token.dispose()
            state.token.dispose()
            logger.debug(f"Completion stream finished in state {processor.state.value}")

    @staticmethod
    async def _track_chunks(
        chunks: AsyncIterator[StreamChunk],
        state: StreamContinuationState,
        post_process: Callable[[str], str],
    ) -> AsyncIterator[StreamChunk]:
        try:
            async for chunk in chunks:
                state.accumulated_text = post_process(chunk.completion)
                yield chunk
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

    def remove_from_cache(self, params: RequestParams) -> None:
        self.cache.delete(params.doc_context)

    def remove_completion_cache(self) -> None:
        """Abort the live stream and forget its text."""
        self._abort_continuation()

    def _abort_continuation(self) -> None:
        state, self._continuation = self._continuation, None
        if state is not None and not state.token.is_cancelled:
            logger.debug("Aborting previous completion stream")
            state.token.cancel()

    def dispose(self) -> None:
        self._abort_continuation()
        self.cache.clear()
        for task in list(self._tasks):
            task.cancel()


def compute_if_request_still_relevant(
    current: RequestParams,
    previous: RequestParams,
    completions: Optional[List[CompletionCandidate]],
) -> bool:
    """Whether a result computed for ``previous`` still makes sense at ``current``.

    Both prefixes are aligned on their shared start line and compared without
    indentation. The previous request is relevant when the current prefix is
    a continuation of it (with one of its completions typed) or differs only
    by a typo in the last three characters of the last line.
    """
    if current.document.uri != previous.document.uri:
        return False

    current_prefix_start_line = current.doc_context.position.line - (
        len(lines(current.doc_context.prefix)) - 1
    )
    previous_prefix_start_line = previous.doc_context.position.line - (
        len(lines(previous.doc_context.prefix)) - 1
    )

    shared_start_line = max(current_prefix_start_line, previous_prefix_start_line)
    current_prefix_diff = shared_start_line - current_prefix_start_line
    previous_prefix_diff = shared_start_line - previous_prefix_start_line

    current_prefix = "\n".join(current.doc_context.prefix.split("\n")[current_prefix_diff:])
    previous_prefix = "\n".join(previous.doc_context.prefix.split("\n")[previous_prefix_diff:])

    if current_prefix == "" or previous_prefix == "":
        return False

    current_text = remove_indentation(current_prefix)
    for completion in completions or [CompletionCandidate(insert_text="")]:
        inserted = remove_indentation(previous_prefix + completion.insert_text)

        is_full_continuation = inserted.startswith(current_text) or current_text.startswith(inserted)

        inserted_lines, inserted_last_line = _split_last_line(inserted)
        current_lines, current_last_line = _split_last_line(current_text)
        is_typo = inserted_lines == current_lines and inserted_last_line.startswith(
            current_last_line[:-3]
        )

        if is_full_continuation or is_typo:
            return True

    return False


def _split_last_line(text: str) -> Tuple[str, str]:
    text_lines = text.split("\n")
    last_line = text_lines.pop()
    return "\n".join(text_lines), last_line
