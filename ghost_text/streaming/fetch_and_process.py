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

"""Stream processor.

Consumes the provider's cumulative chunk stream and decides when a usable
completion can be emitted. The processor moves through

    STREAMING -> (TRUNCATING -> EMITTING)* -> DONE | ABORTED

where each chunk is truncated and, once a candidate is usable, emitted.
After the first emission the stream is either aborted (single completion)
or handed to the hot streak extractor for follow-up completions.
"""

import logging
import time
from dataclasses import replace
from enum import Enum
from typing import AsyncIterator, Callable, Iterator, List, Optional

from ghost_text.cancellation import CancellationToken
from ghost_text.doc_context import with_dynamic_multiline_trigger
from ghost_text.protocol import (
    CompletionCandidate,
    FetchCompletionResult,
    StopReason,
    StreamChunk,
)
from ghost_text.streaming.hot_streak import HotStreakExtractor
from ghost_text.streaming.provider import ProviderOptions
from ghost_text.text_processing.parse_and_truncate import (
    can_use_partial_completion,
    parse_and_truncate_completion,
)
from ghost_text.text_processing.postprocess import process_completion
from ghost_text.text_processing.utils import get_first_line

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    STREAMING = "streaming"
    TRUNCATING = "truncating"
    EMITTING = "emitting"
    DONE = "done"
    ABORTED = "aborted"


class StreamProcessor:
    """Turns a chunk stream into completion results.

    Args:
        options: Provider options of the request
        token: Request token; once cancelled nothing more is emitted
        abort_token: Token handed to the provider; cancelled when no more
            text is needed
        post_process: Provider-specific clean-up of the raw text
    """

    def __init__(
        self,
        options: ProviderOptions,
        token: CancellationToken,
        abort_token: Optional[CancellationToken] = None,
        post_process: Optional[Callable[[str], str]] = None,
    ):
        self.options = options
        self.state = StreamState.STREAMING
        self._token = token
        self._abort_token = abort_token or token.fork()
        self._post_process = post_process or (lambda text: text)
        self._hot_streak: Optional[HotStreakExtractor] = None
        self._clock = time.monotonic

    @property
    def abort_token(self) -> CancellationToken:
        return self._abort_token

    async def process(self, chunks: AsyncIterator[StreamChunk]) -> AsyncIterator[FetchCompletionResult]:
        start = self._clock()
        try:
            async for chunk in chunks:
                if self._token.is_cancelled:
                    self.state = StreamState.ABORTED
                    return

                elapsed_ms = (self._clock() - start) * 1000
                is_first_completion_timeout_elapsed = (
                    elapsed_ms >= self.options.first_completion_timeout_ms
                )
                is_full_response = chunk.stop_reason != StopReason.STREAMING_CHUNK.value
                should_yield_first_completion = (
                    is_full_response or is_first_completion_timeout_elapsed
                )

                raw_completion = self._post_process(chunk.completion)

                # Not enough text to decide anything yet
                if not get_first_line(raw_completion) and not should_yield_first_completion:
                    continue

                self.state = StreamState.TRUNCATING
                results = list(
                    self._process_chunk(
                        raw_completion,
                        is_full_response,
                        should_yield_first_completion,
                        is_first_completion_timeout_elapsed,
                    )
                )
                if is_full_response:
                    results = self._with_terminal_stop_reason(results, chunk.stop_reason)

                for result in results:
                    if self._token.is_cancelled:
                        self.state = StreamState.ABORTED
                        return
                    self.state = StreamState.EMITTING
                    yield result

                if self._abort_token.is_cancelled:
                    break

                self.state = StreamState.STREAMING

            self.state = StreamState.DONE
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

    def _process_chunk(
        self,
        raw_completion: str,
        is_full_response: bool,
        should_yield_first_completion: bool,
        is_first_completion_timeout_elapsed: bool,
    ) -> Iterator[FetchCompletionResult]:
        options = self.options
        document = options.document
        doc_context = options.doc_context

        if self._hot_streak is not None:
            yield from self._hot_streak.extract(raw_completion, is_full_response)
            return

        extract_completion = (
            parse_and_truncate_completion
            if should_yield_first_completion
            else can_use_partial_completion
        )

        # Multiline trigger known at request time: wait until truncation finds a cut point
        if options.multiline:
            completion = extract_completion(
                raw_completion,
                document,
                doc_context,
                is_dynamic_multiline_completion=False,
                tree_cache=options.tree_cache,
            )
            if completion is not None:
                completed = process_completion(
                    completion, document, options.position, doc_context, options.tree_cache
                )
                yield from self._stop_streaming_and_use_partial_response(
                    completed, raw_completion, is_full_response
                )
            return

        dynamic_doc_context = doc_context
        if options.dynamic_multiline_completions:
            dynamic_doc_context = with_dynamic_multiline_trigger(
                doc_context, raw_completion, document.language_id
            )

        if dynamic_doc_context.multiline_trigger and not is_first_completion_timeout_elapsed:
            # The first generated line opened a block: continue as a multiline request
            completion = extract_completion(
                raw_completion,
                document,
                dynamic_doc_context,
                is_dynamic_multiline_completion=True,
                tree_cache=options.tree_cache,
            )
            if completion is not None:
                completed = process_completion(
                    completion,
                    document,
                    dynamic_doc_context.position,
                    dynamic_doc_context,
                    options.tree_cache,
                )
                yield from self._stop_streaming_and_use_partial_response(
                    completed, raw_completion, is_full_response
                )
        else:
            completion = extract_completion(
                raw_completion,
                document,
                doc_context,
                is_dynamic_multiline_completion=False,
                tree_cache=options.tree_cache,
            )
            if completion is not None:
                completion.insert_text = get_first_line(completion.insert_text)
                completed = process_completion(
                    completion, document, options.position, doc_context, options.tree_cache
                )
                yield from self._stop_streaming_and_use_partial_response(
                    completed, raw_completion, is_full_response
                )

    def _stop_streaming_and_use_partial_response(
        self,
        completed: CompletionCandidate,
        raw_completion: str,
        is_full_response: bool,
    ) -> Iterator[FetchCompletionResult]:
        logger.debug(
            f"First completion ready after {len(raw_completion)} chars "
            f"(full response: {is_full_response})"
        )
        yield FetchCompletionResult(
            doc_context=self.options.doc_context,
            completion=replace(completed, stop_reason=StopReason.STREAMING_TRUNCATION.value),
        )

        if self.options.hot_streak:
            self._hot_streak = HotStreakExtractor(completed, self.options)
            yield from self._hot_streak.extract(raw_completion, is_full_response)
        else:
            self._abort_token.cancel()

    @staticmethod
    def _with_terminal_stop_reason(
        results: List[FetchCompletionResult], stop_reason: str
    ) -> List[FetchCompletionResult]:
        """Give the last result the stream's own stop reason, earlier ones ``hot-streak``."""
        updated = []
        for i, result in enumerate(results):
            reason = stop_reason if i == len(results) - 1 else StopReason.HOT_STREAK.value
            updated.append(
                FetchCompletionResult(
                    doc_context=result.doc_context,
                    completion=replace(result.completion, stop_reason=reason),
                )
            )
        return updated


async def fetch_and_process_dynamic_multiline_completions(
    chunks: AsyncIterator[StreamChunk],
    options: ProviderOptions,
    token: CancellationToken,
    abort_token: Optional[CancellationToken] = None,
    post_process: Optional[Callable[[str], str]] = None,
) -> AsyncIterator[FetchCompletionResult]:
    """Functional form of ``StreamProcessor.process``."""
    processor = StreamProcessor(options, token, abort_token, post_process)
    async for result in processor.process(chunks):
        yield result
