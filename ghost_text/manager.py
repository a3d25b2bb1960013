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

"""Inline completion manager.

Provides a high-level API for IDE integration following the
Facade pattern.
"""

import asyncio
import logging
import time
from typing import Optional

from ghost_text.cancellation import CancellationToken
from ghost_text.doc_context import get_current_doc_context
from ghost_text.document import TextSource
from ghost_text.protocol import (
    DocumentContext,
    InlineCompletionMetrics,
    LastCandidate,
    Position,
    RequestManagerResult,
    RequestParams,
    SelectedCompletionInfo,
    TriggerKind,
)
from ghost_text.session import CompletionSession
from ghost_text.streaming.provider import ProviderFactory, ProviderOptions

logger = logging.getLogger(__name__)


class InlineCompletionManager:
    """High-level manager for ghost text completions.

    Orchestrates one completion session and a provider factory. Handles:
    - Request and continuation caching
    - Debouncing and adaptive delay
    - Last candidate tracking, acceptance and rejection
    - Metrics collection

    Example:
        manager = InlineCompletionManager(
            lambda options: ModelCompletionProvider(options, client, model="qwen2.5-coder"),
        )
        result = await manager.provide_inline_completions(document, Position(3, 4))
    """

    def __init__(
        self,
        provider_factory: ProviderFactory,
        session: Optional[CompletionSession] = None,
    ):
        """Initialize the manager.

        Args:
            provider_factory: Builds a provider for each request that misses the caches
            session: Session state (a fresh one if not provided)
        """
        self._provider_factory = provider_factory
        self.session = session or CompletionSession()

    @property
    def metrics(self) -> InlineCompletionMetrics:
        return self.session.metrics

    @property
    def last_candidate(self) -> Optional[LastCandidate]:
        return self.session.last_candidate

    async def provide_inline_completions(
        self,
        document: TextSource,
        position: Position,
        trigger_kind: TriggerKind = TriggerKind.AUTOMATIC,
        token: Optional[CancellationToken] = None,
        selected_completion_info: Optional[SelectedCompletionInfo] = None,
    ) -> Optional[RequestManagerResult]:
        """Get ghost text completions at a position.

        Args:
            document: The document being edited
            position: Cursor position
            trigger_kind: How the request was triggered
            token: Cancelled when the editor no longer needs the result
            selected_completion_info: Item highlighted in the suggest widget

        Returns:
            The completions with their source, or None when there is nothing
            to show (disabled, cancelled, whitespace-only or failed)
        """
        session = self.session
        settings = session.settings
        if not settings.enabled:
            return None

        token = token or CancellationToken()
        start_time = time.monotonic()
        session.metrics.total_requests += 1

        try:
            request_manager = session.request_manager

            # Moving the cursor backwards invalidates the live stream
            if (
                session.last_request_uri == document.uri
                and session.last_request_position is not None
                and position < session.last_request_position
            ):
                request_manager.remove_completion_cache()
            session.last_request_uri = document.uri
            session.last_request_position = position

            doc_context = get_current_doc_context(
                document,
                position,
                max_prefix_length=settings.max_prefix_length,
                max_suffix_length=settings.max_suffix_length,
                dynamic_multiline_completions=settings.dynamic_multiline_completions,
                selected_completion_info=selected_completion_info,
            )

            self._discard_last_candidate_on_backspace(document, doc_context)

            artificial_delay = session.latency.get_artificial_delay(document.uri, document.language_id)

            params = RequestParams(
                document=document,
                doc_context=doc_context,
                position=position,
                token=token,
            )
            is_cache_enabled = trigger_kind != TriggerKind.MANUAL

            result = request_manager.check_cache(params, is_cache_enabled=is_cache_enabled)
            if result is not None:
                session.metrics.cache_hits += 1
            else:
                result = await self._request(params, trigger_kind, artificial_delay)

            if token.is_cancelled:
                session.metrics.cancelled_requests += 1
                return None

            if result is None:
                session.last_candidate = None
                return None

            if not result.candidates or all(not c.insert_text.strip() for c in result.candidates):
                logger.debug(f"Suppressed whitespace-only completion at {position}")
                session.metrics.successful_requests += 1
                return None

            session.last_candidate = LastCandidate(
                uri=document.uri,
                last_trigger_doc_context=doc_context,
                last_trigger_position=position,
                result=result,
            )

            session.metrics.successful_requests += 1
            session.metrics.record_source(result.source)
            logger.info(
                f"Inline completion at {position} from {result.source.value}: "
                f"{len(result.candidates)} candidate(s)"
            )
            return result

        except Exception as e:
            logger.error(f"Inline completion failed: {e}")
            session.metrics.failed_requests += 1
            return None

        finally:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            session.metrics.total_latency_ms += elapsed_ms

    async def _request(
        self,
        params: RequestParams,
        trigger_kind: TriggerKind,
        artificial_delay: int,
    ) -> Optional[RequestManagerResult]:
        session = self.session
        settings = session.settings
        document = params.document
        doc_context = params.doc_context
        multiline = bool(doc_context.multiline_trigger)

        interval_ms = settings.debounce_ms(multiline) + artificial_delay
        if trigger_kind == TriggerKind.AUTOMATIC and interval_ms > 0:
            await asyncio.sleep(interval_ms / 1000)

        if params.token is not None and params.token.is_cancelled:
            return None

        if document.uri not in session.tree_cache:
            session.tree_cache.parse_document(document)

        provider = self._provider_factory(
            ProviderOptions(
                document=document,
                doc_context=doc_context,
                position=params.position,
                multiline=multiline,
                first_completion_timeout_ms=settings.first_completion_timeout_ms,
                dynamic_multiline_completions=settings.dynamic_multiline_completions,
                hot_streak=settings.hot_streak,
                indent_string=settings.indent_string,
                tree_cache=session.tree_cache,
            )
        )
        return await session.request_manager.request_plain(params, provider)

    def _discard_last_candidate_on_backspace(
        self, document: TextSource, doc_context: DocumentContext
    ) -> None:
        last_candidate = self.session.last_candidate
        if last_candidate is None:
            return

        last_prefix = last_candidate.last_trigger_doc_context.current_line_prefix
        if len(doc_context.current_line_prefix) < len(last_prefix):
            logger.debug("Line prefix shrank, discarding the last candidate")
            self.handle_unwanted_completion_item(
                RequestParams(
                    document=document,
                    doc_context=last_candidate.last_trigger_doc_context,
                    position=last_candidate.last_trigger_position,
                )
            )

    def handle_did_accept_completion_item(self, params: RequestParams) -> None:
        """The user accepted a suggestion made for ``params``."""
        self.session.latency.reset()
        self.clear_last_candidate()
        self.session.request_manager.remove_from_cache(params)
        logger.info(f"Inline completion accepted at {params.position}")

    def handle_unwanted_completion_item(self, params: RequestParams) -> None:
        """The user no longer wants the suggestion made for ``params``."""
        if self.session.last_candidate is None:
            return
        self.clear_last_candidate()
        self.session.request_manager.remove_from_cache(params)

    def clear_last_candidate(self) -> None:
        self.session.last_candidate = None

    def dispose(self) -> None:
        self.session.dispose()
