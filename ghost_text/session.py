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

"""Completion session: the owner of all state shared between requests.

Caches, latency counters and the last suggested candidate live here rather
than in module globals, so a host can run several independent sessions and
tests can start from a clean slate with ``reset()``.
"""

import logging
from typing import Callable, Dict, Optional

from ghost_text.artificial_delay import LatencyTracker
from ghost_text.config import CompletionSettings
from ghost_text.document import TextDocument
from ghost_text.protocol import InlineCompletionMetrics, LastCandidate, Position
from ghost_text.request_manager import RequestManager
from ghost_text.syntax.parse_tree_cache import ParseTreeCache

logger = logging.getLogger(__name__)


class CompletionSession:
    """Session-scoped state of the inline completion engine."""

    def __init__(self, settings: Optional[CompletionSettings] = None):
        self.settings = settings or CompletionSettings()
        self._detachers: Dict[str, Callable[[], None]] = {}
        self._create_state()

    def _create_state(self) -> None:
        settings = self.settings
        self.request_manager = RequestManager(cache_size=settings.cache_size)
        self.tree_cache = ParseTreeCache(
            max_size=settings.parse_tree_cache_size,
            max_lines=settings.max_parse_lines,
        )
        self.latency = LatencyTracker(user_latency=settings.user_latency)
        self.metrics = InlineCompletionMetrics()
        self.last_candidate: Optional[LastCandidate] = None
        self.last_request_uri: Optional[str] = None
        self.last_request_position: Optional[Position] = None

    def open_document(self, document: TextDocument) -> None:
        """Parse ``document`` and keep its parse tree in sync with its edits."""
        self.close_document(document.uri)
        self._detachers[document.uri] = self.tree_cache.attach(document)
        logger.debug(f"Tracking {document.uri}")

    def close_document(self, uri: str) -> None:
        detach = self._detachers.pop(uri, None)
        if detach is not None:
            detach()
        self.tree_cache.remove(uri)

    def reset(self) -> None:
        """Drop every cache, counter and live stream."""
        self.request_manager.dispose()
        for detach in self._detachers.values():
            detach()
        self._detachers.clear()
        self._create_state()
        logger.debug("Completion session reset")

    def dispose(self) -> None:
        self.request_manager.dispose()
        for uri in list(self._detachers):
            self.close_document(uri)
        self.tree_cache.clear()
        self.last_candidate = None
