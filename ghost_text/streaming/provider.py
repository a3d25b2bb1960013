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

"""Completion provider interface and base implementation.

Defines the abstract interface for completion providers following
the Strategy pattern for extensibility. A provider only produces the
cumulative text stream; consuming, truncating and caching it is the job of
the stream processor and the request manager.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Callable, List, Optional, Sequence, Union

from ghost_text.cancellation import CancellationToken
from ghost_text.document import TextSource
from ghost_text.protocol import DocumentContext, Position, StopReason, StreamChunk

if TYPE_CHECKING:
    from ghost_text.syntax.parse_tree_cache import ParseTreeCache

logger = logging.getLogger(__name__)


@dataclass
class ProviderOptions:
    """Per-request options handed to a provider.

    Attributes:
        document: Source document
        doc_context: Context of the request
        position: Cursor position
        multiline: A multiline trigger was detected at request time
        first_completion_timeout_ms: After this, the first completion is
            emitted from whatever text has arrived
        dynamic_multiline_completions: Detect blocks opened by the first
            generated line
        hot_streak: Carve follow-up completions out of the same stream
        indent_string: One indentation unit of the editor
        tree_cache: Parse tree cache, None disables syntax truncation
    """

    document: TextSource
    doc_context: DocumentContext
    position: Position
    multiline: bool
    first_completion_timeout_ms: float = 1200
    dynamic_multiline_completions: bool = True
    hot_streak: bool = True
    indent_string: str = "    "
    tree_cache: Optional["ParseTreeCache"] = None


class BaseCompletionProvider(ABC):
    """Abstract base class for completion providers.

    Subclasses implement ``generate_completions`` and may override
    ``post_process`` to strip provider-specific markers from the raw text.
    """

    def __init__(self, options: ProviderOptions):
        self.options = options

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this provider."""
        ...

    @abstractmethod
    def generate_completions(self, token: CancellationToken) -> AsyncIterator[StreamChunk]:
        """Stream cumulative completion text.

        Every chunk carries the full text generated so far. The final chunk
        carries a stop reason other than ``streaming-chunk``. Implementations
        stop as soon as ``token`` is cancelled.

        Args:
            token: Cancelled when the consumer no longer needs more text
        """
        ...

    def post_process(self, completion: str) -> str:
        """Provider-specific clean-up of the raw cumulative text."""
        return completion

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


ProviderFactory = Callable[[ProviderOptions], BaseCompletionProvider]


class StaticCompletionProvider(BaseCompletionProvider):
    """Replays a fixed list of chunks.

    Plain strings are treated as intermediate chunks except the last one,
    which finishes the request. Useful for tests and offline replays.

    Example:
        provider = StaticCompletionProvider(options, ["ret", "return 1;\\n}"])
    """

    def __init__(
        self,
        options: ProviderOptions,
        chunks: Sequence[Union[str, StreamChunk]],
        delay_s: float = 0.0,
        error: Optional[BaseException] = None,
    ):
        super().__init__(options)
        self._chunks = self._normalize(chunks)
        self._delay_s = delay_s
        self._error = error
        self.consumed = 0

    @staticmethod
    def _normalize(chunks: Sequence[Union[str, StreamChunk]]) -> List[StreamChunk]:
        normalized = []
        for i, chunk in enumerate(chunks):
            if isinstance(chunk, StreamChunk):
                normalized.append(chunk)
            elif i == len(chunks) - 1:
                normalized.append(StreamChunk(chunk, StopReason.REQUEST_FINISHED.value))
            else:
                normalized.append(StreamChunk(chunk))
        return normalized

    @property
    def name(self) -> str:
        return "static"

    async def generate_completions(self, token: CancellationToken) -> AsyncIterator[StreamChunk]:
        for chunk in self._chunks:
            if token.is_cancelled:
                logger.debug("Static provider cancelled")
                return
            # Always yield control so a cancellation can land between chunks
            await asyncio.sleep(self._delay_s)
            self.consumed += 1
            yield chunk
        if self._error is not None:
            raise self._error
