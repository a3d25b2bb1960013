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

"""Inline completion protocol types.

Value types shared by the document-context builder, the syntax truncator,
the stream processor and the request manager. Positions are zero-based
(line, character) pairs in the style of LSP.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from ghost_text.cancellation import CancellationToken
    from ghost_text.document import TextSource


@dataclass(frozen=True, order=True)
class Position:
    """Zero-based position in a text document."""

    line: int
    character: int

    def translate(self, line_delta: int = 0, character_delta: int = 0) -> "Position":
        """Return a position shifted by the given deltas."""
        return Position(self.line + line_delta, self.character + character_delta)


@dataclass(frozen=True)
class Range:
    """A range between two positions (end exclusive)."""

    start: Position
    end: Position


@dataclass(frozen=True)
class SelectedCompletionInfo:
    """Item currently highlighted in the editor's suggest widget."""

    range: Range
    text: str


class TriggerKind(str, Enum):
    """How the completion request was triggered."""

    AUTOMATIC = "automatic"  # While typing
    MANUAL = "manual"  # Keyboard shortcut, bypasses the cache


class StopReason(str, Enum):
    """Why a chunk or candidate stopped."""

    STREAMING_CHUNK = "streaming-chunk"
    REQUEST_FINISHED = "request-finished"
    STREAMING_TRUNCATION = "streaming-truncation"
    HOT_STREAK = "hot-streak"


class ResultSource(str, Enum):
    """Where a completion result came from."""

    NETWORK = "network"
    CACHE = "cache"
    HOT_STREAK = "hot-streak"


class TruncatedWith(str, Enum):
    """Strategy used to truncate a multi-line completion."""

    SYNTAX = "tree-sitter"
    INDENTATION = "indentation"


@dataclass(frozen=True)
class DocumentContext:
    """Derived view of the document around the cursor.

    Built once per request and re-derived (never mutated) when the hot streak
    simulates accepting a completion.

    Attributes:
        prefix: Text before the cursor, bounded by the max prefix length
        suffix: Text after the cursor, bounded by the max suffix length
        current_line_prefix: Text of the cursor line before the cursor
        current_line_suffix: Text of the cursor line after the cursor
        prev_non_empty_line: Closest non-blank line above the cursor line
        next_non_empty_line: Closest non-blank line below the cursor line
        position: Cursor position
        multiline_trigger: Token that opened a block at the cursor, if any
        multiline_trigger_position: Position of the last non-whitespace
            character before the cursor when a trigger fired
        injected_prefix: Text from the suggest widget patched into the prefix
        injected_completion_text: Completion text virtually inserted by the
            hot streak
        position_without_injected_completion_text: Cursor position before any
            virtual insertion
    """

    prefix: str
    suffix: str
    current_line_prefix: str
    current_line_suffix: str
    prev_non_empty_line: str
    next_non_empty_line: str
    position: Position
    multiline_trigger: Optional[str] = None
    multiline_trigger_position: Optional[Position] = None
    injected_prefix: Optional[str] = None
    injected_completion_text: Optional[str] = None
    position_without_injected_completion_text: Optional[Position] = None


@dataclass
class NodeTypesInfo:
    """Syntax node types around the cursor, collected for analytics."""

    at_cursor: Optional[str] = None
    parent: Optional[str] = None
    grandparent: Optional[str] = None
    great_grandparent: Optional[str] = None
    last_ancestor_on_the_same_line: Optional[str] = None


@dataclass
class CompletionCandidate:
    """A single inline completion suggestion."""

    insert_text: str
    range: Optional[Range] = None
    stop_reason: Optional[str] = None
    parse_error_count: int = 0
    line_truncated_count: Optional[int] = None
    truncated_with: Optional[TruncatedWith] = None
    node_types: Optional[NodeTypesInfo] = None
    node_types_with_completion: Optional[NodeTypesInfo] = None

    @property
    def line_count(self) -> int:
        return len(self.insert_text.split("\n"))


@dataclass
class CompletionPoints:
    """Tree-sitter points of a pasted completion (rows and byte columns)."""

    start: tuple
    end: tuple
    trigger: Optional[tuple] = None


@dataclass
class ParsedCompletion(CompletionCandidate):
    """Candidate carrying the parse tree of the document with it pasted in."""

    tree: Any = None
    points: Optional[CompletionPoints] = None
    text_with_completion: Optional[str] = None


@dataclass(frozen=True)
class StreamChunk:
    """One update from the model stream.

    ``completion`` is the cumulative text generated so far, not a delta.
    """

    completion: str
    stop_reason: str = StopReason.STREAMING_CHUNK.value


@dataclass
class FetchCompletionResult:
    """A candidate emitted by the stream processor with its doc context."""

    doc_context: DocumentContext
    completion: CompletionCandidate


@dataclass(frozen=True)
class EditDelta:
    """A single document edit expressed in character offsets.

    ``start_offset`` and ``old_end_offset`` refer to the text before the edit,
    ``new_end_offset`` to the text after it.
    """

    start_offset: int
    old_end_offset: int
    new_end_offset: int


@dataclass
class RequestParams:
    """Identity of a completion request."""

    document: "TextSource"
    doc_context: DocumentContext
    position: Position
    token: Optional["CancellationToken"] = None


@dataclass
class RequestManagerResult:
    """Candidates returned to the editor together with their source."""

    candidates: List[CompletionCandidate]
    source: ResultSource


@dataclass
class StreamContinuationState:
    """Single live continuation slot of the request manager."""

    raw_prefix: str
    token: "CancellationToken"
    accumulated_text: str = ""
    uri: Optional[str] = None

    @property
    def full_text(self) -> str:
        return self.raw_prefix + self.accumulated_text


@dataclass
class LastCandidate:
    """The last-suggested ghost text result."""

    uri: str
    last_trigger_doc_context: DocumentContext
    last_trigger_position: Position
    result: RequestManagerResult


@dataclass
class InlineCompletionMetrics:
    """Counters for inline completion requests."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cancelled_requests: int = 0
    cache_hits: int = 0
    total_latency_ms: float = 0.0
    source_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def avg_latency_ms(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_latency_ms / self.total_requests

    def record_source(self, source: ResultSource) -> None:
        self.source_counts[source.value] = self.source_counts.get(source.value, 0) + 1
