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

"""Text source abstraction.

The completion core only needs to read text, convert between offsets and
positions and observe edits. Editor integrations implement ``TextSource``;
``TextDocument`` is the in-memory implementation used by tests and by hosts
that mirror the buffer themselves.
"""

import logging
from typing import Callable, List, Optional, Protocol, runtime_checkable

from ghost_text.protocol import EditDelta, Position, Range

logger = logging.getLogger(__name__)

EditListener = Callable[["TextDocument", List[EditDelta]], None]


@runtime_checkable
class TextSource(Protocol):
    """Read-only view of an editor document."""

    @property
    def uri(self) -> str:
        """Unique document identifier."""
        ...

    @property
    def language_id(self) -> str:
        """Editor language identifier (e.g., 'python', 'typescript')."""
        ...

    @property
    def line_count(self) -> int:
        ...

    def get_text(self, range: Optional[Range] = None) -> str:
        """Return the whole text or the text inside ``range``."""
        ...

    def offset_at(self, position: Position) -> int:
        ...

    def position_at(self, offset: int) -> Position:
        ...


class TextDocument:
    """Mutable in-memory document publishing edit deltas."""

    def __init__(self, uri: str, language_id: str, text: str = ""):
        self._uri = uri
        self._language_id = language_id
        self._text = text
        self._line_offsets = self._compute_line_offsets(text)
        self._listeners: List[EditListener] = []
        self.version = 0

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def language_id(self) -> str:
        return self._language_id

    @property
    def line_count(self) -> int:
        return len(self._line_offsets)

    @staticmethod
    def _compute_line_offsets(text: str) -> List[int]:
        offsets = [0]
        for i, char in enumerate(text):
            if char == "\n":
                offsets.append(i + 1)
        return offsets

    def get_text(self, range: Optional[Range] = None) -> str:
        if range is None:
            return self._text
        return self._text[self.offset_at(range.start) : self.offset_at(range.end)]

    def line_at(self, line: int) -> str:
        start = self._line_offsets[line]
        if line + 1 < len(self._line_offsets):
            return self._text[start : self._line_offsets[line + 1] - 1]
        return self._text[start:]

    def offset_at(self, position: Position) -> int:
        """Convert a position to an offset, clamping out-of-range values."""
        if position.line < 0:
            return 0
        if position.line >= len(self._line_offsets):
            return len(self._text)
        line_start = self._line_offsets[position.line]
        line_length = len(self.line_at(position.line))
        return line_start + max(0, min(position.character, line_length))

    def position_at(self, offset: int) -> Position:
        offset = max(0, min(offset, len(self._text)))
        low, high = 0, len(self._line_offsets) - 1
        while low < high:
            mid = (low + high + 1) // 2
            if self._line_offsets[mid] <= offset:
                low = mid
            else:
                high = mid - 1
        return Position(low, offset - self._line_offsets[low])

    def on_did_change(self, listener: EditListener) -> Callable[[], None]:
        """Subscribe to edits.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply_edit(self, range: Range, new_text: str) -> EditDelta:
        """Replace ``range`` with ``new_text`` and notify listeners."""
        start = self.offset_at(range.start)
        old_end = self.offset_at(range.end)
        delta = EditDelta(
            start_offset=start,
            old_end_offset=old_end,
            new_end_offset=start + len(new_text),
        )

        self._text = self._text[:start] + new_text + self._text[old_end:]
        self._line_offsets = self._compute_line_offsets(self._text)
        self.version += 1

        for listener in list(self._listeners):
            listener(self, [delta])

        return delta

    def insert(self, position: Position, text: str) -> EditDelta:
        return self.apply_edit(Range(position, position), text)

    def __repr__(self) -> str:
        return f"TextDocument(uri={self._uri!r}, language_id={self._language_id!r}, version={self.version})"
