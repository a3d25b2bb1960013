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

"""Per-document syntax tree cache.

Keeps the most recently used documents parsed and follows their edits with
incremental re-parses. Trees are never edited in place: every edit produces
a new ``TreeSnapshot`` from a copy of the previous tree, so a snapshot handed
to a running truncation stays consistent with the text it was built from.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from ghost_text.document import TextDocument, TextSource
from ghost_text.protocol import EditDelta
from ghost_text.syntax.tree_sitter_manager import (
    byte_offset,
    get_grammar_name,
    get_parser,
    point_at_offset,
)

if TYPE_CHECKING:
    from tree_sitter import Parser, Tree

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 10
DEFAULT_MAX_LINES = 10_000


@dataclass(frozen=True)
class TreeSnapshot:
    """Parse tree together with the exact text and grammar it was built from."""

    tree: "Tree"
    text: str
    language: str


class ParseTreeCache:
    """LRU of parse trees keyed by document uri.

    Example:
        cache = ParseTreeCache()
        unsubscribe = cache.attach(document)
        snapshot = cache.get_for_document(document)
    """

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE, max_lines: int = DEFAULT_MAX_LINES):
        self._max_size = max_size
        self._max_lines = max_lines
        self._trees: "OrderedDict[str, TreeSnapshot]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._trees)

    def __contains__(self, uri: str) -> bool:
        return uri in self._trees

    def get_grammar(self, document: TextSource) -> Optional[str]:
        """Grammar for the document, or None if it is unsupported or too large."""
        grammar = get_grammar_name(document.language_id)
        if grammar is None:
            return None
        if document.line_count > self._max_lines:
            logger.debug(
                f"Skipping syntax support for {document.uri}: "
                f"{document.line_count} lines exceeds {self._max_lines}"
            )
            return None
        return grammar

    def get_parser(self, document: TextSource) -> Optional["Parser"]:
        grammar = self.get_grammar(document)
        if grammar is None:
            return None
        try:
            return get_parser(grammar)
        except (ImportError, ValueError) as e:
            logger.debug(f"No parser for {document.language_id}: {e}")
            return None

    def get(self, uri: str) -> Optional[TreeSnapshot]:
        snapshot = self._trees.get(uri)
        if snapshot is not None:
            self._trees.move_to_end(uri)
        return snapshot

    def get_for_document(self, document: TextSource) -> Optional[TreeSnapshot]:
        """Cached snapshot matching the document's current text.

        A stale snapshot (the host skipped an edit notification) triggers a
        full re-parse.
        """
        if self.get_grammar(document) is None:
            return None
        snapshot = self.get(document.uri)
        if snapshot is None:
            return None
        if snapshot.text != document.get_text():
            logger.debug(f"Parse tree for {document.uri} is stale, re-parsing")
            return self.parse_document(document)
        return snapshot

    def parse_document(self, document: TextSource) -> Optional[TreeSnapshot]:
        """Parse the full document and store the result."""
        parser = self.get_parser(document)
        if parser is None:
            return None

        text = document.get_text()
        tree = parser.parse(text.encode("utf-8"))
        snapshot = TreeSnapshot(tree=tree, text=text, language=get_grammar_name(document.language_id))
        self._store(document.uri, snapshot)
        return snapshot

    def update_on_edit(self, document: TextSource, deltas: List[EditDelta]) -> Optional[TreeSnapshot]:
        """Apply edit deltas to a copy of the cached tree and re-parse incrementally."""
        if not deltas:
            return self.get(document.uri)

        snapshot = self._trees.get(document.uri)
        if snapshot is None:
            return None

        parser = self.get_parser(document)
        if parser is None:
            self._trees.pop(document.uri, None)
            return None

        old_text = snapshot.text
        new_text = document.get_text()
        tree = snapshot.tree.copy()

        for delta in deltas:
            tree.edit(
                start_byte=byte_offset(old_text, delta.start_offset),
                old_end_byte=byte_offset(old_text, delta.old_end_offset),
                new_end_byte=byte_offset(new_text, delta.new_end_offset),
                start_point=point_at_offset(old_text, delta.start_offset),
                old_end_point=point_at_offset(old_text, delta.old_end_offset),
                new_end_point=point_at_offset(new_text, delta.new_end_offset),
            )

        updated = TreeSnapshot(
            tree=parser.parse(new_text.encode("utf-8"), tree),
            text=new_text,
            language=snapshot.language,
        )
        self._store(document.uri, updated)
        return updated

    def attach(self, document: TextDocument) -> Callable[[], None]:
        """Parse ``document`` now and follow its edits.

        Returns:
            Function that stops following the document
        """
        self.parse_document(document)
        return document.on_did_change(self.update_on_edit)

    def remove(self, uri: str) -> None:
        self._trees.pop(uri, None)

    def clear(self) -> None:
        self._trees.clear()

    def _store(self, uri: str, snapshot: TreeSnapshot) -> None:
        self._trees[uri] = snapshot
        self._trees.move_to_end(uri)
        while len(self._trees) > self._max_size:
            evicted, _ = self._trees.popitem(last=False)
            logger.debug(f"Evicted parse tree for {evicted}")

    def stats(self) -> Dict[str, int]:
        return {"size": len(self._trees), "max_size": self._max_size}
