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

"""Syntax-aware truncation of multi-line completions.

The completion is pasted into the document and parsed. The largest syntax
node that starts on the trigger row is the block the completion belongs to;
the completion is cut where that node ends.
"""

import logging
from typing import TYPE_CHECKING, List, NamedTuple, Optional

from ghost_text.document import TextSource
from ghost_text.protocol import CompletionCandidate, DocumentContext, ParsedCompletion
from ghost_text.syntax.parse_tree_cache import ParseTreeCache
from ghost_text.syntax.tree_sitter_manager import Point, node_text
from ghost_text.text_processing.parse_completion import parse_completion
from ghost_text.text_processing.utils import BRACKET_PAIR

if TYPE_CHECKING:
    from tree_sitter import Node

logger = logging.getLogger(__name__)

_CLOSING_TO_OPENING = {closing: opening for opening, closing in BRACKET_PAIR.items()}


class TruncateParsedResult(NamedTuple):
    insert_text: str
    node_to_insert: Optional["Node"] = None


def insert_missing_brackets(text: str) -> str:
    """Append the closers for brackets left open in ``text``.

    A closer only pops the stack when it matches the innermost opener, so
    stray closers are ignored.

    Example:
        >>> insert_missing_brackets("foo(bar[")
        'foo(bar[])'
    """
    opening_stack: List[str] = []

    for char in text:
        opening = _CLOSING_TO_OPENING.get(char)
        if opening is not None:
            if opening_stack and opening_stack[-1] == opening:
                opening_stack.pop()
        elif char in BRACKET_PAIR:
            opening_stack.append(char)

    return text + "".join(BRACKET_PAIR[bracket] for bracket in reversed(opening_stack))


def find_last_ancestor_on_the_same_row(root: "Node", point: Point) -> Optional["Node"]:
    """Walk up from the named node at ``point`` while parents start on the same row.

    Stops below the root so the result is the outermost statement that
    begins on the trigger line.
    """
    initial = root.named_descendant_for_point_range(point, point)
    if initial is None:
        return None

    initial_row = initial.start_point[0]
    current = initial
    while (
        current.parent is not None
        and current.parent.start_point[0] == initial_row
        and current.parent.id != root.id
    ):
        current = current.parent

    return current


def find_largest_suffix_prefix_overlap(left: str, right: str) -> Optional[str]:
    """Longest string that is both a suffix of ``left`` and a prefix of ``right``."""
    overlap = ""
    for i in range(1, min(len(left), len(right)) + 1):
        if left[len(left) - i :] == right[:i]:
            overlap = right[:i]
    return overlap or None


def truncate_parsed_completion(
    completion: ParsedCompletion,
    document: TextSource,
    doc_context: DocumentContext,
    tree_cache: Optional[ParseTreeCache],
) -> TruncateParsedResult:
    """Truncate a parsed completion at the end of the node it opens.

    Missing closing brackets are appended first (and the completion is
    re-parsed) so an unfinished block still produces a well-formed node.

    Raises:
        ValueError: The completion or the document has no parse data
    """
    snapshot = tree_cache.get_for_document(document) if tree_cache else None
    if completion.tree is None or completion.points is None or snapshot is None:
        raise ValueError("Expected completion and document to have tree-sitter data for truncation")

    insert_text = completion.insert_text
    points = completion.points
    fixed_completion = completion

    current_line_prefix = doc_context.current_line_prefix
    insert_text_with_missing_brackets = insert_missing_brackets(current_line_prefix + insert_text)[
        len(current_line_prefix) :
    ]

    if len(insert_text_with_missing_brackets) != len(insert_text):
        updated = parse_completion(
            CompletionCandidate(insert_text=insert_text_with_missing_brackets),
            document,
            doc_context,
            tree_cache,
        )
        if updated.tree is not None:
            fixed_completion = updated

    node_to_insert = find_last_ancestor_on_the_same_row(
        fixed_completion.tree.root_node, points.trigger or points.start
    )

    if node_to_insert is not None:
        overlap = find_largest_suffix_prefix_overlap(node_text(node_to_insert), insert_text)
        if overlap:
            logger.debug(
                f"Truncated completion to {node_to_insert.type} node "
                f"({len(insert_text)} -> {len(overlap)} chars)"
            )
            return TruncateParsedResult(overlap, node_to_insert)

    logger.debug("No overlap with the enclosing node, keeping completion")
    return TruncateParsedResult(insert_text, node_to_insert)
