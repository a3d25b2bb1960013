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

"""Post-processing and ranking of completion candidates."""

import logging
import re
from dataclasses import replace
from typing import TYPE_CHECKING, List, Optional

from ghost_text.document import TextSource
from ghost_text.protocol import (
    CompletionCandidate,
    DocumentContext,
    NodeTypesInfo,
    ParsedCompletion,
    Position,
    Range,
)
from ghost_text.syntax.parse_tree_cache import ParseTreeCache
from ghost_text.syntax.tree_sitter_manager import point_for_position
from ghost_text.text_processing.parse_completion import drop_parser_fields
from ghost_text.text_processing.truncate_parsed import find_last_ancestor_on_the_same_row
from ghost_text.text_processing.utils import (
    collapse_duplicative_whitespace,
    get_matching_suffix_length,
    remove_trailing_whitespace,
    trim_until_suffix,
)

if TYPE_CHECKING:
    from tree_sitter import Tree

logger = logging.getLogger(__name__)

PROMPT_CONTINUATIONS = [
    # Anthropic style prompt continuation
    re.compile(r"^(\n){0,2}Human: "),
    # StarCoder style code example
    re.compile(r"^(//|#) Path: "),
]


def process_completion(
    completion: ParsedCompletion,
    document: TextSource,
    position: Position,
    doc_context: DocumentContext,
    tree_cache: Optional[ParseTreeCache] = None,
) -> ParsedCompletion:
    """Shared clean-up applied to every candidate before it is shown.

    Steps: re-apply the suggest-widget prefix, widen the range over
    current-line suffix characters the completion reproduces, collect node
    types, keep only the first line for single-line requests, trim lines
    repeated by the suffix and collapse doubled whitespace.
    """
    if completion.insert_text == "":
        return completion

    insert_text = completion.insert_text
    if doc_context.injected_prefix:
        insert_text = doc_context.injected_prefix + insert_text

    completion.range = get_range_adjusted_for_overlapping_characters(
        completion, position, doc_context.current_line_suffix
    )

    snapshot = tree_cache.get_for_document(document) if tree_cache else None
    if snapshot is not None:
        completion.node_types = get_node_types_info(
            snapshot.tree, snapshot.text, position, doc_context.multiline_trigger_position
        )
    if completion.tree is not None and completion.text_with_completion is not None:
        completion.node_types_with_completion = get_node_types_info(
            completion.tree,
            completion.text_with_completion,
            position,
            doc_context.multiline_trigger_position,
        )

    if doc_context.multiline_trigger:
        insert_text = remove_trailing_whitespace(insert_text)
    else:
        # Single-line mode keeps the first line only
        newline_index = insert_text.find("\n")
        if newline_index != -1:
            insert_text = insert_text[: newline_index + 1]

    insert_text = trim_until_suffix(
        insert_text, doc_context.prefix, doc_context.suffix, document.language_id
    )
    insert_text = collapse_duplicative_whitespace(doc_context.prefix, insert_text)

    return replace(completion, insert_text=insert_text.rstrip())


def get_range_adjusted_for_overlapping_characters(
    completion: CompletionCandidate,
    position: Position,
    current_line_suffix: str,
) -> Optional[Range]:
    """Range that overwrites the suffix characters the completion reproduces.

    With ``function sort(`` + ``)`` and completion ``array) {`` the range spans
    the ``)`` so the result is not ``function sort(array) {)``.
    """
    matching_suffix_length = get_matching_suffix_length(
        completion.insert_text, current_line_suffix
    )
    if completion.range is None and current_line_suffix != "" and matching_suffix_length != 0:
        return Range(position, position.translate(0, matching_suffix_length))
    return None


def get_node_types_info(
    tree: "Tree",
    text: str,
    position: Position,
    multiline_trigger_position: Optional[Position] = None,
) -> Optional[NodeTypesInfo]:
    """Type of the node just before the cursor and of its three closest ancestors."""
    before_cursor = point_for_position(
        text, Position(position.line, max(0, position.character - 1))
    )
    root = tree.root_node
    at_cursor = root.descendant_for_point_range(before_cursor, before_cursor)
    if at_cursor is None:
        return None

    parents = []
    node = at_cursor.parent
    while node is not None and len(parents) < 3:
        parents.append(node.type)
        node = node.parent
    parents.extend([None] * (3 - len(parents)))

    anchor = point_for_position(text, multiline_trigger_position or position)
    last_ancestor = find_last_ancestor_on_the_same_row(root, anchor)

    return NodeTypesInfo(
        at_cursor=at_cursor.type,
        parent=parents[0],
        grandparent=parents[1],
        great_grandparent=parents[2],
        last_ancestor_on_the_same_line=last_ancestor.type if last_ancestor else None,
    )


def remove_low_quality_completions(items: List[CompletionCandidate]) -> List[CompletionCandidate]:
    """Drop blank, single-character and prompt-continuation candidates."""
    return [
        item
        for item in items
        if len(item.insert_text.strip()) > 1
        and not any(regex.search(item.insert_text) for regex in PROMPT_CONTINUATIONS)
    ]


def dedupe_completions(items: List[CompletionCandidate]) -> List[CompletionCandidate]:
    """Keep the first candidate for each distinct insert text."""
    seen = set()
    unique = []
    for item in items:
        if item.insert_text not in seen:
            seen.add(item.insert_text)
            unique.append(item)
    return unique


def rank_completions(items: List[CompletionCandidate]) -> List[CompletionCandidate]:
    """Stable sort: error-free candidates first, then longer (more lines) first."""
    return sorted(items, key=lambda item: (1 if item.parse_error_count else 0, -item.line_count))


def process_inline_completions(items: List[CompletionCandidate]) -> List[CompletionCandidate]:
    """Filter, de-duplicate and rank processed candidates.

    Returns:
        Plain candidates, parser fields dropped
    """
    visible = remove_low_quality_completions(items)
    unique = dedupe_completions(visible)
    ranked = rank_completions(unique)
    if len(ranked) != len(items):
        logger.debug(f"Post-processing kept {len(ranked)} of {len(items)} candidates")
    return [drop_parser_fields(item) for item in ranked]
