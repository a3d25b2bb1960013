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

"""Paste a completion into its document and parse the result."""

import logging
from dataclasses import fields
from typing import Any, Dict, Optional

from ghost_text.document import TextSource
from ghost_text.protocol import (
    CompletionCandidate,
    CompletionPoints,
    DocumentContext,
    ParsedCompletion,
)
from ghost_text.syntax.parse_tree_cache import ParseTreeCache
from ghost_text.syntax.tree_sitter_manager import (
    count_nodes_in_range,
    point_for_position,
    run_query,
)
from ghost_text.text_processing.utils import (
    get_matching_suffix_length,
    get_position_after_text_insertion,
)

logger = logging.getLogger(__name__)

ERROR_QUERY = "(ERROR) @error"

_CANDIDATE_FIELDS = tuple(f.name for f in fields(CompletionCandidate))


def candidate_fields(completion: CompletionCandidate) -> Dict[str, Any]:
    return {name: getattr(completion, name) for name in _CANDIDATE_FIELDS}


def paste_completion(insert_text: str, document: TextSource, doc_context: DocumentContext) -> str:
    """Document text with the completion inserted at the cursor.

    Text already injected by the hot streak is re-inserted before the
    completion, and the current-line suffix characters the completion
    reproduces are removed so they do not appear twice in the tree.
    """
    anchor = doc_context.position_without_injected_completion_text or doc_context.position
    injected_completion_text = doc_context.injected_completion_text or ""
    matching_suffix_length = get_matching_suffix_length(
        insert_text, doc_context.current_line_suffix
    )

    text = document.get_text()
    offset = document.offset_at(anchor)
    prefix = text[:offset] + injected_completion_text
    suffix = text[offset:]

    return prefix + insert_text + suffix[matching_suffix_length:]


def parse_completion(
    completion: CompletionCandidate,
    document: TextSource,
    doc_context: DocumentContext,
    tree_cache: Optional[ParseTreeCache] = None,
) -> ParsedCompletion:
    """Parse the document with the completion pasted in and count syntax errors.

    Errors are counted only inside the completion's own range, starting at the
    multiline trigger when there is one. Without a cached tree for the document
    the completion is returned unparsed.

    Args:
        completion: Candidate to parse
        document: Source document
        doc_context: Context of the request (possibly with injected text)
        tree_cache: Parse tree cache, None disables syntax support

    Returns:
        ParsedCompletion carrying ``tree`` and ``points`` when parsed
    """
    parsed = ParsedCompletion(**candidate_fields(completion))

    snapshot = tree_cache.get_for_document(document) if tree_cache else None
    parser = tree_cache.get_parser(document) if snapshot is not None else None
    if snapshot is None or parser is None:
        return parsed

    insert_text = completion.insert_text
    position = doc_context.position
    completion_end = get_position_after_text_insertion(position, insert_text)

    text_with_completion = paste_completion(insert_text, document, doc_context)
    tree = parser.parse(text_with_completion.encode("utf-8"))

    points = CompletionPoints(
        start=point_for_position(text_with_completion, position),
        end=point_for_position(text_with_completion, completion_end),
    )
    if doc_context.multiline_trigger_position is not None:
        points.trigger = point_for_position(
            text_with_completion, doc_context.multiline_trigger_position
        )

    error_nodes = run_query(tree, ERROR_QUERY, snapshot.language).get("error", [])
    parsed.parse_error_count = count_nodes_in_range(
        error_nodes, points.trigger or points.start, points.end
    )
    parsed.tree = tree
    parsed.points = points
    parsed.text_with_completion = text_with_completion

    logger.debug(
        f"Parsed completion at {position}: {parsed.parse_error_count} errors "
        f"in range, {len(error_nodes)} in document"
    )
    return parsed


def drop_parser_fields(completion: CompletionCandidate) -> CompletionCandidate:
    """Plain candidate without the transient parse tree."""
    return CompletionCandidate(**candidate_fields(completion))

