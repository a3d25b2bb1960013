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

"""Entry points of the syntax truncator."""

import logging
from typing import TYPE_CHECKING, Optional

from ghost_text.document import TextSource
from ghost_text.protocol import (
    CompletionCandidate,
    DocumentContext,
    ParsedCompletion,
    TruncatedWith,
)
from ghost_text.syntax.parse_tree_cache import ParseTreeCache
from ghost_text.text_processing.parse_completion import parse_completion
from ghost_text.text_processing.truncate_indentation import (
    normalize_start_line,
    truncate_multiline_completion,
)
from ghost_text.text_processing.truncate_parsed import truncate_parsed_completion
from ghost_text.text_processing.utils import get_first_line, has_complete_first_line

if TYPE_CHECKING:
    from tree_sitter import Node

logger = logging.getLogger(__name__)

# Node types whose dynamic multiline completions stop at their first line
NODE_TYPES_TO_STOP_STREAMING_AT_ROOT_NODE = frozenset({"class_declaration"})


def is_dynamic_multiline_completion_to_stop_streaming(node: Optional["Node"]) -> bool:
    """True for a root-level node type that tends to produce runaway completions."""
    return (
        node is not None
        and node.parent is not None
        and node.parent.parent is None
        and node.type in NODE_TYPES_TO_STOP_STREAMING_AT_ROOT_NODE
    )


def parse_and_truncate_completion(
    completion: str,
    document: TextSource,
    doc_context: DocumentContext,
    is_dynamic_multiline_completion: bool = False,
    tree_cache: Optional[ParseTreeCache] = None,
) -> ParsedCompletion:
    """Parse a raw completion and, for multiline triggers, truncate it to one block.

    Truncation uses the parse tree when the document has one and falls back
    to indentation otherwise. ``line_truncated_count`` records how many lines
    were removed.

    Args:
        completion: Raw completion text
        document: Source document
        doc_context: Context of the request
        is_dynamic_multiline_completion: The trigger came from the first
            generated line rather than the document
        tree_cache: Parse tree cache, None forces the indentation fallback

    Returns:
        The parsed and truncated completion
    """
    multiline = bool(doc_context.multiline_trigger)
    insert_text_before_truncation = (
        normalize_start_line(completion, doc_context.prefix) if multiline else completion
    ).rstrip()

    parsed = parse_completion(
        CompletionCandidate(insert_text=insert_text_before_truncation),
        document,
        doc_context,
        tree_cache,
    )

    if parsed.insert_text == "":
        return parsed

    if multiline:
        node_to_insert = None
        if parsed.tree is not None:
            insert_text, node_to_insert = truncate_parsed_completion(
                parsed, document, doc_context, tree_cache
            )
            truncated_with = TruncatedWith.SYNTAX
        else:
            insert_text = truncate_multiline_completion(
                parsed.insert_text,
                doc_context.prefix,
                doc_context.suffix,
                document.language_id,
            )
            truncated_with = TruncatedWith.INDENTATION

        if is_dynamic_multiline_completion and is_dynamic_multiline_completion_to_stop_streaming(
            node_to_insert
        ):
            insert_text = get_first_line(insert_text)

        initial_line_count = len(insert_text_before_truncation.split("\n"))
        truncated_line_count = len(insert_text.split("\n"))

        parsed.line_truncated_count = initial_line_count - truncated_line_count
        parsed.insert_text = insert_text
        parsed.truncated_with = truncated_with

        logger.debug(
            f"Truncated multiline completion with {truncated_with.value}: "
            f"{parsed.line_truncated_count} lines removed"
        )

    return parsed


def can_use_partial_completion(
    partial_response: str,
    document: TextSource,
    doc_context: DocumentContext,
    is_dynamic_multiline_completion: bool = False,
    tree_cache: Optional[ParseTreeCache] = None,
) -> Optional[ParsedCompletion]:
    """Return the usable part of a still-streaming response, if any.

    Single-line requests can stop after the first complete line. Multi-line
    requests can stop once truncation removed at least one line, i.e. the
    block is closed. For a multiline trigger an untruncated response is not
    used, even if it is already complete; the caller waits for the final
    chunk instead.
    """
    if not has_complete_first_line(partial_response):
        return None

    item = parse_and_truncate_completion(
        partial_response,
        document,
        doc_context,
        is_dynamic_multiline_completion=is_dynamic_multiline_completion,
        tree_cache=tree_cache,
    )

    if doc_context.multiline_trigger:
        return item if (item.line_truncated_count or 0) > 0 else None

    return None if item.insert_text.strip() == "" else item
