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

"""Document context derivation and multiline trigger detection.

Everything in this module is a pure function of the document text, the
cursor position and the language id. The hot streak relies on that: it
re-derives contexts for virtual insertions instead of mutating them.
"""

import logging
from dataclasses import replace
from typing import NamedTuple, Optional, Tuple

from ghost_text.document import TextSource
from ghost_text.languages import get_language_config
from ghost_text.protocol import DocumentContext, Position, Range, SelectedCompletionInfo
from ghost_text.text_processing.utils import (
    OPENING_BRACKET_REGEX,
    get_first_line,
    get_last_line,
    get_matching_suffix_length,
    get_position_after_text_insertion,
    indentation,
    lines,
)

logger = logging.getLogger(__name__)


class MultilineTrigger(NamedTuple):
    trigger: Optional[str]
    position: Optional[Position]


_NO_TRIGGER = MultilineTrigger(None, None)


class LinesContext(NamedTuple):
    current_line_prefix: str
    current_line_suffix: str
    prev_non_empty_line: str
    next_non_empty_line: str


def get_current_doc_context(
    document: TextSource,
    position: Position,
    max_prefix_length: int,
    max_suffix_length: int,
    dynamic_multiline_completions: bool = True,
    selected_completion_info: Optional[SelectedCompletionInfo] = None,
) -> DocumentContext:
    """Build the document context for a completion request.

    Prefix and suffix are trimmed on whole lines: the prefix keeps as many
    trailing lines as fit in ``max_prefix_length`` characters, the suffix as
    many leading lines as fit in ``max_suffix_length``.

    Args:
        document: Source document
        position: Cursor position
        max_prefix_length: Character budget for the prefix
        max_suffix_length: Character budget for the suffix
        dynamic_multiline_completions: Enables the extra trigger rules
        selected_completion_info: Suggest-widget item to patch into the prefix

    Returns:
        The derived DocumentContext
    """
    offset = document.offset_at(position)
    text = document.get_text()
    complete_prefix = text[:offset]
    complete_suffix = text[offset:]

    complete_prefix_with_context_completion = complete_prefix
    injected_prefix: Optional[str] = None
    if selected_completion_info is not None:
        replaced_length = position.character - selected_completion_info.range.start.character
        complete_prefix_with_context_completion = (
            complete_prefix[: len(complete_prefix) - replaced_length] + selected_completion_info.text
        )
        injected_prefix = complete_prefix_with_context_completion[len(complete_prefix) :] or None

    prefix_lines = lines(complete_prefix_with_context_completion)
    suffix_lines = lines(complete_suffix)

    if offset > max_prefix_length:
        total = 0
        start_line = len(prefix_lines)
        for i in range(len(prefix_lines) - 1, -1, -1):
            if total + len(prefix_lines[i]) > max_prefix_length:
                break
            start_line = i
            total += len(prefix_lines[i])
        prefix = "\n".join(prefix_lines[start_line:])
    else:
        prefix = "\n".join(prefix_lines)

    total_suffix = 0
    end_line = 0
    for i, line in enumerate(suffix_lines):
        if total_suffix + len(line) > max_suffix_length:
            break
        end_line = i + 1
        total_suffix += len(line)
    suffix = "\n".join(suffix_lines[:end_line])

    return get_derived_doc_context(
        prefix=prefix,
        suffix=suffix,
        position=position,
        language_id=document.language_id,
        dynamic_multiline_completions=dynamic_multiline_completions,
        injected_prefix=injected_prefix,
    )


def get_derived_doc_context(
    prefix: str,
    suffix: str,
    position: Position,
    language_id: str,
    dynamic_multiline_completions: bool = True,
    injected_prefix: Optional[str] = None,
) -> DocumentContext:
    """Derive line context and multiline trigger from a prefix/suffix pair."""
    lines_context = get_lines_context(prefix, suffix)
    trigger = detect_multiline(
        prefix=prefix,
        lines_context=lines_context,
        language_id=language_id,
        dynamic_multiline_completions=dynamic_multiline_completions,
        position=position,
    )

    return DocumentContext(
        prefix=prefix,
        suffix=suffix,
        current_line_prefix=lines_context.current_line_prefix,
        current_line_suffix=lines_context.current_line_suffix,
        prev_non_empty_line=lines_context.prev_non_empty_line,
        next_non_empty_line=lines_context.next_non_empty_line,
        position=position,
        multiline_trigger=trigger.trigger,
        multiline_trigger_position=trigger.position,
        injected_prefix=injected_prefix,
    )


def get_lines_context(prefix: str, suffix: str) -> LinesContext:
    prefix_lines = lines(prefix)
    suffix_lines = lines(suffix)

    prev_non_empty_line = ""
    for line in reversed(prefix_lines[:-1]):
        if line.strip():
            prev_non_empty_line = line
            break

    next_non_empty_line = ""
    for line in suffix_lines[1:]:
        if line.strip():
            next_non_empty_line = line
            break

    return LinesContext(
        current_line_prefix=prefix_lines[-1],
        current_line_suffix=suffix_lines[0],
        prev_non_empty_line=prev_non_empty_line,
        next_non_empty_line=next_non_empty_line,
    )


def ends_with_block_start(text: str, language_id: str) -> Optional[str]:
    """Return the language's block-start token if ``text`` ends with it."""
    config = get_language_config(language_id)
    if config and text.rstrip().endswith(config.block_start):
        return config.block_start
    return None


def detect_multiline(
    prefix: str,
    lines_context: LinesContext,
    language_id: str,
    dynamic_multiline_completions: bool,
    position: Position,
) -> MultilineTrigger:
    """Decide whether the cursor sits at the start of a new, empty block.

    Fires when either the cursor line ends with an opening bracket (or the
    language's block start) and the block below is empty, or the cursor is on
    a blank line right after such an opener and indented deeper than it.

    Returns:
        The trigger token and the position of the last non-whitespace
        character before the cursor, or (None, None)
    """
    current_line_prefix = lines_context.current_line_prefix
    current_line_suffix = lines_context.current_line_suffix
    prev_non_empty_line = lines_context.prev_non_empty_line
    next_non_empty_line = lines_context.next_non_empty_line

    block_start = ends_with_block_start(prefix, language_id)
    opening_bracket_match = OPENING_BRACKET_REGEX.search(get_last_line(prefix.rstrip()))

    is_cursor_line_blank = current_line_prefix.strip() == "" and current_line_suffix.strip() == ""
    is_indented_into_empty_block = indentation(prev_non_empty_line) < indentation(
        current_line_prefix
    ) and indentation(prev_non_empty_line) >= indentation(next_non_empty_line)

    if opening_bracket_match:
        # The new block is empty when the next line is not indented deeper
        is_same_line_opening_bracket_match = current_line_prefix.strip() != "" and indentation(
            current_line_prefix
        ) >= indentation(next_non_empty_line)
        is_new_line_opening_bracket_match = is_cursor_line_blank and is_indented_into_empty_block

        if (
            dynamic_multiline_completions and is_new_line_opening_bracket_match
        ) or is_same_line_opening_bracket_match:
            logger.debug(f"Multiline trigger {opening_bracket_match.group(0)!r} at {position}")
            return MultilineTrigger(
                opening_bracket_match.group(0),
                get_prefix_last_non_empty_char_position(prefix, position),
            )

    if block_start:
        non_empty_line_ends_with_block_start = len(current_line_prefix) > 0 and indentation(
            current_line_prefix
        ) >= indentation(next_non_empty_line)
        is_empty_line_after_block_start = is_cursor_line_blank and is_indented_into_empty_block

        if (
            dynamic_multiline_completions and non_empty_line_ends_with_block_start
        ) or is_empty_line_after_block_start:
            logger.debug(f"Multiline trigger {block_start!r} at {position}")
            return MultilineTrigger(
                block_start,
                get_prefix_last_non_empty_char_position(prefix, position),
            )

    return _NO_TRIGGER


def get_prefix_last_non_empty_char_position(prefix: str, cursor_position: Position) -> Position:
    """Position of the last non-whitespace character of ``prefix``.

    Streaming may still inject text at the cursor, so truncation anchors to
    the trigger character instead (e.g. the ``{`` of ``if (x) {\\n    ``).
    """
    trimmed_prefix = prefix.rstrip()
    diff_length = len(prefix) - len(trimmed_prefix)
    if diff_length == 0:
        return cursor_position.translate(0, -1)

    prefix_diff = prefix[-diff_length:]
    return Position(
        cursor_position.line - (len(lines(prefix_diff)) - 1),
        len(get_last_line(trimmed_prefix)) - 1,
    )


def insert_into_doc_context(
    doc_context: DocumentContext,
    insert_text: str,
    language_id: str,
    dynamic_multiline_completions: bool = True,
) -> DocumentContext:
    """Re-derive the context as if ``insert_text`` was typed at the cursor.

    The characters of the current line suffix reproduced by ``insert_text``
    are dropped from the suffix so they do not end up twice in a parse.
    """
    updated_position = get_position_after_text_insertion(doc_context.position, insert_text)
    matching_suffix_length = get_matching_suffix_length(
        insert_text, doc_context.current_line_suffix
    )

    updated = get_derived_doc_context(
        prefix=doc_context.prefix + insert_text,
        suffix=doc_context.suffix[matching_suffix_length:],
        position=updated_position,
        language_id=language_id,
        dynamic_multiline_completions=dynamic_multiline_completions,
    )

    return replace(
        updated,
        injected_completion_text=(doc_context.injected_completion_text or "") + insert_text,
        position_without_injected_completion_text=(
            doc_context.position_without_injected_completion_text or doc_context.position
        ),
    )


def get_dynamic_multiline_doc_context(
    doc_context: DocumentContext,
    insert_text: str,
    language_id: str,
) -> Optional[Tuple[str, Position]]:
    """Check whether the first generated line opens a new block.

    Pretends the first line of ``insert_text`` is already in the document and
    re-runs multiline detection on the result.

    Returns:
        (trigger, trigger_position) if the first line creates a trigger
    """
    updated = insert_into_doc_context(
        doc_context,
        get_first_line(insert_text),
        language_id,
        dynamic_multiline_completions=True,
    )
    if updated.multiline_trigger:
        return updated.multiline_trigger, updated.multiline_trigger_position
    return None


def with_dynamic_multiline_trigger(
    doc_context: DocumentContext,
    insert_text: str,
    language_id: str,
) -> DocumentContext:
    """``doc_context`` with the trigger derived from the first generated line, if any."""
    dynamic = get_dynamic_multiline_doc_context(doc_context, insert_text, language_id)
    if dynamic is None:
        return doc_context
    trigger, trigger_position = dynamic
    return replace(
        doc_context,
        multiline_trigger=trigger,
        multiline_trigger_position=trigger_position,
    )


def get_current_line_prefix_without_injected_prefix(doc_context: DocumentContext) -> str:
    if doc_context.injected_prefix:
        return doc_context.current_line_prefix[: -len(doc_context.injected_prefix)]
    return doc_context.current_line_prefix


def get_context_range(document: TextSource, prefix: str, suffix: str, position: Position) -> Range:
    """Range of the document covered by ``prefix`` and ``suffix``."""
    offset = document.offset_at(position)
    return Range(
        document.position_at(offset - len(prefix)),
        document.position_at(offset + len(suffix)),
    )
