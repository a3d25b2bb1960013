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

"""Indentation-based truncation, used when no parser is available."""

from ghost_text.languages import get_language_config
from ghost_text.text_processing.utils import (
    BRACKET_PAIR,
    OPENING_BRACKET_REGEX,
    get_next_non_empty_line,
    indentation,
)


def _current_line_of(prefix: str) -> str:
    return prefix[prefix.rfind("\n") + 1 :]


def normalize_start_line(completion: str, prefix: str) -> str:
    """Drop a leading blank line when the next line repeats the cursor indentation.

    Models often answer ``if (x) {\\n    `` with ``\\n    foo()``; the cursor
    already sits at that indentation, so the newline and indentation go.
    """
    completion_lines = completion.split("\n")
    start_indent = indentation(_current_line_of(prefix))

    if (
        len(completion_lines) > 1
        and completion_lines[0] == ""
        and indentation(completion_lines[1]) == start_indent
    ):
        completion_lines.pop(0)
        completion_lines[0] = completion_lines[0].lstrip()

    return "\n".join(completion_lines)


def should_include_closing_line(current_line_prefix: str, suffix: str) -> bool:
    """Whether the block-closing line of the completion should be kept.

    True when the code after the cursor is already dedented below the cursor
    line, or when the cursor line ends with an opening bracket the suffix does
    not close.
    """
    start_indent = indentation(current_line_prefix)
    next_non_empty_line = get_next_non_empty_line(suffix)

    return indentation(next_non_empty_line) < start_indent or _unclosed_by_suffix(
        current_line_prefix, suffix
    )


def _unclosed_by_suffix(current_line_prefix: str, suffix: str) -> bool:
    match = OPENING_BRACKET_REGEX.search(current_line_prefix)
    if match:
        closing_bracket = BRACKET_PAIR[match.group(0)]
        return not suffix.startswith(closing_bracket)
    return False


def truncate_multiline_completion(completion: str, prefix: str, suffix: str, language_id: str) -> str:
    """Cut a multi-line completion at the first line that leaves the block.

    The block is delimited by indentation: the first line (after the first)
    indented at or below the cursor line ends it. Blank lines and ``else``
    style continuations never end a block. The closing line itself is kept
    when ``should_include_closing_line`` says so.
    """
    config = get_language_config(language_id)
    if config is None:
        return completion

    current_line_prefix = _current_line_of(prefix)
    start_indent = indentation(current_line_prefix)
    has_empty_completion_line = current_line_prefix.strip() == ""
    include_closing_line = should_include_closing_line(current_line_prefix, suffix)

    completion_lines = completion.split("\n")
    cut_off_index = len(completion_lines)

    for i, line in enumerate(completion_lines):
        if i == 0 or line == "" or config.block_else_test.match(line):
            continue

        line_indent = indentation(line)
        if (line_indent <= start_indent and not has_empty_completion_line) or (
            line_indent < start_indent and has_empty_completion_line
        ):
            if include_closing_line and config.block_end and line.strip().startswith(config.block_end):
                cut_off_index = i + 1
            else:
                cut_off_index = i
            break

    return "\n".join(completion_lines[:cut_off_index])
