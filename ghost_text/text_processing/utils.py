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

"""Line and indentation helpers shared by the completion pipeline."""

import re
from typing import Dict, List

from rapidfuzz.distance import Levenshtein

from ghost_text.languages import get_language_config
from ghost_text.protocol import Position

INDENTATION_REGEX = re.compile(r"^[\t ]*")
OPENING_BRACKET_REGEX = re.compile(r"([(\[{])$")
LINE_SPLIT_REGEX = re.compile(r"\r?\n")

BRACKET_PAIR: Dict[str, str] = {
    "(": ")",
    "[": "]",
    "{": "}",
    "<": ">",
}

TAB_WIDTH = 4


def lines(text: str) -> List[str]:
    return LINE_SPLIT_REGEX.split(text)


def get_first_line(text: str) -> str:
    return lines(text)[0]


def get_last_line(text: str) -> str:
    return lines(text)[-1]


def has_complete_first_line(text: str) -> bool:
    """True once the text contains at least one line break."""
    return "\n" in text


def indentation(line: str) -> int:
    """Indentation width of a line, counting a tab as four columns."""
    whitespace = INDENTATION_REGEX.match(line).group(0)
    return sum(TAB_WIDTH if char == "\t" else 1 for char in whitespace)


def get_next_non_empty_line(suffix: str) -> str:
    """First non-blank line after the cursor line of ``suffix``."""
    match = LINE_SPLIT_REGEX.search(suffix)
    if match is None:
        return ""
    for line in lines(suffix[match.end() :]):
        if line.strip():
            return line
    return ""


def get_prev_non_empty_line(prefix: str) -> str:
    """Last non-blank line before the cursor line of ``prefix``."""
    prefix_lines = lines(prefix)
    for line in reversed(prefix_lines[:-1]):
        if line.strip():
            return line
    return ""


def remove_trailing_whitespace(text: str) -> str:
    return "\n".join(line.rstrip() for line in text.split("\n"))


def remove_indentation(text: str) -> str:
    return "\n".join(INDENTATION_REGEX.sub("", line) for line in text.split("\n"))


def collapse_duplicative_whitespace(prefix: str, completion: str) -> str:
    """Drop leading blanks of the completion when the prefix already ends with one."""
    if prefix.endswith(" ") or prefix.endswith("\t"):
        return completion.lstrip(" \t")
    return completion


def is_almost_the_same_string(a: str, b: str, percentage: float = 0.33) -> bool:
    """True when the Levenshtein distance, relative to the longer string, is below ``percentage``."""
    max_length = max(len(a), len(b))
    if max_length == 0:
        return True
    return Levenshtein.distance(a, b) / max_length < percentage


def trim_until_suffix(insertion: str, prefix: str, suffix: str, language_id: str) -> str:
    """Cut the completion where it starts repeating the text after the cursor.

    Walks the completion bottom-up and cuts at the earliest line that matches
    the first non-empty suffix line at the same or a lower indentation.
    """
    config = get_language_config(language_id)

    insertion = insertion.rstrip()
    first_non_empty_suffix_line = get_next_non_empty_line(suffix)

    if not first_non_empty_suffix_line:
        return insertion

    current_line_prefix = get_last_line(prefix)
    suffix_indent = indentation(first_non_empty_suffix_line)
    start_indent = indentation(current_line_prefix)
    has_empty_completion_line = current_line_prefix.strip() == ""

    insertion_lines = insertion.split("\n")
    cut_off_index = len(insertion_lines)

    for i in range(len(insertion_lines) - 1, -1, -1):
        line = insertion_lines[i]
        # The first completion line continues the cursor line
        if i == 0:
            line = current_line_prefix + line

        line_indentation = indentation(line)
        is_same_indentation = line_indentation <= suffix_indent

        if (
            has_empty_completion_line
            and config is not None
            and config.block_end
            and line.strip().startswith(config.block_end)
            and start_indent == line_indentation
            and len(insertion_lines) == 1
        ):
            cut_off_index = i
            break

        if is_same_indentation and is_almost_the_same_string(line, first_non_empty_suffix_line):
            cut_off_index = i

    return "\n".join(insertion_lines[:cut_off_index])


def get_matching_suffix_length(insert_text: str, current_line_suffix: str) -> int:
    """Count the current-line suffix characters reproduced, in order, by the completion.

    For ``insert_text`` ``array) {`` and suffix ``)`` this is 1, so the range
    can be widened to overwrite the closing paren instead of doubling it.
    """
    j = 0
    for char in insert_text:
        if j < len(current_line_suffix) and char == current_line_suffix[j]:
            j += 1
    return j


def get_position_after_text_insertion(position: Position, text: str) -> Position:
    """Cursor position after typing ``text`` at ``position``."""
    if not text:
        return position

    inserted_lines = lines(text)
    if len(inserted_lines) <= 1:
        return position.translate(0, len(inserted_lines[0]))
    return Position(position.line + len(inserted_lines) - 1, len(inserted_lines[-1]))


def get_position_after_text_insertion_same_line(position: Position, text: str) -> Position:
    """End position of ``text`` clamped to the cursor line."""
    return position.translate(0, len(get_first_line(text)))
