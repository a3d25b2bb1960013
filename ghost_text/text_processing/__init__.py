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

"""Completion text processing: truncation, post-processing and ranking."""

from ghost_text.text_processing.parse_and_truncate import (
    can_use_partial_completion,
    parse_and_truncate_completion,
)
from ghost_text.text_processing.parse_completion import drop_parser_fields, parse_completion
from ghost_text.text_processing.postprocess import (
    process_completion,
    process_inline_completions,
)
from ghost_text.text_processing.truncate_indentation import truncate_multiline_completion
from ghost_text.text_processing.truncate_parsed import (
    insert_missing_brackets,
    truncate_parsed_completion,
)

__all__ = [
    "can_use_partial_completion",
    "drop_parser_fields",
    "insert_missing_brackets",
    "parse_and_truncate_completion",
    "parse_completion",
    "process_completion",
    "process_inline_completions",
    "truncate_multiline_completion",
    "truncate_parsed_completion",
]
