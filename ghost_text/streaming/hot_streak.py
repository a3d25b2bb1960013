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

"""Hot streak: several sequential completions out of one generation.

After the first completion is emitted, the extractor pretends the user
accepted it and pressed Enter, then looks for the next completion in the
part of the stream that follows. Each follow-up is emitted together with the
virtual document context it was computed for, so the request manager can
cache it under the prefix the user will have after accepting.
"""

import logging
from dataclasses import replace
from typing import Iterator

from ghost_text.doc_context import (
    ends_with_block_start,
    insert_into_doc_context,
    with_dynamic_multiline_trigger,
)
from ghost_text.protocol import (
    CompletionCandidate,
    DocumentContext,
    FetchCompletionResult,
    StopReason,
)
from ghost_text.streaming.provider import ProviderOptions
from ghost_text.text_processing.parse_and_truncate import (
    can_use_partial_completion,
    parse_and_truncate_completion,
)
from ghost_text.text_processing.postprocess import process_completion
from ghost_text.text_processing.utils import INDENTATION_REGEX, get_last_line

logger = logging.getLogger(__name__)


def press_enter_and_get_indent_string(
    insert_text: str,
    current_line: str,
    language_id: str,
    indent_string: str = "    ",
) -> str:
    """Text an editor inserts when Enter is pressed after ``insert_text``.

    A newline, the indentation of the reference line (the last inserted line,
    or the cursor line for single-line inserts) and one more indentation unit
    when the inserted text opens a block.
    """
    starts_new_block = ends_with_block_start(insert_text, language_id) is not None
    reference_line = get_last_line(insert_text) if "\n" in insert_text else current_line
    current_indent = INDENTATION_REGEX.match(reference_line).group(0)

    return "\n" + current_indent + (indent_string if starts_new_block else "")


def insert_completion_and_press_enter(
    doc_context: DocumentContext,
    completion: CompletionCandidate,
    language_id: str,
    dynamic_multiline_completions: bool,
    indent_string: str = "    ",
) -> DocumentContext:
    indent = press_enter_and_get_indent_string(
        completion.insert_text,
        doc_context.current_line_prefix,
        language_id,
        indent_string,
    )
    return insert_into_doc_context(
        doc_context,
        completion.insert_text + indent,
        language_id,
        dynamic_multiline_completions,
    )


class HotStreakExtractor:
    """Carves follow-up completions out of the remainder of a stream."""

    def __init__(self, completed_completion: CompletionCandidate, options: ProviderOptions):
        self._options = options
        self._language_id = options.document.language_id
        self._dynamic = options.dynamic_multiline_completions
        self.emitted = 0

        self.doc_context = insert_completion_and_press_enter(
            options.doc_context,
            completed_completion,
            self._language_id,
            self._dynamic,
            options.indent_string,
        )

    def extract(self, raw_completion: str, is_request_end: bool) -> Iterator[FetchCompletionResult]:
        """Emit every completion that can be carved out of ``raw_completion`` now.

        Stops when nothing unprocessed is left, or when the remainder does not
        yet form a usable completion (wait for more text, or give up at the
        end of the request).
        """
        options = self._options

        while True:
            injected_length = len(self.doc_context.injected_completion_text or "")
            unprocessed = raw_completion[injected_length:]
            if not unprocessed:
                return

            doc_context = self.doc_context
            if self._dynamic and not doc_context.multiline_trigger:
                doc_context = with_dynamic_multiline_trigger(
                    doc_context, unprocessed, self._language_id
                )

            extract_completion = (
                parse_and_truncate_completion if is_request_end else can_use_partial_completion
            )
            completion = extract_completion(
                unprocessed,
                options.document,
                doc_context,
                is_dynamic_multiline_completion=self._dynamic,
                tree_cache=options.tree_cache,
            )

            if completion is None or completion.insert_text.strip() == "":
                logger.debug(
                    f"Hot streak waiting, {len(unprocessed)} unprocessed chars "
                    f"(request end: {is_request_end})"
                )
                return

            processed = process_completion(
                completion,
                options.document,
                doc_context.position,
                doc_context,
                options.tree_cache,
            )

            self.emitted += 1
            logger.debug(f"Hot streak completion #{self.emitted} at {self.doc_context.position}")
            yield FetchCompletionResult(
                doc_context=self.doc_context,
                completion=replace(processed, stop_reason=StopReason.HOT_STREAK.value),
            )

            self.doc_context = insert_completion_and_press_enter(
                self.doc_context,
                processed,
                self._language_id,
                self._dynamic,
                options.indent_string,
            )
