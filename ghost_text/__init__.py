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

"""Inline (ghost text) code completion engine.

Turns a model's streamed text into editor-ready suggestions: decides whether
a completion should span several lines, truncates it at a syntactically
coherent boundary, serves continued typing from cache and splits one long
generation into several sequential suggestions (hot streak).

Example usage:
    from ghost_text import (
        CompletionSession,
        InlineCompletionManager,
        ModelCompletionProvider,
        Position,
        TextDocument,
    )

    session = CompletionSession()
    manager = InlineCompletionManager(
        lambda options: ModelCompletionProvider(options, client, model="qwen2.5-coder"),
        session,
    )

    document = TextDocument("file:///main.py", "python", "def add(a, b):\n    ")
    session.open_document(document)

    result = await manager.provide_inline_completions(document, Position(1, 4))
    if result:
        print(result.candidates[0].insert_text, result.source)
"""

from ghost_text.cancellation import CancellationToken
from ghost_text.config import CompletionSettings
from ghost_text.doc_context import get_current_doc_context, get_derived_doc_context
from ghost_text.document import TextDocument, TextSource
from ghost_text.protocol import (
    CompletionCandidate,
    DocumentContext,
    EditDelta,
    FetchCompletionResult,
    LastCandidate,
    Position,
    Range,
    RequestManagerResult,
    RequestParams,
    ResultSource,
    SelectedCompletionInfo,
    StopReason,
    StreamChunk,
    TriggerKind,
    TruncatedWith,
)
from ghost_text.request_manager import RequestManager, compute_if_request_still_relevant
from ghost_text.session import CompletionSession
from ghost_text.manager import InlineCompletionManager
from ghost_text.streaming import (
    BaseCompletionProvider,
    ModelCompletionProvider,
    ProviderOptions,
    StaticCompletionProvider,
    StreamProcessor,
)

__version__ = "0.1.0"

__all__ = [
    # Protocol types
    "CompletionCandidate",
    "DocumentContext",
    "EditDelta",
    "FetchCompletionResult",
    "LastCandidate",
    "Position",
    "Range",
    "RequestManagerResult",
    "RequestParams",
    "ResultSource",
    "SelectedCompletionInfo",
    "StopReason",
    "StreamChunk",
    "TriggerKind",
    "TruncatedWith",
    # Documents and context
    "CancellationToken",
    "TextDocument",
    "TextSource",
    "get_current_doc_context",
    "get_derived_doc_context",
    # Providers
    "BaseCompletionProvider",
    "ModelCompletionProvider",
    "ProviderOptions",
    "StaticCompletionProvider",
    "StreamProcessor",
    # Session and manager
    "CompletionSession",
    "CompletionSettings",
    "InlineCompletionManager",
    "RequestManager",
    "compute_if_request_still_relevant",
]
