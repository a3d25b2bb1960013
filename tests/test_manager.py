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

"""Tests for the inline completion manager and session."""

import asyncio

import pytest

from ghost_text.cancellation import CancellationToken
from ghost_text.config import CompletionSettings
from ghost_text.document import TextDocument
from ghost_text.manager import InlineCompletionManager
from ghost_text.protocol import Position, Range, RequestParams, ResultSource
from ghost_text.session import CompletionSession
from ghost_text.streaming import StaticCompletionProvider


class RecordingFactory:
    """Provider factory replaying canned completions and recording each call."""

    def __init__(self, *responses, on_call=None):
        self._responses = list(responses)
        self._on_call = on_call
        self.options = []

    def __call__(self, options):
        self.options.append(options)
        if self._on_call is not None:
            self._on_call(options)
        response = self._responses[min(len(self.options), len(self._responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return StaticCompletionProvider(options, response)


def make_manager(factory, **settings):
    settings.setdefault("debounce_single_line_ms", 0)
    settings.setdefault("debounce_multi_line_ms", 0)
    session = CompletionSession(CompletionSettings(**settings))
    return InlineCompletionManager(factory, session)


class TestInlineCompletionManager:
    """Tests for InlineCompletionManager.provide_inline_completions."""

    def test_block_completion_drops_existing_closer(self):
        """Test a completion inside an empty block stops before the closing brace."""
        factory = RecordingFactory(["return 1;", "return 1;\n}"])
        manager = make_manager(factory)
        document = TextDocument("file:///foo.ts", "typescript", "function foo() {\n  \n}")

        result = asyncio.run(manager.provide_inline_completions(document, Position(1, 2)))

        assert result.source == ResultSource.NETWORK
        assert [c.insert_text for c in result.candidates] == ["return 1;"]
        assert factory.options[0].multiline
        assert manager.last_candidate.last_trigger_position == Position(1, 2)
        assert manager.metrics.successful_requests == 1

    def test_backspace_discards_last_candidate_before_request(self):
        """Test a shorter line prefix clears the last candidate and its cache entry first."""
        first_context = None
        seen_at_second_call = []

        def on_call(options):
            if first_context is not None:
                seen_at_second_call.append(
                    (
                        manager.last_candidate is None,
                        manager.session.request_manager.cache.get(first_context) is None,
                    )
                )

        factory = RecordingFactory(["c = 1;"], ["b = 2;"], on_call=on_call)
        manager = make_manager(factory)
        document = TextDocument("file:///a.js", "javascript", "const ab")

        async def scenario():
            nonlocal first_context
            first = await manager.provide_inline_completions(document, Position(0, 8))
            first_context = manager.last_candidate.last_trigger_doc_context
            assert manager.session.request_manager.cache.get(first_context) is not None

            document.apply_edit(Range(Position(0, 7), Position(0, 8)), "")
            second = await manager.provide_inline_completions(document, Position(0, 7))
            return first, second

        first, second = asyncio.run(scenario())

        assert [c.insert_text for c in first.candidates] == ["c = 1;"]
        assert [c.insert_text for c in second.candidates] == ["b = 2;"]
        assert seen_at_second_call == [(True, True)]
        assert manager.last_candidate.last_trigger_doc_context.current_line_prefix == "const a"

    def test_cache_hit_skips_provider(self):
        """Test repeating a request at the same place is served from the cache."""
        factory = RecordingFactory(["1;"])
        manager = make_manager(factory)
        document = TextDocument("file:///a.js", "javascript", "const x = ")

        async def scenario():
            await manager.provide_inline_completions(document, Position(0, 10))
            return await manager.provide_inline_completions(document, Position(0, 10))

        result = asyncio.run(scenario())

        assert result.source == ResultSource.CACHE
        assert len(factory.options) == 1
        assert manager.metrics.cache_hits == 1

    def test_whitespace_only_result_is_suppressed(self):
        """Test a blank completion is not shown."""
        manager = make_manager(RecordingFactory(["   "]))
        document = TextDocument("file:///a.js", "javascript", "const x = ")

        result = asyncio.run(manager.provide_inline_completions(document, Position(0, 10)))

        assert result is None
        assert manager.last_candidate is None

    def test_provider_failure_returns_none(self):
        """Test failures are logged and reported as no completion."""
        manager = make_manager(RecordingFactory(RuntimeError("no model")))
        document = TextDocument("file:///a.js", "javascript", "const x = ")

        result = asyncio.run(manager.provide_inline_completions(document, Position(0, 10)))

        assert result is None
        assert manager.metrics.failed_requests == 1

    def test_cancelled_token_returns_none(self):
        """Test a request cancelled before it starts never reaches the provider."""
        factory = RecordingFactory(["1;"])
        manager = make_manager(factory)
        document = TextDocument("file:///a.js", "javascript", "const x = ")
        token = CancellationToken()
        token.cancel()

        result = asyncio.run(manager.provide_inline_completions(document, Position(0, 10), token=token))

        assert result is None
        assert factory.options == []
        assert manager.metrics.cancelled_requests == 1

    def test_disabled_settings(self):
        """Test nothing is requested when completions are disabled."""
        factory = RecordingFactory(["1;"])
        manager = make_manager(factory, enabled=False)
        document = TextDocument("file:///a.js", "javascript", "const x = ")

        assert asyncio.run(manager.provide_inline_completions(document, Position(0, 10))) is None
        assert factory.options == []

    def test_settings_flow_into_provider_options(self):
        """Test provider options are built from the session settings."""
        factory = RecordingFactory(["1;"])
        manager = make_manager(factory, hot_streak=False, tab_size=2, first_completion_timeout_ms=500)
        document = TextDocument("file:///a.js", "javascript", "const x = ")

        asyncio.run(manager.provide_inline_completions(document, Position(0, 10)))

        options = factory.options[0]
        assert options.hot_streak is False
        assert options.indent_string == "  "
        assert options.first_completion_timeout_ms == 500
        assert options.tree_cache is manager.session.tree_cache

    def test_accept_resets_state(self):
        """Test accepting clears the last candidate and its cache entry."""
        manager = make_manager(RecordingFactory(["1;"]))
        document = TextDocument("file:///a.js", "javascript", "const x = ")

        async def scenario():
            await manager.provide_inline_completions(document, Position(0, 10))
            candidate = manager.last_candidate
            params = RequestParams(
                document=document,
                doc_context=candidate.last_trigger_doc_context,
                position=candidate.last_trigger_position,
            )
            manager.handle_did_accept_completion_item(params)
            return params

        params = asyncio.run(scenario())

        assert manager.last_candidate is None
        assert manager.session.request_manager.check_cache(params) is None
        assert manager.session.latency.metrics.suggested == 0


class TestCompletionSession:
    """Tests for CompletionSession."""

    def test_reset_starts_from_clean_state(self):
        """Test reset replaces caches and counters."""
        session = CompletionSession()
        old_manager = session.request_manager
        session.metrics.total_requests = 3
        session.latency.get_artificial_delay("file:///a.css", "css")

        session.reset()

        assert session.request_manager is not old_manager
        assert session.metrics.total_requests == 0
        assert session.latency.metrics.suggested == 0
        assert session.last_candidate is None

    def test_settings_size_the_caches(self):
        """Test cache sizes come from the settings."""
        session = CompletionSession(CompletionSettings(parse_tree_cache_size=3, cache_size=7))

        assert session.tree_cache.stats()["max_size"] == 3
        assert session.request_manager.cache._max_size == 7

    def test_open_document_tracks_edits(self):
        """Test opened documents keep their parse tree current."""
        pytest.importorskip("tree_sitter_python")
        session = CompletionSession()
        document = TextDocument("file:///a.py", "python", "x = 1\n")

        session.open_document(document)
        document.insert(Position(1, 0), "y = 2\n")

        assert session.tree_cache.get(document.uri).text == "x = 1\ny = 2\n"
        session.close_document(document.uri)
        assert document.uri not in session.tree_cache
