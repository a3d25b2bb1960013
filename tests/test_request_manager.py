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

"""Tests for the request manager caches and single-flight streaming."""

import asyncio

import pytest

from ghost_text.cancellation import CancellationToken
from ghost_text.doc_context import get_current_doc_context, get_derived_doc_context
from ghost_text.document import TextDocument
from ghost_text.protocol import (
    CompletionCandidate,
    Position,
    RequestManagerResult,
    RequestParams,
    ResultSource,
)
from ghost_text.request_manager import RequestCache, RequestManager, compute_if_request_still_relevant
from ghost_text.streaming import ProviderOptions, StaticCompletionProvider


def make_request(text, position=None, language_id="javascript", uri="file:///test.js", token=None):
    document = TextDocument(uri, language_id, text)
    position = position or document.position_at(len(text))
    doc_context = get_current_doc_context(document, position, 10_000, 10_000)
    return RequestParams(document=document, doc_context=doc_context, position=position, token=token)


def static_provider(params, chunks, **kwargs):
    options = ProviderOptions(
        document=params.document,
        doc_context=params.doc_context,
        position=params.position,
        multiline=bool(params.doc_context.multiline_trigger),
    )
    return StaticCompletionProvider(options, chunks, **kwargs)


class TestRequestCache:
    """Tests for the LRU request cache."""

    def test_keyed_by_prefix_and_next_line(self):
        """Test entries are keyed by prefix and next non-empty line."""
        cache = RequestCache()
        ctx = get_derived_doc_context("foo(", "\nbar", Position(0, 4), "javascript")
        other = get_derived_doc_context("foo(", "\nbaz", Position(0, 4), "javascript")
        result = RequestManagerResult([CompletionCandidate("x)")], ResultSource.CACHE)

        cache.set(ctx, result)

        assert cache.get(ctx) is result
        assert cache.get(other) is None

    def test_evicts_least_recently_used(self):
        """Test the oldest untouched entry is evicted first."""
        cache = RequestCache(max_size=2)
        contexts = [get_derived_doc_context(p, "", Position(0, len(p)), "javascript") for p in "abc"]
        result = RequestManagerResult([], ResultSource.CACHE)

        cache.set(contexts[0], result)
        cache.set(contexts[1], result)
        cache.get(contexts[0])
        cache.set(contexts[2], result)

        assert cache.get(contexts[0]) is result
        assert cache.get(contexts[1]) is None
        assert len(cache) == 2


class TestRequestPlain:
    """Tests for RequestManager.request_plain."""

    def test_network_result_is_cached(self):
        """Test the first result is returned from the network and cached."""
        manager = RequestManager()
        params = make_request("foo(")

        async def scenario():
            result = await manager.request_plain(params, static_provider(params, ["bar)"]))
            cached = manager.check_cache(params)
            uncached = manager.check_cache(params, is_cache_enabled=False)
            return result, cached, uncached

        result, cached, uncached = asyncio.run(scenario())

        assert result.source == ResultSource.NETWORK
        assert [c.insert_text for c in result.candidates] == ["bar)"]
        assert cached.source == ResultSource.CACHE
        assert [c.insert_text for c in cached.candidates] == ["bar)"]
        assert uncached is None

    def test_continuation_served_from_stream(self):
        """Test typing along the stream is answered without a provider call."""
        manager = RequestManager()
        first = make_request("foo(")

        async def scenario():
            await manager.request_plain(first, static_provider(first, ["bar)"]))
            second = make_request("foo(ba")
            provider = static_provider(second, ["unused"])
            result = await manager.request_plain(second, provider)
            return result, provider

        result, provider = asyncio.run(scenario())

        assert result.source == ResultSource.CACHE
        assert [c.insert_text for c in result.candidates] == ["r)"]
        assert result.candidates[0].range.start == Position(0, 6)
        assert provider.consumed == 0

    def test_continuation_requires_same_document(self):
        """Test the continuation slot is not shared between documents."""
        manager = RequestManager()
        first = make_request("foo(")

        async def scenario():
            await manager.request_plain(first, static_provider(first, ["bar)"]))
            second = make_request("foo(ba", uri="file:///other.js")
            provider = static_provider(second, ["zz)"])
            return await manager.request_plain(second, provider), provider

        result, provider = asyncio.run(scenario())

        assert result.source == ResultSource.NETWORK
        assert provider.consumed == 1

    def test_diverging_prefix_is_not_a_continuation(self):
        """Test typing something the stream did not predict starts a new request."""
        manager = RequestManager()
        first = make_request("foo(")

        async def scenario():
            await manager.request_plain(first, static_provider(first, ["bar)"]))
            second = make_request("foo(x")
            return await manager.request_plain(second, static_provider(second, ["yz)"]))

        result = asyncio.run(scenario())

        assert result.source == ResultSource.NETWORK
        assert [c.insert_text for c in result.candidates] == ["yz)"]

    def test_new_request_aborts_previous_stream(self):
        """Test a non-continuation request cancels the live stream."""
        manager = RequestManager()
        slow = make_request("const a = ")
        fast = make_request("let b = ")
        chunks = ["a", "ab", "abc", "abcd", "abcde", "abcdef"]

        async def scenario():
            slow_provider = static_provider(slow, chunks, delay_s=0.05)
            slow_task = asyncio.ensure_future(manager.request_plain(slow, slow_provider))
            await asyncio.sleep(0.01)
            fast_result = await manager.request_plain(fast, static_provider(fast, ["2;"]))
            slow_result = await slow_task
            await asyncio.sleep(0.1)
            return slow_result, fast_result, slow_provider

        slow_result, fast_result, slow_provider = asyncio.run(scenario())

        assert slow_result is None
        assert [c.insert_text for c in fast_result.candidates] == ["2;"]
        assert slow_provider.consumed < len(chunks)

    def test_cancelled_request_resolves_none(self):
        """Test cancelling the request token resolves the request with None."""
        manager = RequestManager()
        token = CancellationToken()
        params = make_request("const a = ", token=token)

        async def scenario():
            task = asyncio.ensure_future(
                manager.request_plain(params, static_provider(params, ["1", "1;"], delay_s=0.05))
            )
            await asyncio.sleep(0.01)
            token.cancel()
            return await task

        assert asyncio.run(scenario()) is None
        assert manager.continuation is None or manager.continuation.token.is_cancelled

    def test_error_before_first_result_propagates(self):
        """Test a provider failure before any result reaches the caller."""
        manager = RequestManager()
        params = make_request("const a = ")

        async def scenario():
            provider = static_provider(params, [], error=ConnectionError("sidecar down"))
            return await manager.request_plain(params, provider)

        with pytest.raises(ConnectionError, match="sidecar down"):
            asyncio.run(scenario())
        assert manager.continuation is None

    def test_empty_stream_resolves_empty(self):
        """Test a stream without usable text resolves with no candidates."""
        manager = RequestManager()
        params = make_request("const a = ")

        async def scenario():
            return await manager.request_plain(params, static_provider(params, ["   "]))

        result = asyncio.run(scenario())

        assert result.candidates == []
        assert result.source == ResultSource.NETWORK

    def test_hot_streak_results_cached_under_future_prefix(self):
        """Test follow-up completions are cached where the user will be after accepting."""
        manager = RequestManager()
        params = make_request("")

        async def scenario():
            result = await manager.request_plain(
                params,
                static_provider(params, ["const a = 1;\nconst b = 2;\nconst c = 3;"]),
            )
            await asyncio.sleep(0.05)
            return result

        result = asyncio.run(scenario())
        after_first = get_derived_doc_context("const a = 1;\n", "", Position(1, 0), "javascript")
        after_second = get_derived_doc_context(
            "const a = 1;\nconst b = 2;\n", "", Position(2, 0), "javascript"
        )

        assert [c.insert_text for c in result.candidates] == ["const a = 1;"]
        second = manager.cache.get(after_first)
        third = manager.cache.get(after_second)
        assert second.source == ResultSource.HOT_STREAK
        assert [c.insert_text for c in second.candidates] == ["const b = 2;"]
        assert [c.insert_text for c in third.candidates] == ["const c = 3;"]

    def test_dropped_first_candidate_is_not_replaced_by_follow_up(self):
        """Test a follow-up computed for a later line never answers the request at the cursor."""
        manager = RequestManager()
        params = make_request("foo(bar")

        async def scenario():
            result = await manager.request_plain(
                params,
                static_provider(params, [")\nconst x = 1;\nconst y = 2;"]),
            )
            await asyncio.sleep(0.05)
            return result

        result = asyncio.run(scenario())
        after_closer = get_derived_doc_context("foo(bar)\n", "", Position(1, 0), "javascript")

        assert result.source == ResultSource.NETWORK
        assert result.candidates == []
        assert manager.check_cache(params) is None
        follow_up = manager.cache.get(after_closer)
        assert follow_up.source == ResultSource.HOT_STREAK
        assert [c.insert_text for c in follow_up.candidates] == ["const x = 1;"]

    def test_finished_streams_detach_from_request_token(self):
        """Test a long-lived request token does not keep finished streams as children."""
        manager = RequestManager()
        token = CancellationToken()

        async def scenario():
            for text, chunks in (("foo(", ["bar)"]), ("let b = ", ["2;"])):
                params = make_request(text, token=token)
                await manager.request_plain(params, static_provider(params, chunks))
                await asyncio.sleep(0.05)

        asyncio.run(scenario())

        assert token._children == []
        assert not token.is_cancelled

    def test_remove_from_cache_and_dispose(self):
        """Test cache invalidation helpers."""
        manager = RequestManager()
        params = make_request("foo(")

        async def scenario():
            await manager.request_plain(params, static_provider(params, ["bar)"]))
            manager.remove_from_cache(params)
            removed = manager.check_cache(params)
            manager.dispose()
            return removed

        assert asyncio.run(scenario()) is None
        assert manager.continuation is None
        assert len(manager.cache) == 0


class TestRequestRelevance:
    """Tests for compute_if_request_still_relevant."""

    def test_continuation_of_completion_is_relevant(self):
        """Test a prefix that types into the completion is still relevant."""
        previous = make_request("const a")
        current = make_request("const ab")

        assert compute_if_request_still_relevant(current, previous, [CompletionCandidate("bc = 1;")])

    def test_typo_in_last_characters_is_relevant(self):
        """Test small differences at the end of the line are tolerated."""
        previous = make_request("const a")
        current = make_request("const ax")

        assert compute_if_request_still_relevant(current, previous, [CompletionCandidate("bc = 1;")])

    def test_unrelated_prefix_is_not_relevant(self):
        """Test a different line is not relevant."""
        previous = make_request("const a")
        current = make_request("let z")

        assert not compute_if_request_still_relevant(current, previous, [CompletionCandidate("bc = 1;")])

    def test_other_document_is_not_relevant(self):
        """Test requests in different documents are never related."""
        previous = make_request("const a")
        current = make_request("const ab", uri="file:///other.js")

        assert not compute_if_request_still_relevant(current, previous, None)
