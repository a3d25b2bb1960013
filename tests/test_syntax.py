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

"""Tests for tree-sitter helpers and the parse tree cache."""

import pytest

from ghost_text.document import TextDocument
from ghost_text.protocol import Position, Range
from ghost_text.syntax import ParseTreeCache, get_grammar_name, get_language
from ghost_text.syntax.tree_sitter_manager import (
    count_nodes_in_range,
    point_at_offset,
    point_for_position,
    run_query,
)


class TestTreeSitterHelpers:
    """Tests for grammar lookup and point conversion."""

    def test_grammar_names(self):
        """Test editor language ids map onto grammars."""
        assert get_grammar_name("javascriptreact") == "javascript"
        assert get_grammar_name("typescriptreact") == "tsx"
        assert get_grammar_name("typescript") == "typescript"
        assert get_grammar_name("css") is None

    def test_unknown_grammar(self):
        """Test loading an unknown grammar raises ValueError."""
        with pytest.raises(ValueError):
            get_language("cobol")

    def test_points_use_byte_columns(self):
        """Test points count UTF-8 bytes within the line."""
        text = "x\nhéllo"

        assert point_at_offset(text, 5) == (1, 4)
        assert point_for_position(text, Position(1, 3)) == (1, 4)
        assert point_for_position(text, Position(5, 2)) == (5, 2)


@pytest.fixture
def python_grammar():
    pytest.importorskip("tree_sitter_python")
    return "python"


class TestParseTreeCache:
    """Tests for ParseTreeCache."""

    def test_parse_and_query_errors(self, python_grammar):
        """Test parsing a document and querying its error nodes."""
        cache = ParseTreeCache()
        document = TextDocument("file:///a.py", "python", "x = 1\ny = ))\n")

        snapshot = cache.parse_document(document)
        errors = run_query(snapshot.tree, "(ERROR) @error", python_grammar).get("error", [])

        assert snapshot.language == python_grammar
        assert errors
        assert count_nodes_in_range(errors, (1, 0), (1, 6)) >= 1
        assert count_nodes_in_range(errors, (3, 0), (4, 0)) == 0

    def test_edits_produce_new_snapshots(self, python_grammar):
        """Test edits re-parse into a new snapshot and leave the old one intact."""
        cache = ParseTreeCache()
        document = TextDocument("file:///a.py", "python", "x = 1\n")
        cache.attach(document)
        before = cache.get(document.uri)

        document.insert(Position(1, 0), "def f():\n    return x\n")
        after = cache.get(document.uri)

        assert after is not before
        assert after.text == document.get_text()
        assert before.text == "x = 1\n"
        assert after.tree.root_node.child_count == 2
        assert before.tree.root_node.child_count == 1
        assert not after.tree.root_node.has_error

    def test_detach_stops_following_edits(self, python_grammar):
        """Test the returned function unsubscribes from edits."""
        cache = ParseTreeCache()
        document = TextDocument("file:///a.py", "python", "x = 1\n")
        detach = cache.attach(document)

        detach()
        document.apply_edit(Range(Position(0, 4), Position(0, 5)), "2")

        assert cache.get(document.uri).text == "x = 1\n"

    def test_stale_snapshot_is_reparsed(self, python_grammar):
        """Test a snapshot that missed an edit is rebuilt on access."""
        cache = ParseTreeCache()
        document = TextDocument("file:///a.py", "python", "x = 1\n")
        cache.parse_document(document)

        document.insert(Position(1, 0), "y = 2\n")
        snapshot = cache.get_for_document(document)

        assert snapshot.text == "x = 1\ny = 2\n"

    def test_unparsed_document(self, python_grammar):
        """Test documents that were never parsed have no snapshot."""
        cache = ParseTreeCache()
        document = TextDocument("file:///a.py", "python", "x = 1\n")

        assert cache.get_for_document(document) is None
        assert document.uri not in cache

    def test_unsupported_and_large_documents(self, python_grammar):
        """Test unsupported languages and long documents are not parsed."""
        cache = ParseTreeCache(max_lines=3)

        assert cache.parse_document(TextDocument("file:///a.css", "css", "a {}")) is None
        assert cache.parse_document(TextDocument("file:///a.py", "python", "x\n" * 5)) is None
        assert len(cache) == 0

    def test_lru_eviction(self, python_grammar):
        """Test the least recently used tree is evicted first."""
        cache = ParseTreeCache(max_size=2)
        documents = [TextDocument(f"file:///{name}.py", "python", "x = 1\n") for name in "abc"]

        cache.parse_document(documents[0])
        cache.parse_document(documents[1])
        cache.get(documents[0].uri)
        cache.parse_document(documents[2])

        assert documents[0].uri in cache
        assert documents[1].uri not in cache
        assert documents[2].uri in cache
        assert cache.stats() == {"size": 2, "max_size": 2}
