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

"""Tree-sitter parsers and the per-document parse tree cache."""

from ghost_text.syntax.parse_tree_cache import ParseTreeCache, TreeSnapshot
from ghost_text.syntax.tree_sitter_manager import (
    EDITOR_LANGUAGE_GRAMMARS,
    LANGUAGE_MODULES,
    get_grammar_name,
    get_language,
    get_parser,
    run_query,
)

__all__ = [
    "EDITOR_LANGUAGE_GRAMMARS",
    "LANGUAGE_MODULES",
    "ParseTreeCache",
    "TreeSnapshot",
    "get_grammar_name",
    "get_language",
    "get_parser",
    "run_query",
]
