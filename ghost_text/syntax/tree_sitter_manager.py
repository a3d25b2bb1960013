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


from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from tree_sitter import Language, Parser, Query, QueryCursor

from ghost_text.protocol import Position

if TYPE_CHECKING:
    from tree_sitter import Node, Tree


# Language package mapping for tree-sitter 0.25+
# Install with: pip install tree-sitter-<language>
# Format: "grammar_name": ("module_name", "function_name")
LANGUAGE_MODULES: Dict[str, tuple] = {
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),  # Special case
    "tsx": ("tree_sitter_typescript", "language_tsx"),  # TypeScript + JSX
    "go": ("tree_sitter_go", "language"),
    "rust": ("tree_sitter_rust", "language"),
}

# Editor language id -> grammar name
EDITOR_LANGUAGE_GRAMMARS: Dict[str, str] = {
    "javascript": "javascript",
    "javascriptreact": "javascript",
    "typescript": "typescript",
    "typescriptreact": "tsx",
    "go": "go",
    "python": "python",
    "rust": "rust",
}

Point = Tuple[int, int]

_language_cache: Dict[str, Language] = {}
_parser_cache: Dict[str, Parser] = {}


def get_grammar_name(language_id: str) -> Optional[str]:
    """Grammar used for an editor language id, or None when syntax support is off."""
    return EDITOR_LANGUAGE_GRAMMARS.get(language_id)


def get_language(language: str) -> Language:
    """
    Loads a tree-sitter Language object using pre-compiled language packages.

    Raises:
        ValueError: Unknown grammar name
        ImportError: Grammar package not installed
    """
    if language in _language_cache:
        return _language_cache[language]

    module_info = LANGUAGE_MODULES.get(language)
    if not module_info:
        raise ValueError(f"Unsupported language for tree-sitter: {language}")

    module_name, func_name = module_info

    try:
        language_module = __import__(module_name)
        lang_func = getattr(language_module, func_name)

        lang_obj = lang_func()
        # Grammar packages return a PyCapsule; wrap via Language
        lang = Language(lang_obj) if not isinstance(lang_obj, Language) else lang_obj

        _language_cache[language] = lang
        return lang

    except ImportError:
        raise ImportError(
            f"Language package '{module_name}' not installed. "
            f"Install it with: pip install {module_name.replace('_', '-')}"
        )
    except AttributeError:
        raise AttributeError(
            f"Language module '{module_name}' does not have function '{func_name}'. "
            f"Check the tree-sitter package version and update LANGUAGE_MODULES."
        )


def get_parser(language: str) -> Parser:
    """Returns a cached tree-sitter Parser for the grammar."""
    if language in _parser_cache:
        return _parser_cache[language]

    parser = Parser(get_language(language))

    _parser_cache[language] = parser
    return parser


def run_query(tree: "Tree", query_src: str, language: str) -> Dict[str, List["Node"]]:
    """Run a tree-sitter query using the QueryCursor API.

    Args:
        tree: Parsed tree-sitter tree
        query_src: Query source string (S-expression syntax)
        language: Grammar name (e.g., "python", "tsx")

    Returns:
        Dictionary mapping capture names to lists of matching nodes.

    Example:
        >>> parser = get_parser("python")
        >>> tree = parser.parse(b"x = ))")
        >>> bool(run_query(tree, "(ERROR) @error", "python").get("error"))
        True
    """
    query = Query(get_language(language), query_src)
    cursor = QueryCursor(query)
    return cursor.captures(tree.root_node)


def count_nodes_in_range(nodes: List["Node"], start: Point, end: Point) -> int:
    """Count nodes intersecting the point range ``[start, end]``."""
    count = 0
    for node in nodes:
        node_start = tuple(node.start_point)
        node_end = tuple(node.end_point)
        if node_end >= start and node_start <= end:
            count += 1
    return count


def point_at_offset(text: str, offset: int) -> Point:
    """Tree-sitter point (row, byte column) of a character offset."""
    offset = max(0, min(offset, len(text)))
    row = text.count("\n", 0, offset)
    line_start = text.rfind("\n", 0, offset) + 1
    return row, len(text[line_start:offset].encode("utf-8"))


def point_for_position(text: str, position: Position) -> Point:
    """Tree-sitter point of an editor position inside ``text``."""
    text_lines = text.split("\n")
    if position.line >= len(text_lines) or position.character <= 0:
        return position.line, max(0, position.character)
    line = text_lines[position.line]
    return position.line, len(line[: position.character].encode("utf-8"))


def byte_offset(text: str, offset: int) -> int:
    return len(text[:offset].encode("utf-8"))


def node_text(node: "Node") -> str:
    return node.text.decode("utf-8", errors="ignore") if node.text else ""
