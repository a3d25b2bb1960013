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

"""Block syntax configuration per language.

Tells the multiline detector and the indentation truncator which token opens
a block, which closes it and how an ``else`` continuation line looks.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern


@dataclass(frozen=True)
class LanguageConfig:
    """Block syntax of a language.

    Attributes:
        block_start: Token that opens a block (e.g., "{" or ":")
        block_else_test: Matches lines continuing a block (e.g., "} else")
        block_end: Token that closes a block, None for indentation languages
    """

    block_start: str
    block_else_test: Pattern[str]
    block_end: Optional[str]


_C_STYLE = LanguageConfig(
    block_start="{",
    block_else_test=re.compile(r"^[\t ]*} else"),
    block_end="}",
)

_PYTHON = LanguageConfig(
    block_start=":",
    block_else_test=re.compile(r"^[\t ]*(elif |else:)"),
    block_end=None,
)

LANGUAGE_CONFIGS: Dict[str, LanguageConfig] = {
    "c": _C_STYLE,
    "cpp": _C_STYLE,
    "csharp": _C_STYLE,
    "dart": _C_STYLE,
    "go": _C_STYLE,
    "java": _C_STYLE,
    "javascript": _C_STYLE,
    "javascriptreact": _C_STYLE,
    "php": _C_STYLE,
    "typescript": _C_STYLE,
    "typescriptreact": _C_STYLE,
    "vue": _C_STYLE,
    "rust": _C_STYLE,
    "python": _PYTHON,
}


def get_language_config(language_id: str) -> Optional[LanguageConfig]:
    """Return the block configuration for an editor language id, if known."""
    return LANGUAGE_CONFIGS.get(language_id)
