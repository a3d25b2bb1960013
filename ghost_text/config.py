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

"""Inline completion settings."""

import logging
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class CompletionSettings(BaseModel):
    """Configuration for inline completions.

    Can be loaded from a YAML file, either flat or nested under an
    ``inline_completion`` section:

    ```yaml
    inline_completion:
      hot_streak: true
      debounce_single_line_ms: 75
      user_latency: true
    ```
    """

    enabled: bool = Field(default=True, description="Serve inline completions at all")

    # Document context
    max_prefix_length: int = Field(
        default=100_000, ge=0, description="Character budget for the text before the cursor"
    )
    max_suffix_length: int = Field(
        default=100_000, ge=0, description="Character budget for the text after the cursor"
    )

    # Streaming
    first_completion_timeout_ms: float = Field(
        default=1200,
        ge=0,
        description="Emit the first completion from partial text after this many milliseconds",
    )
    hot_streak: bool = Field(
        default=True, description="Carve follow-up completions out of the same generation"
    )
    dynamic_multiline_completions: bool = Field(
        default=True, description="Switch to multiline when the first generated line opens a block"
    )

    # Debounce
    debounce_single_line_ms: int = Field(default=125, ge=0, description="Debounce for single-line requests")
    debounce_multi_line_ms: int = Field(default=125, ge=0, description="Debounce for multiline requests")
    user_latency: bool = Field(
        default=False, description="Grow the delay while suggestions are being ignored"
    )

    # Caches
    cache_size: int = Field(default=50, ge=1, description="Entries in the request cache")
    parse_tree_cache_size: int = Field(default=10, ge=1, description="Documents with a cached parse tree")
    max_parse_lines: int = Field(
        default=10_000, ge=1, description="Documents longer than this are not parsed"
    )

    # Editor
    tab_size: int = Field(default=4, ge=1, description="Width of one indentation unit")
    insert_spaces: bool = Field(default=True, description="Indent with spaces instead of tabs")

    @property
    def indent_string(self) -> str:
        """One indentation unit as the editor would insert it."""
        return " " * self.tab_size if self.insert_spaces else "\t"

    def debounce_ms(self, multiline: bool) -> int:
        return self.debounce_multi_line_ms if multiline else self.debounce_single_line_ms

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "CompletionSettings":
        """Load settings from a YAML file.

        Args:
            path: Path to the YAML file

        Raises:
            ValueError: If the file cannot be read or holds invalid settings
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Failed to load completion settings from {path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Completion settings in {path} must be a mapping")

        section = data.get("inline_completion", data)
        try:
            settings = cls(**section)
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid completion settings in {path}: {e}") from e

        logger.debug(f"Loaded completion settings from {path}")
        return settings
