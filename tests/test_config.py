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

"""Tests for completion settings."""

import pytest
from pydantic import ValidationError

from ghost_text.config import CompletionSettings


class TestCompletionSettings:
    """Tests for CompletionSettings."""

    def test_defaults(self):
        """Test default values."""
        settings = CompletionSettings()

        assert settings.enabled
        assert settings.hot_streak
        assert settings.dynamic_multiline_completions
        assert settings.user_latency is False
        assert settings.first_completion_timeout_ms == 1200
        assert settings.indent_string == "    "

    def test_indent_string_with_tabs(self):
        """Test tab indentation."""
        assert CompletionSettings(insert_spaces=False).indent_string == "\t"
        assert CompletionSettings(tab_size=2).indent_string == "  "

    def test_debounce_by_mode(self):
        """Test single-line and multiline requests use their own debounce."""
        settings = CompletionSettings(debounce_single_line_ms=10, debounce_multi_line_ms=30)

        assert settings.debounce_ms(multiline=False) == 10
        assert settings.debounce_ms(multiline=True) == 30

    def test_rejects_negative_values(self):
        """Test field constraints are validated."""
        with pytest.raises(ValidationError):
            CompletionSettings(debounce_single_line_ms=-1)

    def test_from_yaml_nested(self, tmp_path):
        """Test loading settings from an inline_completion section."""
        path = tmp_path / "settings.yaml"
        path.write_text("inline_completion:\n  hot_streak: false\n  tab_size: 2\n")

        settings = CompletionSettings.from_yaml(path)

        assert settings.hot_streak is False
        assert settings.tab_size == 2

    def test_from_yaml_flat(self, tmp_path):
        """Test loading settings from a flat file."""
        path = tmp_path / "settings.yaml"
        path.write_text("user_latency: true\ncache_size: 5\n")

        settings = CompletionSettings.from_yaml(str(path))

        assert settings.user_latency is True
        assert settings.cache_size == 5

    def test_from_yaml_empty_file(self, tmp_path):
        """Test an empty file yields the defaults."""
        path = tmp_path / "settings.yaml"
        path.write_text("")

        assert CompletionSettings.from_yaml(path) == CompletionSettings()

    def test_from_yaml_errors(self, tmp_path):
        """Test unreadable and invalid files raise ValueError."""
        with pytest.raises(ValueError, match="Failed to load"):
            CompletionSettings.from_yaml(tmp_path / "missing.yaml")

        not_a_mapping = tmp_path / "list.yaml"
        not_a_mapping.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="must be a mapping"):
            CompletionSettings.from_yaml(not_a_mapping)

        invalid = tmp_path / "invalid.yaml"
        invalid.write_text("cache_size: 0\n")
        with pytest.raises(ValueError, match="Invalid completion settings"):
            CompletionSettings.from_yaml(invalid)
