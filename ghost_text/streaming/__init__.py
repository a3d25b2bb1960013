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

"""Completion streaming: providers, the stream processor and the hot streak."""

from ghost_text.streaming.provider import (
    BaseCompletionProvider,
    ProviderFactory,
    ProviderOptions,
    StaticCompletionProvider,
)
from ghost_text.streaming.model import ModelCompletionProvider
from ghost_text.streaming.hot_streak import HotStreakExtractor
from ghost_text.streaming.fetch_and_process import (
    StreamProcessor,
    StreamState,
    fetch_and_process_dynamic_multiline_completions,
)

__all__ = [
    # Providers
    "BaseCompletionProvider",
    "ModelCompletionProvider",
    "ProviderFactory",
    "ProviderOptions",
    "StaticCompletionProvider",
    # Processing
    "HotStreakExtractor",
    "StreamProcessor",
    "StreamState",
    "fetch_and_process_dynamic_multiline_completions",
]
