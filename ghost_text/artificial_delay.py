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

"""Adaptive delay added on top of the debounce interval.

Languages where completions tend to be unhelpful get a fixed baseline. When
the user keeps ignoring suggestions, the delay grows linearly up to a cap so
ghost text shows up less eagerly. The counters reset every five minutes, when
the user switches files and when a suggestion is accepted.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

USER_LATENCY_INCREMENT_MS = 50
LOW_PERFORMANCE_LATENCY_MS = 1000
MAX_LATENCY_MS = 1400
RESET_INTERVAL_S = 5 * 60
REJECTIONS_BEFORE_INCREASE = 5

LOW_PERFORMANCE_LANGUAGE_IDS = frozenset(
    {
        "css",
        "html",
        "scss",
        "vue",
        "dart",
        "json",
        "yaml",
        "postcss",
        "markdown",
        "plaintext",
        "xml",
        "twig",
        "jsonc",
        "handlebars",
    }
)


@dataclass
class UserLatencyMetrics:
    session_timestamp: Optional[float] = None
    current_latency_ms: int = 0
    suggested: int = 0
    uri: str = ""


class LatencyTracker:
    """Computes the artificial delay for each completion request.

    Args:
        user_latency: Grow the delay while suggestions are being ignored
        clock: Monotonic clock in seconds, injectable for tests
    """

    def __init__(self, user_latency: bool = False, clock: Optional[Callable[[], float]] = None):
        self.user_latency = user_latency
        self._clock = clock or time.monotonic
        self.metrics = UserLatencyMetrics()

    def get_artificial_delay(self, uri: str, language_id: str) -> int:
        """Delay in milliseconds to wait before requesting a completion."""
        baseline = LOW_PERFORMANCE_LATENCY_MS if language_id in LOW_PERFORMANCE_LANGUAGE_IDS else 0

        now = self._clock()
        if self.metrics.session_timestamp is None:
            self.metrics.session_timestamp = now

        elapsed = now - self.metrics.session_timestamp
        if elapsed >= RESET_INTERVAL_S or self.metrics.uri != uri:
            self.reset(now)

        self.metrics.suggested += 1
        self.metrics.uri = uri

        total = max(baseline, min(baseline + self.metrics.current_latency_ms, MAX_LATENCY_MS))

        if (
            self.metrics.suggested >= REJECTIONS_BEFORE_INCREASE
            and self.metrics.current_latency_ms < MAX_LATENCY_MS
            and self.user_latency
        ):
            self.metrics.current_latency_ms += USER_LATENCY_INCREMENT_MS

        if total > 0:
            logger.debug(f"Artificial delay for {language_id}: {total}ms")
        return total

    def reset(self, timestamp: Optional[float] = None) -> None:
        """Forget the rejection streak and start a new session at ``timestamp``."""
        self.metrics = UserLatencyMetrics(session_timestamp=timestamp)
