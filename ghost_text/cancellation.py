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

"""Cancellation tokens with parent to child propagation.

A token can be forked into children. Cancelling a parent cancels every
descendant; cancelling a child never touches its parent.
"""

import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag with callbacks."""

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []
        self._children: List["CancellationToken"] = []
        self._parent = parent
        if parent is not None:
            if parent.is_cancelled:
                self._cancelled = True
            else:
                parent._children.append(self)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def fork(self) -> "CancellationToken":
        """Create a child token cancelled together with this one."""
        return CancellationToken(parent=self)

    def on_cancelled(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback run once on cancellation.

        Runs immediately if the token is already cancelled.

        Returns:
            Function that unregisters the callback
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def cancel(self) -> None:
        """Cancel this token and all of its descendants."""
        if self._cancelled:
            return
        self._cancelled = True

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Cancellation callback failed: {e}")

        children, self._children = self._children, []
        for child in children:
            child.cancel()

        # Detach so the parent does not keep discarded children alive
        if self._parent is not None and self in self._parent._children:
            self._parent._children.remove(self)

    def dispose(self) -> None:
        """Stop following the parent.

        Called once the guarded work finished. Cancelling the parent no longer
        reaches this token afterwards.
        """
        if self._parent is not None and self in self._parent._children:
            self._parent._children.remove(self)
        self._parent = None

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled}, children={len(self._children)})"
