"""Guards that stop an action from being triggered twice while it runs."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping

logger = logging.getLogger(__name__)

INFLIGHT_STATE_KEY = "_inflight_actions"


class ActionInProgressError(RuntimeError):
    """Raised when an action is started while the same action is running."""


class InFlightGuard:
    """Track busy actions inside a mutable mapping such as ``st.session_state``."""

    def __init__(self, state: MutableMapping[str, Any], state_key: str = INFLIGHT_STATE_KEY) -> None:
        self._state = state
        self._state_key = state_key

    def _busy(self) -> set:
        busy = self._state.get(self._state_key)
        if not isinstance(busy, set):
            busy = set()
            self._state[self._state_key] = busy
        return busy

    def is_busy(self, action: str) -> bool:
        return action in self._busy()

    @contextmanager
    def hold(self, action: str) -> Iterator[None]:
        """Mark ``action`` busy for the duration of the block."""

        busy = self._busy()
        if action in busy:
            logger.info("Rejected '%s': already in flight", action)
            raise ActionInProgressError(action)
        busy.add(action)
        try:
            yield
        finally:
            self._busy().discard(action)
