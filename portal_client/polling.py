"""
Visibility-aware polling cadence.

The coordinator is fed by whatever liveness signal the host exposes (tab
visibility, window focus, or nothing at all for a headless consumer) and
answers one question: how often should a resource refetch right now.
"""

from enum import Enum
from typing import Callable, List, Optional

from shared.logging import get_logger
from shared.polling import POLLING_INTERVALS


class PollingState(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


StateListener = Callable[[PollingState], None]


class SmartPollingCoordinator:
    """Two-state toggle between ACTIVE (visible) and SUSPENDED (hidden)."""

    def __init__(self, is_visible: Callable[[], bool] = lambda: True):
        # sampled once; never assumed visible
        self._state = PollingState.ACTIVE if is_visible() else PollingState.SUSPENDED
        self._listeners: List[StateListener] = []
        self.logger = get_logger("portal_client.polling")

    @property
    def state(self) -> PollingState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == PollingState.ACTIVE

    def set_visible(self, visible: bool) -> None:
        """Feed a visibility-change signal."""
        new_state = PollingState.ACTIVE if visible else PollingState.SUSPENDED
        if new_state == self._state:
            return

        self._state = new_state
        self.logger.debug("Polling state changed", state=new_state.value)
        for listener in list(self._listeners):
            listener(new_state)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` for transitions; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def current_interval(self, base_interval_ms: int) -> Optional[int]:
        """``base_interval_ms`` while active, None (polling disabled) while suspended."""
        if self._state == PollingState.ACTIVE:
            return base_interval_ms
        return None

    def interval_for(self, resource: str) -> Optional[int]:
        return self.current_interval(POLLING_INTERVALS[resource])
