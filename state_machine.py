"""Guarded application state with transition events."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from errors import InvalidTransition
from models import AppState, StateChangedEvent

logger = logging.getLogger(__name__)

TransitionCallback = Callable[[StateChangedEvent], None]

LEGAL_TRANSITIONS = frozenset(
    {
        (AppState.IDLE, AppState.RECORDING),
        (AppState.RECORDING, AppState.PROCESSING),
        (AppState.PROCESSING, AppState.POST_PROCESSING),
        (AppState.PROCESSING, AppState.IDLE),
        (AppState.POST_PROCESSING, AppState.IDLE),
    }
)


class StateMachine:
    """Idle -> Recording -> Processing -> (PostProcessing) -> Idle.

    Assumes a single logical caller; it has no timers and no locking of its
    own. Subscribers are called synchronously, in registration order, after
    the state has changed.
    """

    def __init__(self) -> None:
        self._state = AppState.IDLE
        self._subscribers: list[TransitionCallback] = []

    @property
    def state(self) -> AppState:
        return self._state

    @staticmethod
    def is_legal(from_state: AppState, to_state: AppState) -> bool:
        return (from_state, to_state) in LEGAL_TRANSITIONS

    def subscribe(self, callback: TransitionCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def transition_to(self, target: AppState) -> None:
        current = self._state
        if current == target:
            return
        if not self.is_legal(current, target):
            raise InvalidTransition(current, target)

        self._state = target
        logger.info("State transition %s -> %s", current.value, target.value)
        event = StateChangedEvent(old_state=current, new_state=target, timestamp=datetime.now())
        for callback in list(self._subscribers):
            callback(event)
