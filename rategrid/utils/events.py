"""
Change notification between state holders and derived computations.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

DATA_CHANGED = "data_changed"
SELECTION_CHANGED = "selection_changed"
EDITS_CHANGED = "edits_changed"
WINDOW_CHANGED = "window_changed"
SAVED = "saved"
RATE_PLAN_CHANGED = "rate_plan_changed"


class EventEmitter:
    """
    Minimal synchronous observer.

    Callbacks run in subscription order on the emitting call.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[..., Any]]] = defaultdict(list)

    def subscribe(self, event: str, callback: Callable[..., Any]) -> Callable[[], None]:
        self._subscribers[event].append(callback)

        def unsubscribe():
            if callback in self._subscribers[event]:
                self._subscribers[event].remove(callback)

        return unsubscribe

    def emit(self, event: str, **payload):
        for callback in list(self._subscribers.get(event, [])):
            callback(**payload)

    def subscriber_count(self, event: str) -> int:
        return len(self._subscribers.get(event, []))
