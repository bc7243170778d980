"""Event notification"""

from collections import defaultdict
from typing import Any, Callable, DefaultDict, List
import logging

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Synchronous pub/sub used to report progress, complete and error"""

    def __init__(self):
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener):
        self._listeners[event].append(listener)

    def once(self, event: str, listener: Listener):
        def wrapper(*args):
            self.off(event, wrapper)
            listener(*args)

        self.on(event, wrapper)

    def off(self, event: str, listener: Listener):
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def emit(self, event: str, *args):
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"Listener for '{event}' failed: {e}", exc_info=True)
