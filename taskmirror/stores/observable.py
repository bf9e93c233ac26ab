"""Subscription support shared by the local reactive stores."""

import logging
from collections.abc import Callable


logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ObservableStore:
    """Base for in-memory stores that notify listeners after every mutation."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                # A broken subscriber must not abort the mutation that triggered it
                logger.exception("Store listener failed", extra={"store": type(self).__name__})
