# src/studiq/application/signals.py
"""
Boolean environment signals (network online, page visible) that components
read and subscribe to. The host application owns them and flips them when the
underlying platform reports a transition.
"""

import logging
from typing import Callable, List

log = logging.getLogger(__name__)

Listener = Callable[[bool], None]


class StatusSignal:
    """A boolean value that notifies listeners when it actually changes."""

    def __init__(self, name: str, value: bool = True):
        self.name = name
        self._value = value
        self._listeners: List[Listener] = []

    @property
    def value(self) -> bool:
        return self._value

    def set(self, value: bool) -> None:
        value = bool(value)
        if value == self._value:
            return
        self._value = value
        log.debug(f"Signal '{self.name}' -> {value}")
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as e:
                log.error(f"Listener for signal '{self.name}' failed: {e}", exc_info=True)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers `listener`; returns a callable that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def __bool__(self) -> bool:
        return self._value

    def __repr__(self) -> str:
        return f"StatusSignal('{self.name}', {self._value})"
