"""Minimal signal/observer plumbing used to tell front ends that state moved."""

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class Signal:
    """
    A simple pure-Python signal. Subscribers are called synchronously, in
    subscription order, on every emit().
    """
    def __init__(self):
        self._observers: List[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]):
        """Subscribe a callback function."""
        if callback not in self._observers:
            self._observers.append(callback)

    def disconnect(self, callback: Callable[..., Any]):
        """Unsubscribe a callback function."""
        if callback in self._observers:
            self._observers.remove(callback)

    def emit(self, *args, **kwargs):
        """Notify all subscribers."""
        for callback in list(self._observers):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                # One broken subscriber must not starve the others
                logger.error(f"[Signal] Error in observer callback: {e}", exc_info=e)


class Observable:
    """
    Base class for objects that emit signals.

    Subclasses list their signal names in ``signals``; each instance gets its
    own Signal objects so subscribers never leak between instances.
    """
    signals: tuple = ()

    def __init__(self):
        for name in self.signals:
            setattr(self, name, Signal())
