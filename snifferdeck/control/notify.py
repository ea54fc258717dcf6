"""Notification sink: where user-facing outcome messages go."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol


class NotificationLevel(str, Enum):
    INFO = "info"
    ERROR = "error"


class Notifier(Protocol):
    def notify(self, message: str, level: NotificationLevel) -> None: ...


class LoggingNotifier:
    """Default sink when no UI is attached: messages go to the log."""

    def __init__(self, logger_name: str = "snifferdeck.notify"):
        self.logger = logging.getLogger(logger_name)

    def notify(self, message: str, level: NotificationLevel) -> None:
        if level is NotificationLevel.ERROR:
            self.logger.error(message)
        else:
            self.logger.info(message)
