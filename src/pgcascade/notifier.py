"""
Outcome reporting for reapplied indexes and triggers.
"""

import logging
from typing import Optional, Protocol


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Anything with a ``say`` method can receive reapplication outcomes."""

    def say(self, message: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that writes outcomes to a logger."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.log = log or logger
        self.level = level

    def say(self, message: str) -> None:
        self.log.log(self.level, message)


def notify(notifier: Optional[Notifier], message: str) -> None:
    """Deliver a message if a notifier is configured. Delivery failures are only logged."""
    if notifier is None:
        return

    try:
        notifier.say(message)
    except Exception as e:
        logger.warning(f"Notifier failed to report '{message}': {e}")
