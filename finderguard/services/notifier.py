"""
Notifier - fire-and-forget delivery of match and exchange events.
Nothing in matching or exchange logic depends on a notification arriving.
"""

import logging
from collections.abc import Callable
from typing import Any

from finderguard.config import NotificationConfig

logger = logging.getLogger(__name__)

Dispatch = Callable[[str, dict[str, Any]], None]


class Notifier:
    def __init__(self, config: NotificationConfig, dispatch: Dispatch):
        self.config = config
        self._dispatch = dispatch

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        if not self.config.enabled:
            logger.debug("notifications disabled; dropping %s", event)
            return
        try:
            self._dispatch(event, payload)
        except Exception as exc:
            logger.warning("notification %s not dispatched: %s", event, exc)
