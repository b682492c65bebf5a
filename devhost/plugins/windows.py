"""Host windows that render webview plugins."""

import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from devhost.plugins.interfaces import HostWindow

logger = logging.getLogger(__name__)


class QueuedHostWindow(HostWindow):
    """Host window whose renderer polls for directives.

    Directives are queued as {"channel": ..., "payload": ...} dicts in the
    order they were sent.
    """

    def __init__(self, url: str, max_pending: int = 1000):
        self._url = url
        self._pending: Deque[Dict[str, Any]] = deque(maxlen=max_pending)

    @property
    def url(self) -> str:
        return self._url

    def send(self, channel: str, payload: Any) -> None:
        self._pending.append({"channel": channel, "payload": payload})
        logger.debug(f"Queued directive {channel} for {self._url}")

    def drain(self) -> List[Dict[str, Any]]:
        """Return and clear all pending directives."""
        items = list(self._pending)
        self._pending.clear()
        return items


class HostWindowDirectory:
    """All open host windows, in the order they were opened."""

    def __init__(self):
        self._windows: List[HostWindow] = []

    def add(self, window: HostWindow) -> None:
        if window not in self._windows:
            self._windows.append(window)

    def find_by_url(self, fragment: str) -> Optional[HostWindow]:
        """First window whose loaded address contains `fragment`."""
        return next((w for w in self._windows if fragment in w.url), None)
