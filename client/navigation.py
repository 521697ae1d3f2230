"""RoomSync navigation to a different video."""
from __future__ import annotations
import logging
from typing import Callable, Protocol

logger = logging.getLogger("roomsync.client.navigation")


class Navigator(Protocol):
    def navigate_full_reload(self, url: str) -> None:
        """Replace the whole play context with the page at url."""
        ...


class CallbackNavigator:
    """Forwards full-reload requests to the host application."""

    def __init__(self, reload: Callable[[str], None]):
        self._reload = reload

    def navigate_full_reload(self, url: str) -> None:
        logger.info("Full reload -> %s", url)
        self._reload(url)
