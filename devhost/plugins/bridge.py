"""In-memory message bridge between the host and plugin contexts."""

import logging
from typing import Any, Dict, List, Optional

from devhost.constants import PLUGIN_MESSAGE_CHANNEL
from devhost.plugins.interfaces import MessageBridge, SandboxedViewHandle

logger = logging.getLogger(__name__)


class InMemoryBridge(MessageBridge):
    """Tracks registered contexts and forwards host messages into them."""

    def __init__(self):
        self._contexts: Dict[str, SandboxedViewHandle] = {}

    def register_context(self, plugin_id: str, handle: SandboxedViewHandle) -> None:
        if plugin_id in self._contexts:
            logger.warning(f"Context for '{plugin_id}' already registered with bridge, replacing")
        self._contexts[plugin_id] = handle
        logger.info(f"Bridge registered context: {plugin_id}")

    def unregister_context(self, plugin_id: str) -> None:
        if self._contexts.pop(plugin_id, None) is not None:
            logger.info(f"Bridge unregistered context: {plugin_id}")

    def get_context(self, plugin_id: str) -> Optional[SandboxedViewHandle]:
        return self._contexts.get(plugin_id)

    def registered(self) -> List[str]:
        return list(self._contexts)

    def post(self, plugin_id: str, payload: Any, channel: str = PLUGIN_MESSAGE_CHANNEL) -> bool:
        """Send a payload to a registered, live context.

        Returns:
            True if delivered
        """
        handle = self._contexts.get(plugin_id)
        if handle is None or handle.is_destroyed:
            logger.warning(f"Cannot post to '{plugin_id}': no live context")
            return False
        handle.send(channel, payload)
        return True
