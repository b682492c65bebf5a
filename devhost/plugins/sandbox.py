"""Headless sandbox - logical plugin sessions without a render surface.

A HeadlessViewHandle "renders" by fetching its source: http(s) URLs through
aiohttp, file:// URLs from disk. It lets the host run and be tested without
a GUI toolkit.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

import aiohttp

from devhost.constants import CONTENT_LOAD_TIMEOUT
from devhost.plugins.interfaces import ContextOptions, SandboxedViewHandle, SandboxService
from devhost.plugins.manifest import PluginManifest

logger = logging.getLogger(__name__)


class HeadlessViewHandle(SandboxedViewHandle):
    """Logical session for one plugin."""

    def __init__(self, plugin_id: str, options: ContextOptions, timeout: float = CONTENT_LOAD_TIMEOUT):
        self.plugin_id = plugin_id
        self.options = options
        self.timeout = timeout
        self.source: Optional[str] = None
        self.content: Optional[str] = None
        self.focused = False
        self.messages: List[Tuple[str, Any]] = []
        self._destroyed = False
        self._closed_callbacks: List[Callable[[], None]] = []

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    async def load(self, source: str) -> None:
        parsed = urlparse(source)
        if parsed.scheme in ("http", "https"):
            content = await self._fetch(source)
        elif parsed.scheme == "file":
            path = Path(unquote(parsed.path))
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        else:
            raise ValueError(f"Unsupported source scheme: {source}")

        # A close that happened while loading wins; the content is dropped.
        if self._destroyed:
            logger.debug(f"Discarding load of {source}: context {self.plugin_id} closed")
            return
        self.source = source
        self.content = content
        logger.debug(f"Loaded {source} into {self.plugin_id}")

    async def _fetch(self, url: str) -> str:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                response.raise_for_status()
                return await response.text()

    def focus(self) -> None:
        self.focused = True

    def send(self, channel: str, payload: Any) -> None:
        if self._destroyed:
            raise RuntimeError(f"Context {self.plugin_id} is destroyed")
        self.messages.append((channel, payload))

    def on_closed(self, callback: Callable[[], None]) -> None:
        self._closed_callbacks.append(callback)

    def close(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        for callback in self._closed_callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Closed callback failed for {self.plugin_id}: {e}")
        self._closed_callbacks.clear()


class HeadlessSandbox(SandboxService):
    """Creates HeadlessViewHandles constrained to the manifest's permissions."""

    def __init__(self, timeout: float = CONTENT_LOAD_TIMEOUT):
        self.timeout = timeout
        self._contexts: Dict[str, HeadlessViewHandle] = {}

    async def create_isolated_context(
        self,
        plugin_id: str,
        manifest: PluginManifest,
        options: ContextOptions,
    ) -> HeadlessViewHandle:
        # Only permissions the manifest declares are granted
        if options.permissions:
            granted = [p for p in options.permissions if p in manifest.permissions]
        else:
            granted = list(manifest.permissions)
        options = options.model_copy(update={"permissions": granted})
        handle = HeadlessViewHandle(plugin_id, options, timeout=self.timeout)
        self._contexts[plugin_id] = handle

        def forget() -> None:
            if self._contexts.get(plugin_id) is handle:
                del self._contexts[plugin_id]

        handle.on_closed(forget)
        logger.info(f"Created isolated context for {plugin_id} (permissions={granted})")
        return handle

    def get_running_contexts(self) -> List[str]:
        return list(self._contexts)
