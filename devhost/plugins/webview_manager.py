"""Webview plugin manager - URL-backed plugins rendered inside the host window."""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from devhost.constants import HOST_WINDOW_URL
from devhost.core.bus import MessageBus
from devhost.models.results import OperationResult
from devhost.plugins.interfaces import HostWindow
from devhost.plugins.manifest import WebviewPluginConfig
from devhost.plugins.registry import Repository
from devhost.plugins.windows import HostWindowDirectory

logger = logging.getLogger(__name__)

MAIN_WINDOW_NOT_FOUND = "Main window not found"


class PluginWebviewManager:
    """Registry of webview plugins plus directives to the host window.

    The manager owns no execution context. Launching, closing, reloading and
    API injection are messages to the single host window whose address
    contains `host_url`; the first such window wins.
    """

    def __init__(
        self,
        windows: HostWindowDirectory,
        *,
        plugins: Optional[Repository[WebviewPluginConfig]] = None,
        host_url: str = HOST_WINDOW_URL,
        preload_path: Optional[str] = None,
    ):
        self.windows = windows
        self.plugins = plugins if plugins is not None else Repository[WebviewPluginConfig]("webview plugin")
        self.host_url = host_url
        self.preload_path = preload_path

    def register_handlers(self, bus: MessageBus) -> None:
        bus.handle("webview-plugin:register", self._handle_register)
        bus.handle("webview-plugin:launch", self.launch_webview_plugin)
        bus.handle("webview-plugin:close", self.close_webview_plugin)
        bus.handle("webview-plugin:list", lambda _payload: self.list_webview_plugins())
        bus.handle("webview-plugin:inject-api", self.inject_plugin_api)
        bus.handle("webview-plugin:reload", self.reload_webview_plugin)

    async def _handle_register(self, payload: Any) -> OperationResult:
        try:
            config = WebviewPluginConfig.model_validate(payload)
        except ValidationError as e:
            return OperationResult.fail(f"Invalid webview plugin config: {e}")
        return await self.register_webview_plugin(config)

    def _find_main_window(self) -> Optional[HostWindow]:
        return self.windows.find_by_url(self.host_url)

    async def register_webview_plugin(self, config: WebviewPluginConfig) -> OperationResult:
        try:
            logger.info(f"Registering webview plugin: {config.id}")

            if not config.url:
                return OperationResult.fail(f"URL is required for webview plugin {config.id}")

            self.plugins.put(config.id, config)
            return OperationResult.ok(f"Webview plugin {config.id} registered successfully")

        except Exception as e:
            logger.error(f"Failed to register webview plugin {config.id}: {e}")
            return OperationResult.fail(f"Failed to register webview plugin: {e}")

    async def launch_webview_plugin(self, plugin_id: str) -> OperationResult:
        try:
            config = self.plugins.get(plugin_id)
            if not config:
                return OperationResult.fail(f"Webview plugin {plugin_id} not found")

            main_window = self._find_main_window()
            if main_window is None:
                return OperationResult.fail(MAIN_WINDOW_NOT_FOUND)

            main_window.send(
                "webview-plugin:launch",
                {
                    "pluginId": config.id,
                    "pluginName": config.name,
                    "pluginUrl": config.url,
                    "isDevelopment": config.is_development,
                },
            )
            logger.info(f"Launched webview plugin: {plugin_id}")
            return OperationResult.ok(f"Webview plugin {plugin_id} launched successfully")

        except Exception as e:
            logger.error(f"Failed to launch webview plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to launch webview plugin: {e}")

    async def close_webview_plugin(self, plugin_id: str) -> OperationResult:
        try:
            if not self.plugins.has(plugin_id):
                return OperationResult.fail(f"Webview plugin {plugin_id} not found")

            main_window = self._find_main_window()
            if main_window is None:
                return OperationResult.fail(MAIN_WINDOW_NOT_FOUND)

            main_window.send("webview-plugin:close", plugin_id)
            logger.info(f"Closed webview plugin: {plugin_id}")
            return OperationResult.ok(f"Webview plugin {plugin_id} closed successfully")

        except Exception as e:
            logger.error(f"Failed to close webview plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to close webview plugin: {e}")

    async def reload_webview_plugin(self, plugin_id: str) -> OperationResult:
        try:
            config = self.plugins.get(plugin_id)
            if not config:
                return OperationResult.fail(f"Webview plugin {plugin_id} not found")

            main_window = self._find_main_window()
            if main_window is None:
                return OperationResult.fail(MAIN_WINDOW_NOT_FOUND)

            main_window.send(
                "webview-plugin:reload",
                {"pluginId": config.id, "pluginUrl": config.url},
            )
            logger.info(f"Reloaded webview plugin: {plugin_id}")
            return OperationResult.ok(f"Webview plugin {plugin_id} reloaded successfully")

        except Exception as e:
            logger.error(f"Failed to reload webview plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to reload webview plugin: {e}")

    async def inject_plugin_api(self, plugin_id: str) -> OperationResult:
        """Ask the host window to expose the plugin API inside the webview."""
        try:
            if not self.plugins.has(plugin_id):
                return OperationResult.fail(f"Webview plugin {plugin_id} not found")

            main_window = self._find_main_window()
            if main_window is None:
                return OperationResult.fail(MAIN_WINDOW_NOT_FOUND)

            logger.info(f"Injecting pluginAPI for {plugin_id} (preload={self.preload_path})")
            main_window.send(
                "webview-plugin:inject-api",
                {"pluginId": plugin_id, "preloadPath": self.preload_path},
            )
            return OperationResult.ok(f"PluginAPI injected for {plugin_id}")

        except Exception as e:
            logger.error(f"Failed to inject pluginAPI for {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to inject pluginAPI: {e}")

    def cleanup(self) -> None:
        self.plugins.clear()

    def list_webview_plugins(self) -> List[Dict[str, Any]]:
        return [p.model_dump(mode="json", by_alias=True) for p in self.plugins.values()]

    def get_registered_webview_plugins(self) -> List[WebviewPluginConfig]:
        return self.plugins.values()

    def is_webview_plugin_registered(self, plugin_id: str) -> bool:
        return self.plugins.has(plugin_id)
