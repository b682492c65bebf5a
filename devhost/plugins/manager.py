"""Plugin manager - lifecycle facade for installed plugins."""

import asyncio
import json
import logging
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from devhost.constants import DESCRIPTOR_FILE, PLUGIN_CATALOG_DIR
from devhost.core.bus import MessageBus
from devhost.models.results import InstallResult, OperationResult
from devhost.plugins.errors import PluginLoadError
from devhost.plugins.interfaces import (
    ContextOptions,
    MessageBridge,
    PluginInstaller,
    PluginStore,
    SandboxedViewHandle,
    SandboxService,
)
from devhost.plugins.manifest import PluginManifest
from devhost.plugins.registry import ContextRepository

logger = logging.getLogger(__name__)


class PluginManager:
    """Top-level facade for installed plugins.

    Install and uninstall go through the installer, enabled state through the
    store, and each launch creates a sandboxed context restricted to the
    plugin's declared permissions. Workspace-discovered plugins are handled
    by PluginDevLoader and PluginWebviewManager instead.
    """

    def __init__(
        self,
        store: PluginStore,
        installer: PluginInstaller,
        sandbox: SandboxService,
        bridge: MessageBridge,
        plugins_dir: Path,
        *,
        contexts: Optional[ContextRepository] = None,
        catalog_dir: Path = PLUGIN_CATALOG_DIR,
    ):
        self.store = store
        self.installer = installer
        self.sandbox = sandbox
        self.bridge = bridge
        self.plugins_dir = Path(plugins_dir)
        self.catalog_dir = Path(catalog_dir)
        self.contexts = contexts if contexts is not None else ContextRepository()

    async def initialize(self) -> None:
        self.plugins_dir.mkdir(parents=True, exist_ok=True)

    def register_handlers(self, bus: MessageBus) -> None:
        bus.handle("plugin:install", self.install_plugin)
        bus.handle("plugin:uninstall", self.uninstall_plugin)
        bus.handle("plugin:enable", self.enable_plugin)
        bus.handle("plugin:disable", self.disable_plugin)
        bus.handle("plugin:launch", self.launch_plugin)
        bus.handle("plugin:close", self.close_plugin)
        bus.handle("plugin:list", lambda _payload: self.list_plugins())
        bus.handle("plugin:send-message", self._handle_send_message)

    async def _handle_send_message(self, payload: Any) -> OperationResult:
        if not isinstance(payload, dict) or "pluginId" not in payload:
            return OperationResult.fail("Payload must be an object with 'pluginId' and 'message'")
        return await self.send_message_to_plugin(payload["pluginId"], payload.get("message"))

    def _resolve_source(self, source: Union[str, Path]) -> Path:
        """A bare plugin id (no path separator) names a directory in the catalog."""
        text = str(source)
        if "/" not in text and "\\" not in text:
            candidate = self.catalog_dir / text
            if not candidate.is_dir():
                raise FileNotFoundError(f"Plugin \"{text}\" not found in plugins directory")
            logger.info(f"Resolved plugin ID \"{text}\" to path: {candidate}")
            return candidate
        return Path(text)

    async def install_plugin(self, source: Union[str, Path]) -> InstallResult:
        try:
            source_path = self._resolve_source(source)
            if not source_path.is_dir():
                return InstallResult(success=False, message=f"Path is not a directory: {source_path}")

            record = await self.installer.install(source_path)
            return InstallResult(
                success=True,
                message=f"Plugin {record.id} installed successfully",
                plugin=record,
            )
        except Exception as e:
            logger.error(f"Failed to install plugin from {source}: {e}")
            return InstallResult(success=False, message=f"Failed to install plugin: {e}")

    async def uninstall_plugin(self, plugin_id: str) -> OperationResult:
        try:
            await self.close_plugin(plugin_id)
            await self.installer.uninstall(plugin_id)
            return OperationResult.ok("Plugin uninstalled successfully")
        except Exception as e:
            logger.error(f"Failed to uninstall plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to uninstall plugin: {e}")

    async def enable_plugin(self, plugin_id: str) -> OperationResult:
        try:
            if self.store.set_enabled(plugin_id, True) is None:
                return OperationResult.fail(f"Plugin {plugin_id} not found")
            return OperationResult.ok("Plugin enabled successfully")
        except Exception as e:
            logger.error(f"Failed to enable plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to enable plugin: {e}")

    async def disable_plugin(self, plugin_id: str) -> OperationResult:
        try:
            await self.close_plugin(plugin_id)
            if self.store.set_enabled(plugin_id, False) is None:
                return OperationResult.fail(f"Plugin {plugin_id} not found")
            return OperationResult.ok("Plugin disabled successfully")
        except Exception as e:
            logger.error(f"Failed to disable plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to disable plugin: {e}")

    async def _read_manifest(self, plugin_id: str, plugin_path: Path) -> PluginManifest:
        manifest_path = plugin_path / DESCRIPTOR_FILE
        raw = await asyncio.to_thread(manifest_path.read_text, encoding="utf-8")
        data = json.loads(raw)
        data.setdefault("id", plugin_id)
        return PluginManifest.model_validate(data)

    async def launch_plugin(self, plugin_id: str) -> OperationResult:
        """Open an installed plugin in a sandboxed context, or focus the open one."""
        try:
            existing = self.contexts.get_live(plugin_id)
            if existing is not None:
                existing.focus()
                return OperationResult.ok(f"Plugin {plugin_id} is already running")

            record = self.store.get_plugin_record(plugin_id)
            if record is None:
                return OperationResult.fail(f"Plugin {plugin_id} not found")
            if not record.enabled:
                return OperationResult.fail(f"Plugin {plugin_id} is disabled")

            plugin_path = self.get_plugin_path(plugin_id)
            manifest = await self._read_manifest(plugin_id, plugin_path)

            options = ContextOptions(
                title=manifest.name,
                additional_arguments=[f"--plugin-id={plugin_id}"],
                permissions=list(manifest.permissions),
            )
            handle = await self.sandbox.create_isolated_context(plugin_id, manifest, options)
            self.bridge.register_context(plugin_id, handle)

            entry_path = plugin_path / manifest.entry_file
            try:
                if not entry_path.exists():
                    raise PluginLoadError(f"Entry file not found for plugin {plugin_id}: {entry_path}")
                await handle.load(entry_path.resolve().as_uri())
            except Exception:
                self.bridge.unregister_context(plugin_id)
                handle.close()
                raise

            self.contexts.put(plugin_id, handle)
            handle.on_closed(partial(self._on_context_closed, plugin_id, handle))

            logger.info(f"Launched plugin: {plugin_id}")
            return OperationResult.ok(f"Plugin {plugin_id} launched successfully")

        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Invalid manifest for plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to launch plugin: invalid manifest: {e}")
        except Exception as e:
            logger.error(f"Failed to launch plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to launch plugin: {e}")

    def _on_context_closed(self, plugin_id: str, handle: SandboxedViewHandle) -> None:
        if self.contexts.get(plugin_id) is handle:
            self.contexts.remove(plugin_id)
            self.bridge.unregister_context(plugin_id)
            logger.info(f"Plugin context closed: {plugin_id}")

    async def close_plugin(self, plugin_id: str) -> OperationResult:
        try:
            handle = self.contexts.remove(plugin_id)
            if handle is not None and not handle.is_destroyed:
                handle.close()
            self.bridge.unregister_context(plugin_id)
            return OperationResult.ok("Plugin closed successfully")
        except Exception as e:
            logger.error(f"Failed to close plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to close plugin: {e}")

    async def send_message_to_plugin(self, plugin_id: str, message: Any) -> OperationResult:
        try:
            if self.contexts.get_live(plugin_id) is None:
                return OperationResult.fail("Plugin window not found or destroyed")

            if not self.bridge.post(plugin_id, message):
                return OperationResult.fail(f"Plugin {plugin_id} is not registered with the bridge")
            return OperationResult.ok(f"Message sent to plugin {plugin_id}")
        except Exception as e:
            logger.error(f"Failed to send message to plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to send message: {e}")

    def get_running_plugins(self) -> List[str]:
        return self.contexts.keys()

    def get_plugin_path(self, plugin_id: str) -> Path:
        return self.plugins_dir / plugin_id

    def list_plugins(self) -> List[Dict[str, Any]]:
        """All installed plugins with their running state."""
        running = set(self.get_running_plugins())
        plugins = []
        for record in self.store.list_records():
            info = record.model_dump(mode="json")
            info["running"] = record.id in running
            plugins.append(info)
        return plugins

    async def cleanup(self) -> None:
        for plugin_id in self.get_running_plugins():
            await self.close_plugin(plugin_id)
        self.contexts.clear()
        logger.info("All plugins closed")
