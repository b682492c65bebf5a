"""Dev-mode plugin loader - file-backed plugins with hot reload."""

import asyncio
import logging
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from devhost.constants import RELOAD_DEBOUNCE_SECONDS
from devhost.core.bus import MessageBus
from devhost.models.results import OperationResult
from devhost.plugins.errors import PluginLoadError
from devhost.plugins.interfaces import (
    ContextOptions,
    MessageBridge,
    SandboxedViewHandle,
    SandboxService,
)
from devhost.plugins.manifest import DevPluginConfig
from devhost.plugins.ports import dev_server_port_for
from devhost.plugins.registry import ContextRepository, Repository, WatcherRepository
from devhost.plugins.watcher import (
    DEV_LOADER_EXTENSIONS,
    Debouncer,
    SourceChangeHandler,
    WatchFactory,
    watch_path,
)

logger = logging.getLogger(__name__)


class PluginDevLoader:
    """Owns file-backed plugins: registration, isolated contexts and hot reload.

    Content is loaded from the plugin's local dev server when one answers,
    otherwise from the entry file in its source directory.
    """

    def __init__(
        self,
        bridge: MessageBridge,
        sandbox: SandboxService,
        *,
        plugins: Optional[Repository[DevPluginConfig]] = None,
        contexts: Optional[ContextRepository] = None,
        watchers: Optional[WatcherRepository] = None,
        is_development: bool = False,
        reload_delay: float = RELOAD_DEBOUNCE_SECONDS,
        preload_path: Optional[str] = None,
        watch_factory: WatchFactory = watch_path,
    ):
        self.bridge = bridge
        self.sandbox = sandbox
        self.plugins = plugins if plugins is not None else Repository[DevPluginConfig]("dev plugin")
        self.contexts = contexts if contexts is not None else ContextRepository()
        self.watchers = watchers if watchers is not None else WatcherRepository()
        self.is_development = is_development
        self.reload_delay = reload_delay
        self.preload_path = preload_path
        self.watch_factory = watch_factory
        self._reloaders: Dict[str, Debouncer] = {}

    def register_handlers(self, bus: MessageBus) -> None:
        """Expose the dev-plugin commands on the message channel."""
        bus.handle("dev-plugin:register", self._handle_register)
        bus.handle("dev-plugin:launch", self.launch_dev_plugin)
        bus.handle("dev-plugin:close", self.close_dev_plugin)
        bus.handle("dev-plugin:list", lambda _payload: self.list_dev_plugins())
        bus.handle("dev-plugin:reload", self.reload_dev_plugin)

    async def _handle_register(self, payload: Any) -> OperationResult:
        try:
            config = DevPluginConfig.model_validate(payload)
        except ValidationError as e:
            return OperationResult.fail(f"Invalid dev plugin config: {e}")
        return await self.register_dev_plugin(config)

    async def register_dev_plugin(self, config: DevPluginConfig, *, watch: bool = True) -> OperationResult:
        """Register a file-backed plugin.

        Args:
            config: Plugin config; its source path must exist
            watch: Watch the source tree in development mode. Callers that
                watch the tree themselves pass False.

        Returns:
            OperationResult
        """
        try:
            logger.info(f"Registering dev plugin: {config.id}")

            if not config.source_path.exists():
                return OperationResult.fail(
                    f"Development path does not exist: {config.source_path}"
                )

            self.plugins.put(config.id, config)

            if self.is_development and watch:
                self._setup_file_watcher(config.id, config.source_path)

            return OperationResult.ok(f"Development plugin {config.id} registered successfully")

        except Exception as e:
            logger.error(f"Failed to register dev plugin {config.id}: {e}")
            return OperationResult.fail(f"Failed to register dev plugin: {e}")

    async def launch_dev_plugin(self, plugin_id: str) -> OperationResult:
        """Open the plugin in a new isolated context, or focus the open one."""
        try:
            config = self.plugins.get(plugin_id)
            if not config:
                return OperationResult.fail(f"Development plugin {plugin_id} not found")

            existing = self.contexts.get_live(plugin_id)
            if existing is not None:
                existing.focus()
                return OperationResult.ok(f"Development plugin {plugin_id} is already running")

            handle = await self._create_dev_context(config)
            self.bridge.register_context(plugin_id, handle)

            try:
                await self.load_dev_plugin(handle, config)
            except Exception:
                self.bridge.unregister_context(plugin_id)
                handle.close()
                raise

            self.contexts.put(plugin_id, handle)
            handle.on_closed(partial(self._on_context_closed, plugin_id, handle))

            logger.info(f"Launched dev plugin: {plugin_id}")
            return OperationResult.ok(f"Development plugin {plugin_id} launched successfully")

        except Exception as e:
            logger.error(f"Failed to launch dev plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to launch dev plugin: {e}")

    async def close_dev_plugin(self, plugin_id: str) -> OperationResult:
        try:
            handle = self.contexts.get_live(plugin_id)
            if handle is None:
                return OperationResult.fail(f"Development plugin {plugin_id} is not running")

            handle.close()
            self.contexts.remove(plugin_id)
            self.bridge.unregister_context(plugin_id)

            logger.info(f"Closed dev plugin: {plugin_id}")
            return OperationResult.ok(f"Development plugin {plugin_id} closed successfully")

        except Exception as e:
            logger.error(f"Failed to close dev plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to close dev plugin: {e}")

    async def reload_dev_plugin(self, plugin_id: str) -> OperationResult:
        """Load the plugin's content again into its open context."""
        try:
            config = self.plugins.get(plugin_id)
            if not config:
                return OperationResult.fail(f"Development plugin {plugin_id} not found")

            handle = self.contexts.get_live(plugin_id)
            if handle is None:
                return OperationResult.fail(f"Development plugin {plugin_id} is not running")

            # If the context is closed while this load is in flight the load
            # is not aborted; the handle decides what to do with late content.
            await self.load_dev_plugin(handle, config)

            logger.info(f"Reloaded dev plugin: {plugin_id}")
            return OperationResult.ok(f"Development plugin {plugin_id} reloaded successfully")

        except Exception as e:
            logger.error(f"Failed to reload dev plugin {plugin_id}: {e}")
            return OperationResult.fail(f"Failed to reload dev plugin: {e}")

    async def load_dev_plugin(self, handle: SandboxedViewHandle, config: DevPluginConfig) -> None:
        """Load from the plugin's dev server, falling back to its entry file.

        Raises:
            PluginLoadError: If neither source is available
        """
        dev_server_url = f"http://localhost:{dev_server_port_for(config.id)}"
        entry_path = config.source_path / config.manifest.entry_file

        try:
            logger.debug(f"Loading {config.id} from dev server {dev_server_url}")
            await handle.load(dev_server_url)
            logger.info(f"Loaded {config.id} from dev server")
            return
        except Exception as e:
            logger.info(f"Dev server unavailable for {config.id}: {e}")

        if not entry_path.exists():
            raise PluginLoadError(f"no content source available for plugin {config.id}")

        logger.debug(f"Loading {config.id} from file {entry_path}")
        await handle.load(entry_path.resolve().as_uri())
        logger.info(f"Loaded {config.id} from file")

    async def _create_dev_context(self, config: DevPluginConfig) -> SandboxedViewHandle:
        options = ContextOptions(
            title=f"{config.name} (Dev Mode)",
            node_integration=False,
            context_isolation=True,
            sandbox=True,
            preload=self.preload_path,
            additional_arguments=[f"--plugin-id={config.id}"],
            permissions=list(config.manifest.permissions),
            dev_tools=self.is_development,
        )
        return await self.sandbox.create_isolated_context(config.id, config.manifest, options)

    def _on_context_closed(self, plugin_id: str, handle: SandboxedViewHandle) -> None:
        # A relaunch may already have replaced this handle
        if self.contexts.get(plugin_id) is handle:
            self.contexts.remove(plugin_id)
            self.bridge.unregister_context(plugin_id)

    def _setup_file_watcher(self, plugin_id: str, source_path: Path) -> None:
        """Watch the source tree; failures leave the plugin without hot reload."""
        try:
            self.watchers.close(plugin_id)

            loop = asyncio.get_running_loop()
            handler = SourceChangeHandler(
                partial(self._on_source_change, plugin_id),
                DEV_LOADER_EXTENSIONS,
                loop,
            )
            watcher = self.watch_factory(source_path, handler, True)
            self.watchers.put(plugin_id, watcher)
            logger.info(f"File watcher set up for plugin: {plugin_id}")

        except Exception as e:
            logger.error(f"Failed to setup file watcher for plugin {plugin_id}: {e}")

    def _on_source_change(self, plugin_id: str, path: Path, event_type: str) -> None:
        logger.info(f"File changed: {path.name} in plugin {plugin_id} ({event_type})")
        reloader = self._reloaders.get(plugin_id)
        if reloader is None:
            reloader = Debouncer(self.reload_delay, partial(self._reload_from_watcher, plugin_id))
            self._reloaders[plugin_id] = reloader
        reloader.trigger()

    async def _reload_from_watcher(self, plugin_id: str) -> None:
        result = await self.reload_dev_plugin(plugin_id)
        if not result.success:
            logger.debug(f"Hot reload skipped for {plugin_id}: {result.message}")

    def cleanup(self) -> None:
        """Close every watcher and context and forget all plugins. Shutdown only."""
        for reloader in self._reloaders.values():
            reloader.cancel()
        self._reloaders.clear()

        self.watchers.close_all()

        for plugin_id, handle in self.contexts.items():
            if not handle.is_destroyed:
                handle.close()
            self.bridge.unregister_context(plugin_id)
        self.contexts.clear()

        self.plugins.clear()
        logger.info("Dev plugin loader cleaned up")

    def list_dev_plugins(self) -> List[Dict[str, Any]]:
        return [p.model_dump(mode="json", by_alias=True) for p in self.plugins.values()]

    def get_running_dev_plugins(self) -> List[str]:
        return self.contexts.keys()

    def is_dev_plugin_running(self, plugin_id: str) -> bool:
        return self.contexts.has(plugin_id)
