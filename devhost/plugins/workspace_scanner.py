"""Workspace scanner - discovers running dev projects and registers them as plugins."""

import asyncio
import json
import logging
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from devhost.constants import (
    BASELINE_PERMISSIONS,
    DESCRIPTOR_FILE,
    NEW_PROJECT_SETTLE_SECONDS,
    RELOAD_DEBOUNCE_SECONDS,
)
from devhost.plugins import ports
from devhost.plugins.dev_loader import PluginDevLoader
from devhost.plugins.manifest import (
    DevelopmentOptions,
    DevPluginConfig,
    PluginManifest,
    ProjectConfig,
    ProjectDescriptor,
    WebviewPluginConfig,
)
from devhost.plugins.registry import Repository, WatcherRepository
from devhost.plugins.watcher import (
    PROJECT_SOURCE_EXTENSIONS,
    Debouncer,
    DirectoryCreatedHandler,
    SourceChangeHandler,
    WatchFactory,
    watch_path,
)
from devhost.plugins.webview_manager import PluginWebviewManager

logger = logging.getLogger(__name__)

DIRECTORY_WATCHER_KEY = "__directory__"


class WorkspaceScanner:
    """Scans a workspace root and registers each runnable project as a plugin.

    A project is a subdirectory with a package.json whose dev (or start)
    script names a port that a dev server is actually listening on, or one
    of the ports just above it.
    """

    def __init__(
        self,
        workspace_root: Union[str, Path],
        dev_loader: PluginDevLoader,
        webview_manager: PluginWebviewManager,
        *,
        projects: Optional[Repository[ProjectConfig]] = None,
        watchers: Optional[WatcherRepository] = None,
        settle_delay: float = NEW_PROJECT_SETTLE_SECONDS,
        reload_delay: float = RELOAD_DEBOUNCE_SECONDS,
        watch_factory: WatchFactory = watch_path,
    ):
        self.workspace_root = Path(workspace_root)
        self.dev_loader = dev_loader
        self.webview_manager = webview_manager
        self.projects = projects if projects is not None else Repository[ProjectConfig]("project")
        self.watchers = watchers if watchers is not None else WatcherRepository()
        self.settle_delay = settle_delay
        self.reload_delay = reload_delay
        self.watch_factory = watch_factory
        self._reloaders: Dict[str, Debouncer] = {}
        self._pending_scans: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: set = set()

    async def scan_and_register_projects(self, root: Optional[Union[str, Path]] = None) -> None:
        """Scan every immediate subdirectory of the workspace root, one at a time."""
        if root is not None:
            self.workspace_root = Path(root)

        logger.info(f"Starting workspace scan: {self.workspace_root}")

        if not self.workspace_root.is_dir():
            logger.error(f"Workspace directory does not exist: {self.workspace_root}")
            return

        try:
            project_dirs = sorted(p for p in self.workspace_root.iterdir() if p.is_dir())
            logger.info(f"Found directories: {[d.name for d in project_dirs]}")

            for project_dir in project_dirs:
                await self.scan_and_register_project(project_dir, project_dir.name)

            self._setup_directory_watcher()

            logger.info(f"Workspace scan completed. Registered projects: {self.projects.keys()}")
        except Exception as e:
            logger.error(f"Error scanning workspace: {e}")

    async def scan_and_register_project(self, project_path: Path, project_name: str) -> Optional[ProjectConfig]:
        """Inspect one project directory and register it if its dev server is up.

        Returns:
            The registered ProjectConfig, or None if the project was skipped
        """
        descriptor_path = project_path / DESCRIPTOR_FILE
        if not descriptor_path.exists():
            logger.debug(f"Skipping {project_name} - no {DESCRIPTOR_FILE} found")
            return None

        try:
            raw = await asyncio.to_thread(descriptor_path.read_text, encoding="utf-8")
            descriptor = ProjectDescriptor.model_validate(json.loads(raw))

            dev_script = descriptor.dev_script
            if not dev_script:
                logger.info(f"Skipping {project_name} - no dev server script found")
                return None

            configured_port = ports.extract_port_from_script(dev_script)
            if not configured_port:
                logger.info(f"Skipping {project_name} - could not determine dev server port")
                return None

            actual_port = await self.find_running_port(configured_port, project_name)
            if not actual_port:
                logger.info(
                    f"Skipping {project_name} - dev server not running on port "
                    f"{configured_port} or nearby ports"
                )
                return None

            development = descriptor.development or DevelopmentOptions()
            config = ProjectConfig(
                id=project_name,
                name=descriptor.name or project_name,
                version=descriptor.version or "1.0.0",
                source_path=project_path,
                descriptor=descriptor.model_copy(update={"development": development}),
                has_dev_server=True,
                dev_server_port=actual_port,
            )

            logger.info(f"Registering project {project_name} with port {actual_port}")
            await self._register_project(config)

            if development.file_watcher:
                self._setup_project_file_watcher(config)

            return config

        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in {descriptor_path}: {e}")
        except ValidationError as e:
            logger.error(f"Invalid descriptor in {descriptor_path}: {e}")
        except Exception as e:
            logger.error(f"Error processing project {project_name}: {e}")

        return None

    async def is_port_in_use(self, port: int) -> bool:
        return await ports.is_port_in_use(port)

    async def find_running_port(self, base_port: int, project_name: str) -> Optional[int]:
        """Find the port a project's dev server actually listens on.

        Dev servers commonly move up when their port is taken, so after the
        base port the next ports.PORT_SEARCH_SPAN ports are probed one by one.
        """
        logger.debug(f"Looking for running port for {project_name}, base port: {base_port}")

        port = await ports.find_running_port(base_port, self.is_port_in_use)
        if port is None:
            logger.info(f"Could not find running port for {project_name}")
        else:
            logger.info(f"Found {project_name} running on port {port}")
        return port

    def _build_manifest(self, config: ProjectConfig) -> PluginManifest:
        descriptor = config.descriptor
        return PluginManifest(
            id=config.id,
            name=config.name,
            version=config.version,
            description=descriptor.description or f"{config.name} - Auto-detected workspace project",
            author=descriptor.author or "Workspace",
            main=descriptor.main or "index.html",
            permissions=list(BASELINE_PERMISSIONS),
        )

    async def _register_project(self, config: ProjectConfig) -> None:
        """Register with the dev loader, and with the webview manager when a port is known."""
        manifest = self._build_manifest(config)

        # The project watcher reloads the dev loader entry too, so the loader
        # does not set up a second watch on the same tree.
        try:
            dev_result = await self.dev_loader.register_dev_plugin(
                DevPluginConfig(
                    id=config.id,
                    name=config.name,
                    version=config.version,
                    source_path=config.source_path,
                    manifest=manifest,
                ),
                watch=False,
            )
            logger.info(f"Dev plugin registration for {config.id}: {dev_result.message}")

            if config.has_dev_server and config.dev_server_port:
                webview_result = await self.webview_manager.register_webview_plugin(
                    WebviewPluginConfig(
                        id=config.id,
                        name=config.name,
                        version=config.version,
                        url=f"http://localhost:{config.dev_server_port}",
                        is_development=True,
                        manifest=manifest,
                    )
                )
                logger.info(f"Webview plugin registration for {config.id}: {webview_result.message}")

                if webview_result.success:
                    launch_result = await self.webview_manager.launch_webview_plugin(config.id)
                    logger.info(f"Auto-launch result for {config.id}: {launch_result.message}")

            self.projects.put(config.id, config)

        except Exception as e:
            logger.error(f"Failed to register project {config.id}: {e}")

    def _setup_project_file_watcher(self, config: ProjectConfig) -> None:
        if self.watchers.has(config.id):
            logger.debug(f"File watcher already exists for {config.id}")
            return

        try:
            loop = asyncio.get_running_loop()
            handler = SourceChangeHandler(
                partial(self._on_project_file_change, config.id),
                PROJECT_SOURCE_EXTENSIONS,
                loop,
            )
            self.watchers.put(config.id, self.watch_factory(config.source_path, handler, True))
            logger.info(f"File watcher setup completed for {config.id}")
        except Exception as e:
            logger.error(f"Failed to setup file watcher for {config.id}: {e}")

    def _on_project_file_change(self, project_id: str, path: Path, event_type: str) -> None:
        logger.info(f"File change detected in {project_id}: {path.name} ({event_type})")
        reloader = self._reloaders.get(project_id)
        if reloader is None:
            reloader = Debouncer(self.reload_delay, partial(self._handle_project_file_change, project_id))
            self._reloaders[project_id] = reloader
        reloader.trigger()

    async def _handle_project_file_change(self, project_id: str) -> None:
        logger.info(f"Reloading {project_id} after source change")

        result = await self.dev_loader.reload_dev_plugin(project_id)
        logger.debug(f"Dev reload result for {project_id}: {result.message}")

        if self.webview_manager.is_webview_plugin_registered(project_id):
            webview_result = await self.webview_manager.reload_webview_plugin(project_id)
            logger.info(f"Webview reload result for {project_id}: {webview_result.message}")

    def _setup_directory_watcher(self) -> None:
        if self.watchers.has(DIRECTORY_WATCHER_KEY):
            return

        try:
            loop = asyncio.get_running_loop()
            handler = DirectoryCreatedHandler(self._on_directory_created, loop)
            self.watchers.put(
                DIRECTORY_WATCHER_KEY,
                self.watch_factory(self.workspace_root, handler, False),
            )
            logger.info("Directory watcher set up for new projects")
        except Exception as e:
            logger.error(f"Failed to setup directory watcher: {e}")

    def _on_directory_created(self, path: Path) -> None:
        logger.info(f"New project directory detected: {path.name}")

        # Give the directory time to be populated before reading it
        previous = self._pending_scans.pop(path.name, None)
        if previous is not None:
            previous.cancel()
        loop = asyncio.get_running_loop()
        self._pending_scans[path.name] = loop.call_later(
            self.settle_delay, self._start_delayed_scan, path
        )

    def _start_delayed_scan(self, path: Path) -> None:
        self._pending_scans.pop(path.name, None)
        task = asyncio.get_running_loop().create_task(
            self.scan_and_register_project(path, path.name)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def get_registered_projects(self) -> List[ProjectConfig]:
        return self.projects.values()

    def cleanup(self) -> None:
        """Close every watcher and forget all projects. Loader contexts stay open."""
        logger.info("Cleaning up workspace watchers")

        for timer in self._pending_scans.values():
            timer.cancel()
        self._pending_scans.clear()

        for reloader in self._reloaders.values():
            reloader.cancel()
        self._reloaders.clear()

        self.watchers.close_all()
        self.projects.clear()
