"""Dependency injection container for the plugin host."""

import logging

from devhost.constants import (
    HOST_WINDOW_URL,
    INSTALLED_PLUGINS_DIR,
    IS_DEVELOPMENT,
    PLUGIN_CATALOG_DIR,
    PLUGIN_STORE_FILE,
    WORKSPACE_DIR,
)
from devhost.core.bus import MessageBus
from devhost.plugins.bridge import InMemoryBridge
from devhost.plugins.dev_loader import PluginDevLoader
from devhost.plugins.installer import DirectoryInstaller
from devhost.plugins.manager import PluginManager
from devhost.plugins.sandbox import HeadlessSandbox
from devhost.plugins.store import JsonPluginStore
from devhost.plugins.webview_manager import PluginWebviewManager
from devhost.plugins.windows import HostWindowDirectory, QueuedHostWindow
from devhost.plugins.workspace_scanner import WorkspaceScanner

logger = logging.getLogger(__name__)

# ============================================================================
# Global service instances (singletons, exposed via functions for easier testing/mocking)
# ============================================================================

_bus_instance = None
_bridge_instance = None
_sandbox_instance = None
_windows_instance = None
_main_window_instance = None
_store_instance = None
_dev_loader_instance = None
_webview_manager_instance = None
_workspace_scanner_instance = None
_plugin_manager_instance = None


def get_message_bus() -> MessageBus:
    """Get the message bus (singleton), with every component's commands wired."""
    global _bus_instance
    if _bus_instance is None:
        _bus_instance = MessageBus()
        get_dev_loader().register_handlers(_bus_instance)
        get_webview_manager().register_handlers(_bus_instance)
        get_plugin_manager().register_handlers(_bus_instance)
        logger.info(f"Created MessageBus with commands: {_bus_instance.commands()}")
    return _bus_instance


def get_bridge() -> InMemoryBridge:
    global _bridge_instance
    if _bridge_instance is None:
        _bridge_instance = InMemoryBridge()
    return _bridge_instance


def get_sandbox() -> HeadlessSandbox:
    global _sandbox_instance
    if _sandbox_instance is None:
        _sandbox_instance = HeadlessSandbox()
    return _sandbox_instance


def get_host_windows() -> HostWindowDirectory:
    global _windows_instance
    if _windows_instance is None:
        _windows_instance = HostWindowDirectory()
    return _windows_instance


def get_main_window() -> QueuedHostWindow:
    """Get the host window that renders webview plugins (singleton)."""
    global _main_window_instance
    if _main_window_instance is None:
        _main_window_instance = QueuedHostWindow(f"http://{HOST_WINDOW_URL}/")
        get_host_windows().add(_main_window_instance)
        logger.info(f"Created host window at {_main_window_instance.url}")
    return _main_window_instance


def get_plugin_store() -> JsonPluginStore:
    global _store_instance
    if _store_instance is None:
        _store_instance = JsonPluginStore(PLUGIN_STORE_FILE)
        logger.info(f"Created JsonPluginStore at {PLUGIN_STORE_FILE}")
    return _store_instance


def get_dev_loader() -> PluginDevLoader:
    global _dev_loader_instance
    if _dev_loader_instance is None:
        _dev_loader_instance = PluginDevLoader(
            bridge=get_bridge(),
            sandbox=get_sandbox(),
            is_development=IS_DEVELOPMENT,
        )
        logger.info("Created PluginDevLoader instance")
    return _dev_loader_instance


def get_webview_manager() -> PluginWebviewManager:
    global _webview_manager_instance
    if _webview_manager_instance is None:
        _webview_manager_instance = PluginWebviewManager(
            get_host_windows(),
            host_url=HOST_WINDOW_URL,
        )
        logger.info("Created PluginWebviewManager instance")
    return _webview_manager_instance


def get_workspace_scanner() -> WorkspaceScanner:
    global _workspace_scanner_instance
    if _workspace_scanner_instance is None:
        _workspace_scanner_instance = WorkspaceScanner(
            WORKSPACE_DIR,
            get_dev_loader(),
            get_webview_manager(),
        )
        logger.info(f"Created WorkspaceScanner for {WORKSPACE_DIR}")
    return _workspace_scanner_instance


def get_plugin_manager() -> PluginManager:
    global _plugin_manager_instance
    if _plugin_manager_instance is None:
        store = get_plugin_store()
        _plugin_manager_instance = PluginManager(
            store=store,
            installer=DirectoryInstaller(store, INSTALLED_PLUGINS_DIR),
            sandbox=get_sandbox(),
            bridge=get_bridge(),
            plugins_dir=INSTALLED_PLUGINS_DIR,
            catalog_dir=PLUGIN_CATALOG_DIR,
        )
        logger.info("Created PluginManager instance")
    return _plugin_manager_instance


# Test utility function (for unit testing - resets all singletons)
def reset_services():
    """Reset all service instances (only for testing)."""
    global _bus_instance, _bridge_instance, _sandbox_instance, _windows_instance
    global _main_window_instance, _store_instance, _dev_loader_instance
    global _webview_manager_instance, _workspace_scanner_instance, _plugin_manager_instance

    _bus_instance = None
    _bridge_instance = None
    _sandbox_instance = None
    _windows_instance = None
    _main_window_instance = None
    _store_instance = None
    _dev_loader_instance = None
    _webview_manager_instance = None
    _workspace_scanner_instance = None
    _plugin_manager_instance = None
    logger.info("Reset all service instances")
