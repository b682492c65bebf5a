"""Plugin system for devhost.

Imports are lazy so that lightweight pieces (manifest models, port
heuristics) can be used without pulling in watchdog or aiohttp.
"""

__all__ = [
    "PluginManifest",
    "DevPluginConfig",
    "WebviewPluginConfig",
    "ProjectConfig",
    "PluginRecord",
    "Repository",
    "ContextRepository",
    "WatcherRepository",
    "PluginDevLoader",
    "PluginWebviewManager",
    "WorkspaceScanner",
    "PluginManager",
    "HeadlessSandbox",
    "InMemoryBridge",
    "JsonPluginStore",
    "DirectoryInstaller",
    "HostWindowDirectory",
    "QueuedHostWindow",
]


def __getattr__(name):
    if name in ("PluginManifest", "DevPluginConfig", "WebviewPluginConfig", "ProjectConfig", "PluginRecord"):
        from devhost.plugins import manifest
        return getattr(manifest, name)
    if name in ("Repository", "ContextRepository", "WatcherRepository"):
        from devhost.plugins import registry
        return getattr(registry, name)
    if name == "PluginDevLoader":
        from devhost.plugins.dev_loader import PluginDevLoader
        return PluginDevLoader
    if name == "PluginWebviewManager":
        from devhost.plugins.webview_manager import PluginWebviewManager
        return PluginWebviewManager
    if name == "WorkspaceScanner":
        from devhost.plugins.workspace_scanner import WorkspaceScanner
        return WorkspaceScanner
    if name == "PluginManager":
        from devhost.plugins.manager import PluginManager
        return PluginManager
    if name == "HeadlessSandbox":
        from devhost.plugins.sandbox import HeadlessSandbox
        return HeadlessSandbox
    if name == "InMemoryBridge":
        from devhost.plugins.bridge import InMemoryBridge
        return InMemoryBridge
    if name == "JsonPluginStore":
        from devhost.plugins.store import JsonPluginStore
        return JsonPluginStore
    if name == "DirectoryInstaller":
        from devhost.plugins.installer import DirectoryInstaller
        return DirectoryInstaller
    if name in ("HostWindowDirectory", "QueuedHostWindow"):
        from devhost.plugins import windows
        return getattr(windows, name)
    raise AttributeError(f"module 'devhost.plugins' has no attribute {name!r}")
