"""Collaborator interfaces consumed by the plugin lifecycle components.

The isolation primitive, message bridge, persistence and installer live
outside the orchestrator; these base classes describe what it calls.
Concrete headless implementations ship in sandbox.py, bridge.py, store.py,
installer.py and windows.py.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field

from devhost.constants import PLUGIN_MESSAGE_CHANNEL

if TYPE_CHECKING:
    from devhost.plugins.manifest import PluginManifest, PluginRecord


class ContextOptions(BaseModel):
    """Capability profile for a new isolated execution context."""

    title: str = ""
    width: int = 400
    height: int = 600
    resizable: bool = True
    node_integration: bool = False
    context_isolation: bool = True
    sandbox: bool = True
    preload: Optional[str] = None
    additional_arguments: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)
    dev_tools: bool = False


class SandboxedViewHandle(ABC):
    """An isolated GUI execution context rendering one plugin."""

    @abstractmethod
    async def load(self, source: str) -> None:
        """Load content from a URL. Raises if the source cannot be loaded."""
        ...

    @abstractmethod
    def focus(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the context. Idempotent; closed callbacks fire once."""
        ...

    @abstractmethod
    def on_closed(self, callback: Callable[[], None]) -> None:
        ...

    @abstractmethod
    def send(self, channel: str, payload: Any) -> None:
        """Deliver a message into the context."""
        ...

    @property
    @abstractmethod
    def is_destroyed(self) -> bool:
        ...


class SandboxService(ABC):
    """Creates restricted execution contexts."""

    @abstractmethod
    async def create_isolated_context(
        self,
        plugin_id: str,
        manifest: PluginManifest,
        options: ContextOptions,
    ) -> SandboxedViewHandle:
        ...


class MessageBridge(ABC):
    """Routes messages between the host and plugin contexts."""

    @abstractmethod
    def register_context(self, plugin_id: str, handle: SandboxedViewHandle) -> None:
        ...

    @abstractmethod
    def unregister_context(self, plugin_id: str) -> None:
        """Forget a context. Unknown ids are ignored."""
        ...

    @abstractmethod
    def post(self, plugin_id: str, payload: Any, channel: str = PLUGIN_MESSAGE_CHANNEL) -> bool:
        """Deliver a payload to a registered context. False when none is live."""
        ...


class PluginStore(ABC):
    """Persistence for installed plugin records."""

    @abstractmethod
    def get_plugin_record(self, plugin_id: str) -> Optional[PluginRecord]:
        ...

    @abstractmethod
    def set_enabled(self, plugin_id: str, enabled: bool) -> Optional[PluginRecord]:
        """Persist the enabled flag. Returns None for unknown ids."""
        ...

    @abstractmethod
    def save_record(self, record: PluginRecord) -> None:
        ...

    @abstractmethod
    def delete_record(self, plugin_id: str) -> bool:
        ...

    @abstractmethod
    def list_records(self) -> List[PluginRecord]:
        ...


class PluginInstaller(ABC):
    """Places plugin bundles on disk and records them."""

    @abstractmethod
    async def install(self, source_path: Path) -> PluginRecord:
        """Install from a directory. Raises PluginInstallError on failure."""
        ...

    @abstractmethod
    async def uninstall(self, plugin_id: str) -> None:
        ...


class HostWindow(ABC):
    """A window able to render webview plugins on request."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Address currently loaded in the window."""
        ...

    @abstractmethod
    def send(self, channel: str, payload: Any) -> None:
        ...
