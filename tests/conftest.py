"""Shared fakes for the plugin lifecycle tests."""

import json
from pathlib import Path
from typing import Any, Callable, List, Tuple

import pytest

from devhost.plugins.bridge import InMemoryBridge
from devhost.plugins.interfaces import ContextOptions, SandboxedViewHandle, SandboxService
from devhost.plugins.windows import HostWindowDirectory, QueuedHostWindow

HOST_URL = "localhost:5174"


class FakeHandle(SandboxedViewHandle):
    """Records every call; loads fail for sources starting with a failing prefix."""

    def __init__(self, plugin_id: str, options: ContextOptions, fail_prefixes=("http://",)):
        self.plugin_id = plugin_id
        self.options = options
        self.fail_prefixes = tuple(fail_prefixes)
        self.loaded: List[str] = []
        self.messages: List[Tuple[str, Any]] = []
        self.focus_calls = 0
        self.close_calls = 0
        self._destroyed = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    async def load(self, source: str) -> None:
        self.loaded.append(source)
        if self.fail_prefixes and source.startswith(self.fail_prefixes):
            raise ConnectionError(f"connection refused: {source}")

    def focus(self) -> None:
        self.focus_calls += 1

    def send(self, channel: str, payload: Any) -> None:
        self.messages.append((channel, payload))

    def on_closed(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def close(self) -> None:
        self.close_calls += 1
        if self._destroyed:
            return
        self._destroyed = True
        for callback in self._callbacks:
            callback()


class FakeSandbox(SandboxService):
    def __init__(self, fail_prefixes=("http://",)):
        self.fail_prefixes = fail_prefixes
        self.handles: List[FakeHandle] = []

    async def create_isolated_context(self, plugin_id, manifest, options):
        handle = FakeHandle(plugin_id, options, self.fail_prefixes)
        self.handles.append(handle)
        return handle


class FakeWatch:
    def __init__(self, path: Path, handler, recursive: bool):
        self.path = path
        self.handler = handler
        self.recursive = recursive
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1


class FakeWatchFactory:
    """Stands in for watch_path; tests drive the recorded handlers directly."""

    def __init__(self):
        self.watches: List[FakeWatch] = []

    def __call__(self, path, handler, recursive=True):
        watch = FakeWatch(Path(path), handler, recursive)
        self.watches.append(watch)
        return watch

    def for_path(self, path: Path) -> FakeWatch:
        return next(w for w in self.watches if w.path == Path(path))


def write_project(root: Path, name: str, scripts=None, **fields) -> Path:
    """Create a workspace project directory with a package.json."""
    project = root / name
    project.mkdir(parents=True, exist_ok=True)
    descriptor = {"name": name, "version": "0.1.0", "scripts": scripts or {}}
    descriptor.update(fields)
    (project / "package.json").write_text(json.dumps(descriptor), encoding="utf-8")
    (project / "index.html").write_text(f"<h1>{name}</h1>", encoding="utf-8")
    return project


@pytest.fixture
def sandbox():
    return FakeSandbox()


@pytest.fixture
def bridge():
    return InMemoryBridge()


@pytest.fixture
def watch_factory():
    return FakeWatchFactory()


@pytest.fixture
def host_window():
    return QueuedHostWindow(f"http://{HOST_URL}/")


@pytest.fixture
def windows(host_window):
    directory = HostWindowDirectory()
    directory.add(host_window)
    return directory
