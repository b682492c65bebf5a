"""Filesystem watching and reload coalescing.

watchdog delivers events on its observer thread; every handler here hands
them to the asyncio loop with call_soon_threadsafe so that registries are
only touched from the loop.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

# Extensions that trigger a dev-loader reload
DEV_LOADER_EXTENSIONS = frozenset({".html", ".js", ".css"})

# Extensions that trigger a workspace project reload
PROJECT_SOURCE_EXTENSIONS = frozenset(
    {".html", ".js", ".ts", ".jsx", ".tsx", ".css", ".scss", ".json"}
)


class SourceChangeHandler(FileSystemEventHandler):
    """Forwards file events with a watched extension to the event loop."""

    def __init__(
        self,
        callback: Callable[[Path, str], None],
        extensions: Iterable[str],
        loop: asyncio.AbstractEventLoop,
    ):
        super().__init__()
        self.callback = callback
        self.extensions = frozenset(ext.lower() for ext in extensions)
        self.loop = loop

    def is_relevant(self, path: str) -> bool:
        return Path(path).suffix.lower() in self.extensions

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in ("opened", "closed", "closed_no_write"):
            return
        path = getattr(event, "dest_path", "") or event.src_path
        if not self.is_relevant(path):
            return
        logger.debug(f"Source {event.event_type}: {path}")
        self.loop.call_soon_threadsafe(self.callback, Path(path), event.event_type)


class DirectoryCreatedHandler(FileSystemEventHandler):
    """Forwards newly created (or moved-in) directories to the event loop."""

    def __init__(self, callback: Callable[[Path], None], loop: asyncio.AbstractEventLoop):
        super().__init__()
        self.callback = callback
        self.loop = loop

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self.loop.call_soon_threadsafe(self.callback, Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self.loop.call_soon_threadsafe(self.callback, Path(event.dest_path))


class WatchHandle:
    """A running watchdog observer for one path."""

    def __init__(self, observer, path: Path):
        self._observer = observer
        self.path = path
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._observer.stop()
        self._observer.join(timeout=5)
        logger.debug(f"Stopped watching {self.path}")


def watch_path(path: Path, handler: FileSystemEventHandler, recursive: bool = True) -> WatchHandle:
    """Start a watchdog observer on `path` and return its handle."""
    observer = Observer()
    observer.schedule(handler, str(path), recursive=recursive)
    observer.start()
    logger.info(f"Watching path: {path} (recursive={recursive})")
    return WatchHandle(observer, Path(path))


WatchFactory = Callable[[Path, FileSystemEventHandler, bool], WatchHandle]


class Debouncer:
    """Reset-on-event timer: the callback runs once after a quiet period.

    Nothing fences the callback against a previous run that is still in
    flight; two reloads may overlap if a load takes longer than `delay`.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[object]],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.delay = delay
        self.callback = callback
        self.loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self) -> None:
        loop = self.loop or asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        loop = self.loop or asyncio.get_running_loop()
        task = loop.create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self.callback()
        except Exception as e:
            logger.error(f"Debounced callback failed: {e}")

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
