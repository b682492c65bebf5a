"""Plugin registries - keyed repositories shared by the loaders and the scanner.

Each component receives its repositories through its constructor so that
ownership is explicit and tests can hand in pre-populated instances. All
access happens on the event loop thread; none of these classes lock.
"""
from __future__ import annotations

import logging
from typing import Dict, Generic, Iterator, List, Optional, Protocol, TypeVar

from devhost.plugins.interfaces import SandboxedViewHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Closable(Protocol):
    def close(self) -> None: ...


class Repository(Generic[T]):
    """Keyed store for plugin configs and handles."""

    def __init__(self, kind: str = "plugin"):
        self.kind = kind
        self._items: Dict[str, T] = {}

    def put(self, key: str, item: T) -> None:
        if key in self._items:
            logger.warning(f"{self.kind} '{key}' already registered, overwriting")
        self._items[key] = item
        logger.debug(f"Stored {self.kind}: {key}")

    def get(self, key: str) -> Optional[T]:
        return self._items.get(key)

    def has(self, key: str) -> bool:
        return key in self._items

    def remove(self, key: str) -> Optional[T]:
        return self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items.keys())

    def values(self) -> List[T]:
        return list(self._items.values())

    def items(self) -> List[tuple[str, T]]:
        return list(self._items.items())

    def count(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)


class ContextRepository(Repository[SandboxedViewHandle]):
    """Running-context map: plugin id -> isolated execution context handle."""

    def __init__(self):
        super().__init__(kind="context")

    def get_live(self, key: str) -> Optional[SandboxedViewHandle]:
        """Return the handle if it is still alive, evicting a destroyed one."""
        handle = self._items.get(key)
        if handle is None:
            return None
        if handle.is_destroyed:
            del self._items[key]
            return None
        return handle


class WatcherRepository(Repository[Closable]):
    """Watcher map: plugin id (or a reserved key) -> filesystem watch handle."""

    def __init__(self):
        super().__init__(kind="watcher")

    def close(self, key: str) -> bool:
        watcher = self._items.pop(key, None)
        if watcher is None:
            return False
        try:
            watcher.close()
        except Exception as e:
            logger.error(f"Error closing watcher for {key}: {e}")
        return True

    def close_all(self) -> None:
        for key in list(self._items):
            self.close(key)
            logger.info(f"Closed watcher for {key}")
        self._items.clear()
