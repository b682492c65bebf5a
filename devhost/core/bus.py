"""In-process message channel: request/response keyed by command name."""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Union

from devhost.plugins.errors import UnknownCommandError

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[Any, Awaitable[Any]]]


class MessageBus:
    """Routes a command and its payload to the single handler registered for it.

    Transport-independent; app.py exposes it over HTTP.
    """

    def __init__(self):
        self._handlers: Dict[str, Handler] = {}

    def handle(self, command: str, handler: Handler) -> None:
        """Register the handler for a command.

        Args:
            command: Command name, e.g. 'dev-plugin:launch'
            handler: Callable taking the request payload; may be async
        """
        if command in self._handlers:
            logger.warning(f"Handler for '{command}' already registered, overwriting")
        self._handlers[command] = handler
        logger.debug(f"Registered handler: {command}")

    def remove(self, command: str) -> None:
        self._handlers.pop(command, None)

    def commands(self) -> List[str]:
        return sorted(self._handlers)

    def has(self, command: str) -> bool:
        return command in self._handlers

    async def request(self, command: str, payload: Any = None) -> Any:
        """Invoke a command and return its response.

        Raises:
            UnknownCommandError: If no handler is registered for the command
        """
        handler = self._handlers.get(command)
        if handler is None:
            raise UnknownCommandError(command)

        result = handler(payload)
        if inspect.isawaitable(result):
            result = await result
        return result
