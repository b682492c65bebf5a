"""Plugin system exceptions."""


class PluginError(Exception):
    """Base class for plugin system errors."""


class PluginLoadError(PluginError):
    """Raised when no content source could be loaded into a plugin context."""


class PluginInstallError(PluginError):
    """Raised by installers when a plugin cannot be installed or removed."""


class UnknownCommandError(PluginError, KeyError):
    """Raised when a message-channel command has no registered handler."""

    def __init__(self, command: str):
        super().__init__(command)
        self.command = command

    def __str__(self) -> str:
        return f"No handler registered for command '{self.command}'"
