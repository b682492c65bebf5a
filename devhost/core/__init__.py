from devhost.core.bus import MessageBus

__all__ = ["MessageBus"]
