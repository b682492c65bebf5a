"""Uniform operation outcomes returned by every public plugin operation."""

from typing import Optional

from pydantic import BaseModel, Field

from devhost.plugins.manifest import PluginRecord


class OperationResult(BaseModel):
    """Outcome of a plugin operation: expected failures are reported, not raised."""

    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Human-readable outcome")

    @classmethod
    def ok(cls, message: str) -> "OperationResult":
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, message: str) -> "OperationResult":
        return cls(success=False, message=message)


class InstallResult(OperationResult):
    """Install outcome carrying the persisted record on success."""

    plugin: Optional[PluginRecord] = None
