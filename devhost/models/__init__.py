from devhost.models.results import InstallResult, OperationResult

__all__ = ["OperationResult", "InstallResult"]
