"""Error taxonomy for the deployment session.

Registry and executor errors are terminal to the requested operation and
reach the caller. ``AnalysisUnavailableError`` never leaves the analysis
trigger: it is converted to the fallback assessment there.
"""
from typing import Optional


class SentinelError(Exception):
    """Base class for all service errors."""


class DeploymentError(SentinelError):
    """Base class for registry and rollback failures."""


class NotFoundError(DeploymentError):
    """Requested version is not in the registry."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Deployment version not found: {version}")


class NoActiveDeploymentError(DeploymentError):
    """Registry holds no ACTIVE deployment."""

    def __init__(self):
        super().__init__("No active deployment in registry")


class InvalidRollbackTargetError(DeploymentError):
    """Rollback target is already the active deployment."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Version {version} is already active")


class RollbackInProgressError(DeploymentError):
    """A rollback is already executing."""

    def __init__(self, in_flight_target: Optional[str] = None):
        self.in_flight_target = in_flight_target
        detail = f" (target {in_flight_target})" if in_flight_target else ""
        super().__init__(f"Rollback already in progress{detail}")


class AnalysisInProgressError(SentinelError):
    """A health analysis is already in flight."""

    def __init__(self):
        super().__init__("Health analysis already in progress")


class AnalysisUnavailableError(SentinelError):
    """Health analyzer backend failed, timed out or returned garbage."""
