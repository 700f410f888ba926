"""Deployment registry, rollback execution and incident reporting."""

from .registry import (
    DeploymentRegistry,
    initial_deployments,
)

from .incident import (
    build_incident_report,
    resolution_label,
    MANUAL_ROOT_CAUSE,
    MANUAL_SUMMARY,
)

from .rollback_executor import RollbackExecutor

__all__ = [
    # Registry
    "DeploymentRegistry",
    "initial_deployments",
    # Incident reports
    "build_incident_report",
    "resolution_label",
    "MANUAL_ROOT_CAUSE",
    "MANUAL_SUMMARY",
    # Rollback
    "RollbackExecutor",
]
