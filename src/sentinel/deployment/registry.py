"""In-memory registry of deployment records.

Records are owned by the registry and keyed by version; insertion order is
kept separately and the active record is tracked by an explicit field, so
switching the live version is one atomic transition instead of a rewrite
of the whole list.
"""
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger

from src.sentinel.core.exceptions import (
    InvalidRollbackTargetError,
    NoActiveDeploymentError,
    NotFoundError,
)
from src.sentinel.models.domain import Deployment, DeploymentStatus
from src.sentinel.monitoring.metrics import ACTIVE_DEPLOYMENT_HEALTH


def initial_deployments(now: Optional[datetime] = None) -> List[Deployment]:
    """Fixture a fresh session starts from, newest first."""
    now = now or datetime.now(timezone.utc)
    return [
        Deployment(
            id="1",
            version="v1.2.0",
            timestamp=now,
            status=DeploymentStatus.ACTIVE,
            author="Jane S.",
            commit_hash="7e12a4b",
            environment="production",
            health_score=98,
        ),
        Deployment(
            id="2",
            version="v1.1.9",
            timestamp=now - timedelta(days=1),
            status=DeploymentStatus.PREVIOUS,
            author="Mark T.",
            commit_hash="f4b2c1d",
            environment="production",
            health_score=96,
        ),
        Deployment(
            id="3",
            version="v1.1.8",
            timestamp=now - timedelta(days=2),
            status=DeploymentStatus.PREVIOUS,
            author="Jane S.",
            commit_hash="a1b2c3d",
            environment="production",
            health_score=94,
        ),
    ]


class DeploymentRegistry:
    """Ordered deployment records with exactly one ACTIVE entry.

    Readers always get copies; the only way to change which record is
    live is ``promote``, which validates everything before touching any
    record.
    """

    def __init__(self, deployments: Optional[Iterable[Deployment]] = None):
        self._lock = threading.Lock()
        self._records: Dict[str, Deployment] = {}
        self._order: List[str] = []
        self._active: Optional[str] = None
        self._load(initial_deployments() if deployments is None else deployments)

    def _load(self, deployments: Iterable[Deployment]) -> None:
        records: Dict[str, Deployment] = {}
        order: List[str] = []
        active = None
        for deployment in deployments:
            if deployment.version in records:
                raise ValueError(f"Duplicate deployment version: {deployment.version}")
            if deployment.status == DeploymentStatus.ACTIVE:
                if active is not None:
                    raise ValueError(
                        f"Multiple active deployments: {active}, {deployment.version}"
                    )
                active = deployment.version
            records[deployment.version] = replace(deployment)
            order.append(deployment.version)

        if records and active is None:
            raise ValueError("Registry requires exactly one active deployment")

        with self._lock:
            self._records = records
            self._order = order
            self._active = active
        self._publish_health()

    def reset(self, deployments: Optional[Iterable[Deployment]] = None) -> None:
        """Restore the initial fixture (or the given records)."""
        self._load(initial_deployments() if deployments is None else deployments)
        logger.info(f"Deployment registry reset: {len(self._order)} records, active={self._active}")

    def list_deployments(self) -> List[Deployment]:
        """All records in insertion order."""
        with self._lock:
            return [replace(self._records[v]) for v in self._order]

    def active_deployment(self) -> Optional[Deployment]:
        with self._lock:
            if self._active is None:
                return None
            return replace(self._records[self._active])

    def previous_deployment(self) -> Optional[Deployment]:
        """Record immediately after the active one in registry order.

        Falls back to the nearest earlier record when the active record is
        the last one.
        """
        with self._lock:
            if self._active is None:
                return None
            position = self._order.index(self._active)
            candidates = self._order[position + 1:] + list(reversed(self._order[:position]))
            if not candidates:
                return None
            return replace(self._records[candidates[0]])

    def get(self, version: str) -> Deployment:
        with self._lock:
            if version not in self._records:
                raise NotFoundError(version)
            return replace(self._records[version])

    def __contains__(self, version: str) -> bool:
        return version in self._records

    def __len__(self) -> int:
        return len(self._order)

    def promote(self, target_version: str) -> Tuple[Deployment, Deployment]:
        """Make ``target_version`` ACTIVE and mark the old active ROLLED_BACK.

        All other records keep their status. Nothing changes unless every
        check passes.

        Args:
            target_version: Version to make live

        Returns:
            Tuple of (demoted record, promoted record)

        Raises:
            NotFoundError: Unknown target version
            NoActiveDeploymentError: No record is currently active
            InvalidRollbackTargetError: Target is already active
        """
        with self._lock:
            if target_version not in self._records:
                raise NotFoundError(target_version)
            if self._active is None:
                raise NoActiveDeploymentError()
            if target_version == self._active:
                raise InvalidRollbackTargetError(target_version)

            demoted = self._records[self._active]
            promoted = self._records[target_version]
            demoted.status = DeploymentStatus.ROLLED_BACK
            promoted.status = DeploymentStatus.ACTIVE
            self._active = target_version
            result = replace(demoted), replace(promoted)

        self._publish_health()
        logger.info(f"Promoted {target_version}; {result[0].version} marked ROLLED_BACK")
        return result

    def _publish_health(self) -> None:
        active = self._records.get(self._active) if self._active else None
        ACTIVE_DEPLOYMENT_HEALTH.set(active.health_score if active else 0)
