"""Health checks registered for control planes and workers."""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

DEFAULT_SYNC_PERIOD = timedelta(seconds=30)

CSI_MIGRATION_KUBERNETES_VERSION = "1.18"

CLOUD_CONTROLLER_MANAGER_NAME = "cloud-controller-manager"
CSI_CONTROLLER_NAME = "csi-driver-controller"
CSI_SNAPSHOT_CONTROLLER_NAME = "csi-snapshot-controller"
CSI_SNAPSHOT_VALIDATION = "csi-snapshot-validation"
MACHINE_CONTROLLER_MANAGER_NAME = "machine-controller-manager"

CONTROL_PLANE_SHOOT_CHART_RESOURCE_NAME = "extension-controlplane-shoot"
STORAGE_CLASSES_CHART_RESOURCE_NAME = "extension-controlplane-storageclasses"
MCM_SHOOT_RESOURCE_NAME = "extension-worker-mcm-shoot"

CONTROL_PLANE_HEALTHY = "ControlPlaneHealthy"
SYSTEM_COMPONENTS_HEALTHY = "SystemComponentsHealthy"
EVERY_NODE_READY = "EveryNodeReady"

SEED_DEPLOYMENT = "seed-deployment"
MANAGED_RESOURCE = "managed-resource"
NODES = "nodes"

_OPERATORS: dict[str, Callable[[tuple, tuple], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
    "==": operator.eq,
    "!=": operator.ne,
}

_VERSION = re.compile(r"^\d+(\.\d+){0,2}$")


@dataclass(frozen=True)
class HealthCheck:
    """A check whose outcome feeds a condition type on the resource."""

    condition_type: str
    kind: str
    target: str = ""
    pre_check: Callable[[str], bool] | None = None


def _parse_version(version: str) -> tuple[int, int, int]:
    text = version.strip().replace("v", "")
    text = re.split(r"[-+]", text, maxsplit=1)[0]
    if not _VERSION.match(text):
        raise ValueError(f"invalid semantic version: {version!r}")
    parts = [int(part) for part in text.split(".")]
    parts.extend([0] * (3 - len(parts)))
    return parts[0], parts[1], parts[2]


def compare_versions(left: str, op: str, right: str) -> bool:
    """Compare two versions, ignoring any pre-release or build suffix."""
    try:
        compare = _OPERATORS[op.strip()]
    except KeyError:
        raise ValueError(f"unsupported version operator: {op!r}") from None
    return compare(_parse_version(left), _parse_version(right))


def csi_enabled(kubernetes_version: str) -> bool:
    """Tell whether CSI is in use; an unreadable version counts as no."""
    try:
        return compare_versions(
            kubernetes_version, ">=", CSI_MIGRATION_KUBERNETES_VERSION
        )
    except ValueError:
        return False


def control_plane_health_checks() -> list[HealthCheck]:
    """Health checks for control plane resources of normal purpose."""
    return [
        HealthCheck(CONTROL_PLANE_HEALTHY, SEED_DEPLOYMENT, CLOUD_CONTROLLER_MANAGER_NAME),
        HealthCheck(CONTROL_PLANE_HEALTHY, SEED_DEPLOYMENT, CSI_CONTROLLER_NAME, csi_enabled),
        HealthCheck(
            CONTROL_PLANE_HEALTHY, SEED_DEPLOYMENT, CSI_SNAPSHOT_CONTROLLER_NAME, csi_enabled
        ),
        HealthCheck(CONTROL_PLANE_HEALTHY, SEED_DEPLOYMENT, CSI_SNAPSHOT_VALIDATION, csi_enabled),
        HealthCheck(
            SYSTEM_COMPONENTS_HEALTHY, MANAGED_RESOURCE, CONTROL_PLANE_SHOOT_CHART_RESOURCE_NAME
        ),
        HealthCheck(
            SYSTEM_COMPONENTS_HEALTHY, MANAGED_RESOURCE, STORAGE_CLASSES_CHART_RESOURCE_NAME
        ),
    ]


def worker_health_checks() -> list[HealthCheck]:
    """Health checks for worker resources."""
    return [
        HealthCheck(SYSTEM_COMPONENTS_HEALTHY, MANAGED_RESOURCE, MCM_SHOOT_RESOURCE_NAME),
        HealthCheck(CONTROL_PLANE_HEALTHY, SEED_DEPLOYMENT, MACHINE_CONTROLLER_MANAGER_NAME),
        HealthCheck(EVERY_NODE_READY, NODES),
    ]