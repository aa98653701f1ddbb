"""Validation of infrastructure configuration against the cloud provider."""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class ErrorType(enum.Enum):
    """Kinds of field validation errors."""

    NOT_FOUND = "FieldValueNotFound"
    INVALID = "FieldValueInvalid"
    INTERNAL = "InternalError"


@dataclass(frozen=True)
class FieldError:
    """A validation error tied to a field path."""

    type: ErrorType
    field: str | None
    bad_value: Any = None
    detail: str = ""


class _ExternalAddressSource(Protocol):
    def get_external_addresses(self, region: str) -> dict[str, list[str] | None]:
        ...


def _provider_config(infra: Any) -> dict:
    raw = infra.provider_config
    if raw is None:
        raise ValueError("provider config is not set on the infrastructure resource")
    config = json.loads(raw) if isinstance(raw, (bytes, str)) else raw
    if not isinstance(config, dict):
        raise ValueError("infrastructure config must be a JSON object")
    return config


class ConfigValidator:
    """Checks an infrastructure's network config against the project's resources.

    The infrastructure is any object with ``namespace``, ``region`` and
    ``provider_config`` (JSON text, bytes or an already decoded mapping).
    """

    def __init__(self, compute_client: _ExternalAddressSource) -> None:
        self.compute_client = compute_client

    def validate(self, infra: Any) -> list[FieldError]:
        """Return the validation errors; an empty list means valid."""
        try:
            config = _provider_config(infra)
        except (ValueError, TypeError) as exc:
            return [FieldError(ErrorType.INTERNAL, None, detail=str(exc))]

        logger.info("Validating infrastructure networks configuration")
        networks = config.get("networks") or {}
        return self._validate_networks(infra.namespace, infra.region, networks, "networks")

    def _validate_networks(
        self, cluster_name: str, region: str, networks: dict, path: str
    ) -> list[FieldError]:
        nat_ip_names = (networks.get("cloudNAT") or {}).get("natIPNames") or []
        if not nat_ip_names:
            return []

        try:
            external_addresses = self.compute_client.get_external_addresses(region)
        except Exception as exc:
            return [
                FieldError(
                    ErrorType.INTERNAL,
                    path,
                    detail=f"could not get external IP addresses: {exc}",
                )
            ]

        cloud_router_name = f"{cluster_name}-cloud-router"
        configured = ((networks.get("vpc") or {}).get("cloudRouter") or {}).get("name")
        if configured:
            cloud_router_name = configured

        errors = []
        for index, nat_ip in enumerate(nat_ip_names):
            name = nat_ip.get("name", "")
            name_path = f"{path}.cloudNAT.natIPNames[{index}].name"
            if name not in external_addresses:
                errors.append(FieldError(ErrorType.NOT_FOUND, name_path, name))
                continue
            users = external_addresses[name] or []
            if len(users) > 1 or (len(users) == 1 and users[0] != cloud_router_name):
                errors.append(
                    FieldError(
                        ErrorType.INVALID,
                        name_path,
                        name,
                        f"external IP address is already in use by {','.join(users)}",
                    )
                )
        return errors