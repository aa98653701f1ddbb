"""Lookup, creation and removal of the GCP resources behind a bastion host."""

from __future__ import annotations

import abc
import logging
from typing import Any

from provider_gcp.bastion_options import (
    Options,
    firewall_egress_allow_only_resource_name,
    firewall_egress_deny_all_resource_name,
    firewall_ingress_allow_ssh_resource_name,
)
from provider_gcp.firewall_rules import Firewall, patch_cidrs

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


class GoogleAPIError(Exception):
    """An error answered by the Google API, carrying its HTTP status code."""

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(f"googleapi: Error {code}: {message}")
        self.code = code
        self.message = message


class RequeueAfterError(Exception):
    """Signals that the work should be retried after a delay in seconds."""

    def __init__(self, cause: BaseException | str, requeue_after: float) -> None:
        super().__init__(str(cause))
        self.cause = cause
        self.requeue_after = requeue_after


class ComputeClient(abc.ABC):
    """The compute operations a bastion needs."""

    @abc.abstractmethod
    def get_instance(self, project_id: str, zone: str, name: str) -> Any:
        """Return the named instance; raise GoogleAPIError when absent."""

    @abc.abstractmethod
    def insert_instance(self, project_id: str, zone: str, instance: Any) -> None:
        """Create an instance."""

    @abc.abstractmethod
    def delete_instance(self, project_id: str, zone: str, name: str) -> None:
        """Delete the named instance."""

    @abc.abstractmethod
    def get_firewall(self, project_id: str, name: str) -> Firewall:
        """Return the named firewall rule; raise GoogleAPIError when absent."""

    @abc.abstractmethod
    def insert_firewall(self, project_id: str, firewall: Firewall) -> None:
        """Create a firewall rule."""

    @abc.abstractmethod
    def delete_firewall(self, project_id: str, name: str) -> None:
        """Delete the named firewall rule."""

    @abc.abstractmethod
    def patch_firewall(self, project_id: str, name: str, firewall: Firewall) -> None:
        """Patch the named firewall rule with the given fields."""

    @abc.abstractmethod
    def get_disk(self, project_id: str, zone: str, name: str) -> Any:
        """Return the named disk; raise GoogleAPIError when absent."""

    @abc.abstractmethod
    def insert_disk(self, project_id: str, zone: str, disk: Any) -> None:
        """Create a disk."""

    @abc.abstractmethod
    def delete_disk(self, project_id: str, zone: str, name: str) -> None:
        """Delete the named disk."""

    @abc.abstractmethod
    def get_region_zones(self, project_id: str, region: str) -> list[str]:
        """Return the zone URLs of a region."""


def _is_status(exc: GoogleAPIError, code: int) -> bool:
    return exc.code == code


def get_bastion_instance(client: ComputeClient, opt: Options) -> Any:
    """Return the bastion instance, or None if it does not exist."""
    try:
        return client.get_instance(opt.project_id, opt.zone, opt.bastion_instance_name)
    except GoogleAPIError as exc:
        if _is_status(exc, HTTP_NOT_FOUND):
            return None
        raise


def get_firewall_rule(client: ComputeClient, opt: Options, name: str) -> Firewall | None:
    """Return the named firewall rule, or None if it does not exist."""
    try:
        return client.get_firewall(opt.project_id, name)
    except GoogleAPIError as exc:
        if _is_status(exc, HTTP_NOT_FOUND):
            return None
        raise


def create_firewall_rule_if_not_exist(
    client: ComputeClient, opt: Options, rule: Firewall
) -> None:
    """Create the rule; an existing rule of the same name is left alone."""
    try:
        client.insert_firewall(opt.project_id, rule)
    except GoogleAPIError as exc:
        if _is_status(exc, HTTP_CONFLICT):
            return
        raise RuntimeError(f"could not create firewall rule {rule.name}: {exc}") from exc
    logger.info("Firewall created: %s", rule.name)


def delete_firewall_rule(client: ComputeClient, opt: Options, name: str) -> None:
    """Delete the named rule; a missing rule counts as deleted."""
    try:
        client.delete_firewall(opt.project_id, name)
    except GoogleAPIError as exc:
        if _is_status(exc, HTTP_NOT_FOUND):
            return
        raise RuntimeError(f"failed to delete firewall rule {name}: {exc}") from exc
    logger.info("Firewall rule removed: %s", name)


def patch_firewall_rule(
    client: ComputeClient, opt: Options, name: str, cidrs: list[str]
) -> None:
    """Replace the source ranges of the named rule."""
    client.patch_firewall(opt.project_id, name, patch_cidrs(cidrs))


def get_disk(client: ComputeClient, opt: Options) -> Any:
    """Return the bastion's disk, or None if it does not exist."""
    try:
        return client.get_disk(opt.project_id, opt.zone, opt.disk_name)
    except GoogleAPIError as exc:
        if _is_status(exc, HTTP_NOT_FOUND):
            return None
        raise


def get_default_zone(client: ComputeClient, opt: Options, region: str) -> str:
    """Return the name of the first zone of the region."""
    zones = client.get_region_zones(opt.project_id, region)
    if zones:
        return zones[0].rsplit("/", 1)[-1]
    raise ValueError(f"no available zones in GCP region: {region}")


def remove_firewall_rules(client: ComputeClient, opt: Options) -> None:
    """Delete the three firewall rules that belong to the bastion."""
    base = opt.bastion_instance_name
    for name in (
        firewall_ingress_allow_ssh_resource_name(base),
        firewall_egress_deny_all_resource_name(base),
        firewall_egress_allow_only_resource_name(base),
    ):
        delete_firewall_rule(client, opt, name)


def remove_bastion_instance(client: ComputeClient, opt: Options) -> None:
    """Delete the bastion instance if it exists."""
    if get_bastion_instance(client, opt) is None:
        return
    try:
        client.delete_instance(opt.project_id, opt.zone, opt.bastion_instance_name)
    except GoogleAPIError as exc:
        raise RuntimeError(f"failed to terminate bastion instance: {exc}") from exc
    logger.info("Instance removed: %s", opt.bastion_instance_name)


def is_instance_deleted(client: ComputeClient, opt: Options) -> bool:
    """Tell whether the bastion instance is gone."""
    return get_bastion_instance(client, opt) is None


def remove_disk(client: ComputeClient, opt: Options) -> None:
    """Delete the bastion's disk if it exists."""
    if get_disk(client, opt) is None:
        return
    try:
        client.delete_disk(opt.project_id, opt.zone, opt.disk_name)
    except GoogleAPIError as exc:
        raise RuntimeError(f"failed to delete disk: {exc}") from exc
    logger.info("Disk removed: %s", opt.disk_name)