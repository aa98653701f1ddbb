"""Reconciliation and deletion of bastion hosts on GCP."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from provider_gcp.bastion_options import (
    Bastion,
    Cluster,
    Options,
    determine_options,
    ingress_permissions,
    marshal_provider_status,
)
from provider_gcp.bastion_resources import (
    ComputeClient,
    GoogleAPIError,
    RequeueAfterError,
    create_firewall_rule_if_not_exist,
    get_bastion_instance,
    get_default_zone,
    get_disk,
    get_firewall_rule,
    is_instance_deleted,
    patch_firewall_rule,
    remove_bastion_instance,
    remove_disk,
    remove_firewall_rules,
)
from provider_gcp.firewall_rules import (
    egress_allow_only,
    egress_deny_all,
    ingress_allow_ssh,
)

logger = logging.getLogger(__name__)

PURPOSE_NODES = "nodes"
INSTANCE_RUNNING = "RUNNING"
REQUEUE_NOT_READY = 5.0
REQUEUE_STILL_DELETING = 30.0


@dataclass
class LoadBalancerIngress:
    """An endpoint reachable by IP address, host name or both."""

    ip: str = ""
    hostname: str = ""


@dataclass
class BastionEndpoints:
    """The private and public endpoints of a bastion host."""

    private: LoadBalancerIngress | None = None
    public: LoadBalancerIngress | None = None

    def ready(self) -> bool:
        """True when both endpoints have an IP or a host name."""
        return ingress_ready(self.private) and ingress_ready(self.public)


@dataclass
class AccessConfig:
    """External access configuration of a network interface."""

    name: str = ""
    type: str = ""
    nat_ip: str = ""


@dataclass
class NetworkInterface:
    """A network interface of a compute instance."""

    network: str = ""
    subnetwork: str = ""
    network_ip: str = ""
    access_configs: list[AccessConfig] = field(default_factory=list)


@dataclass
class AttachedDisk:
    """A disk attached to a compute instance."""

    source: str = ""
    auto_delete: bool = False
    boot: bool = False
    disk_size_gb: int = 0
    mode: str = ""


@dataclass
class Instance:
    """A compute instance."""

    name: str = ""
    zone: str = ""
    description: str = ""
    machine_type: str = ""
    status: str = ""
    deletion_protection: bool = False
    disks: list[AttachedDisk] = field(default_factory=list)
    network_interfaces: list[NetworkInterface] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class Disk:
    """A persistent disk."""

    name: str = ""
    zone: str = ""
    description: str = ""
    size_gb: int = 0
    source_image: str = ""


def ingress_ready(ingress: LoadBalancerIngress | None) -> bool:
    """True if the ingress has an IP, a host name or both."""
    return ingress is not None and bool(ingress.hostname or ingress.ip)


def address_to_ingress(
    dns_name: str | None, ip_address: str | None
) -> LoadBalancerIngress | None:
    """Build an ingress from a host name and an IP; None if both are None."""
    if dns_name is None and ip_address is None:
        return None
    return LoadBalancerIngress(ip=ip_address or "", hostname=dns_name or "")


def get_instance_endpoints(instance: Instance | None) -> BastionEndpoints:
    """Read the private and public endpoints of a running instance."""
    if instance is None:
        raise ValueError("compute instance can't be nil")
    if instance.status != INSTANCE_RUNNING:
        raise ValueError(f"instance not running, status: {instance.status}")
    if not instance.network_interfaces:
        raise ValueError(f"no network interfaces found: {instance.name}")
    interface = instance.network_interfaces[0]
    if not interface.access_configs:
        raise ValueError(
            f"no access config found for network interface: {instance.name}"
        )
    # GCP assigns no public DNS name, so the public endpoint is the NAT IP only.
    return BastionEndpoints(
        private=address_to_ingress(instance.name, interface.network_ip),
        public=address_to_ingress(None, interface.access_configs[0].nat_ip),
    )


def get_net_and_subnet(infrastructure_status: Any) -> tuple[str, str]:
    """Return the VPC name and the nodes subnet from an infrastructure status."""
    if infrastructure_status is None:
        raise ValueError("infrastructure provider status must be not empty for worker")
    status = infrastructure_status
    if isinstance(status, (bytes, str)):
        status = json.loads(status)
    if not isinstance(status, dict):
        raise ValueError("infrastructure provider status must be a JSON object")

    networks = status.get("networks") or {}
    vpc_name = (networks.get("vpc") or {}).get("name") or ""
    if not vpc_name:
        raise ValueError("virtual network must be not empty for infrastructure provider status")

    subnets = networks.get("subnets") or []
    if not subnets:
        raise ValueError("subnet must be not empty")

    node_subnet = next(
        (
            subnet["name"]
            for subnet in subnets
            if subnet.get("purpose") == PURPOSE_NODES and subnet.get("name")
        ),
        "",
    )
    if not node_subnet:
        raise ValueError("no nodes subnet found")
    return vpc_name, node_subnet


def ensure_firewall_rules(client: ComputeClient, bastion: Bastion, opt: Options) -> None:
    """Create the bastion's firewall rules and keep the SSH sources current."""
    cidrs = ingress_permissions(bastion)
    ingress_rule = ingress_allow_ssh(opt, cidrs)
    for rule in (ingress_rule, egress_deny_all(opt), egress_allow_only(opt)):
        create_firewall_rule_if_not_exist(client, opt, rule)

    try:
        firewall = get_firewall_rule(client, opt, ingress_rule.name)
    except GoogleAPIError as exc:
        raise RuntimeError(f"could not get firewall rule: {exc}") from exc
    if firewall is None:
        raise RuntimeError(f"could not get firewall rule: {ingress_rule.name}")

    if list(firewall.source_ranges) != cidrs:
        patch_firewall_rule(client, opt, ingress_rule.name, cidrs)


def ensure_disk(client: ComputeClient, opt: Options) -> None:
    """Create the bastion's boot disk unless it exists."""
    if get_disk(client, opt) is not None:
        return
    logger.info("create new bastion compute instance disk")
    try:
        client.insert_disk(opt.project_id, opt.zone, disk_define(opt.zone, opt.disk_name))
    except GoogleAPIError as exc:
        raise RuntimeError(f"failed to create compute instance disk: {exc}") from exc
    if get_disk(client, opt) is None:
        raise RuntimeError("failed to get (create) compute instance disk")


def ensure_compute_instance(
    client: ComputeClient, bastion: Bastion, opt: Options
) -> Instance:
    """Return the bastion instance, creating it first if needed."""
    instance = get_bastion_instance(client, opt)
    if instance is not None:
        return instance
    logger.info("Creating new bastion compute instance")
    try:
        client.insert_instance(
            opt.project_id, opt.zone, compute_instance_define(opt, bastion.user_data)
        )
    except GoogleAPIError as exc:
        raise RuntimeError(f"failed to create bastion compute instance: {exc}") from exc
    instance = get_bastion_instance(client, opt)
    if instance is None:
        raise RuntimeError("failed to get (create) bastion compute instance")
    return instance


def compute_instance_define(opt: Options, user_data: bytes | None) -> Instance:
    """Describe the bastion compute instance."""
    return Instance(
        disks=[
            AttachedDisk(
                auto_delete=True,
                boot=True,
                disk_size_gb=10,
                source=f"projects/{opt.project_id}/zones/{opt.zone}/disks/{opt.disk_name}",
                mode="READ_WRITE",
            )
        ],
        deletion_protection=False,
        description="Bastion Instance",
        name=opt.bastion_instance_name,
        zone=opt.zone,
        machine_type=f"zones/{opt.zone}/machineTypes/n1-standard-1",
        network_interfaces=[
            NetworkInterface(
                network=opt.network,
                subnetwork=opt.subnetwork,
                access_configs=[AccessConfig(name="External NAT", type="ONE_TO_ONE_NAT")],
            )
        ],
        tags=[opt.bastion_instance_name],
        metadata={
            "startup-script": (user_data or b"").decode("utf-8", errors="replace"),
            "block-project-ssh-keys": "TRUE",
        },
    )


def disk_define(zone: str, disk_name: str) -> Disk:
    """Describe the bastion's boot disk."""
    return Disk(
        description="Gardenctl Bastion disk",
        name=disk_name,
        size_gb=10,
        source_image="projects/debian-cloud/global/images/family/debian-10",
        zone=zone,
    )


class BastionActuator:
    """Creates and removes bastion hosts in one GCP project."""

    def __init__(self, gcp_client: ComputeClient, project_id: str) -> None:
        self.gcp_client = gcp_client
        self.project_id = project_id

    def _options(
        self, bastion: Bastion, cluster: Cluster, infrastructure_status: Any
    ) -> Options:
        vnet, subnet = get_net_and_subnet(infrastructure_status)
        try:
            opt = determine_options(bastion, cluster, self.project_id, vnet, subnet)
        except ValueError as exc:
            raise ValueError(f"failed to determine Options: {exc}") from exc
        if not opt.zone:
            opt.zone = get_default_zone(self.gcp_client, opt, cluster.shoot.region)
        return opt

    def reconcile(
        self, bastion: Bastion, cluster: Cluster, infrastructure_status: Any
    ) -> LoadBalancerIngress:
        """Bring the bastion up and return its public endpoint."""
        opt = self._options(bastion, cluster, infrastructure_status)
        bastion.provider_status = marshal_provider_status(opt.zone)

        try:
            ensure_firewall_rules(self.gcp_client, bastion, opt)
        except (RuntimeError, GoogleAPIError) as exc:
            raise RuntimeError(f"failed to ensure firewall rule: {exc}") from exc

        ensure_disk(self.gcp_client, opt)
        instance = ensure_compute_instance(self.gcp_client, bastion, opt)
        endpoints = get_instance_endpoints(instance)
        if not endpoints.ready():
            raise RequeueAfterError(
                "bastion instance has no public/private endpoints yet", REQUEUE_NOT_READY
            )
        return endpoints.public

    def delete(
        self, bastion: Bastion, cluster: Cluster, infrastructure_status: Any
    ) -> None:
        """Tear the bastion down: instance first, then disk and firewall rules."""
        opt = self._options(bastion, cluster, infrastructure_status)
        client = self.gcp_client

        try:
            remove_bastion_instance(client, opt)
        except (RuntimeError, GoogleAPIError) as exc:
            raise RuntimeError(f"failed to remove bastion instance: {exc}") from exc

        try:
            deleted = is_instance_deleted(client, opt)
        except GoogleAPIError as exc:
            raise RuntimeError(f"failed to check for bastion instance: {exc}") from exc
        if not deleted:
            raise RequeueAfterError(
                "bastion instance is still deleting", REQUEUE_STILL_DELETING
            )

        try:
            remove_disk(client, opt)
        except (RuntimeError, GoogleAPIError) as exc:
            raise RuntimeError(f"failed to remove disk: {exc}") from exc

        try:
            remove_firewall_rules(client, opt)
        except (RuntimeError, GoogleAPIError) as exc:
            raise RuntimeError(f"failed to remove firewall rule: {exc}") from exc