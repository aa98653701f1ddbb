"""Firewall rule definitions for bastion hosts."""

from __future__ import annotations

from dataclasses import dataclass, field

from provider_gcp.bastion_options import (
    Options,
    firewall_egress_allow_only_resource_name,
    firewall_egress_deny_all_resource_name,
    firewall_ingress_allow_ssh_resource_name,
)

SSH_PORT = 22


@dataclass
class FirewallAllowed:
    """A protocol and ports that a rule allows."""

    ip_protocol: str
    ports: list[str] = field(default_factory=list)


@dataclass
class FirewallDenied:
    """A protocol and ports that a rule denies."""

    ip_protocol: str
    ports: list[str] = field(default_factory=list)


@dataclass
class Firewall:
    """A GCP firewall rule."""

    name: str = ""
    description: str = ""
    direction: str = ""
    network: str = ""
    priority: int = 0
    target_tags: list[str] = field(default_factory=list)
    source_ranges: list[str] = field(default_factory=list)
    destination_ranges: list[str] = field(default_factory=list)
    allowed: list[FirewallAllowed] = field(default_factory=list)
    denied: list[FirewallDenied] = field(default_factory=list)


def ingress_allow_ssh(opt: Options, cidrs: list[str]) -> Firewall:
    """Ingress rule allowing SSH from the given CIDRs."""
    return Firewall(
        allowed=[FirewallAllowed("tcp", [str(SSH_PORT)])],
        description="SSH access for Bastion",
        direction="INGRESS",
        target_tags=[opt.bastion_instance_name],
        name=firewall_ingress_allow_ssh_resource_name(opt.bastion_instance_name),
        network=opt.network,
        source_ranges=list(cidrs),
        priority=50,
    )


def egress_deny_all(opt: Options) -> Firewall:
    """Egress rule denying all traffic."""
    return Firewall(
        denied=[FirewallDenied("all")],
        description="Bastion egress deny",
        direction="EGRESS",
        target_tags=[opt.bastion_instance_name],
        name=firewall_egress_deny_all_resource_name(opt.bastion_instance_name),
        network=opt.network,
        destination_ranges=["0.0.0.0/0"],
        priority=1000,
    )


def egress_allow_only(opt: Options) -> Firewall:
    """Egress rule allowing SSH to the workers CIDR only."""
    return Firewall(
        allowed=[FirewallAllowed("tcp", [str(SSH_PORT)])],
        description="Allow Bastion egress to Shoot workers",
        direction="EGRESS",
        target_tags=[opt.bastion_instance_name],
        name=firewall_egress_allow_only_resource_name(opt.bastion_instance_name),
        network=opt.network,
        destination_ranges=[opt.workers_cidr],
        priority=60,
    )


def patch_cidrs(cidrs: list[str]) -> Firewall:
    """Patch body that replaces a rule's source ranges."""
    return Firewall(source_ranges=list(cidrs))