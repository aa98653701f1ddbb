"""Options and resource naming for bastion hosts on GCP."""

from __future__ import annotations

import hashlib
import ipaddress
import json
from dataclasses import dataclass, field

# The base name is reused for several other GCP resources whose names must
# fit into 63 characters.
MAX_LENGTH_FOR_BASE_NAME = 33
MAX_LENGTH_FOR_RESOURCE = 63


@dataclass
class Shoot:
    """The parts of a shoot specification that bastions need."""

    region: str = ""
    infrastructure_config: bytes | str | None = None


@dataclass
class Region:
    """A cloud profile region with its availability zones."""

    name: str
    zones: list[str] = field(default_factory=list)


@dataclass
class Cluster:
    """A cluster: its name, its shoot and the regions of its cloud profile."""

    name: str = ""
    shoot: Shoot = field(default_factory=Shoot)
    regions: list[Region] = field(default_factory=list)


@dataclass
class Bastion:
    """A bastion resource request."""

    name: str = ""
    namespace: str = ""
    ingress: list[str] = field(default_factory=list)
    user_data: bytes = b""
    provider_status: bytes | None = None


@dataclass
class ProviderStatus:
    """Provider status stored on a bastion resource."""

    zone: str = ""


@dataclass
class Options:
    """Provider information needed to set up a bastion instance."""

    shoot: Shoot | None = None
    bastion_instance_name: str = ""
    disk_name: str = ""
    zone: str = ""
    subnetwork: str = ""
    project_id: str = ""
    network: str = ""
    workers_cidr: str = ""


def _network_path(project_id: str, name: str) -> str:
    return f"projects/{project_id}/global/networks/{name}"


def _infrastructure_networks(cluster: Cluster) -> dict:
    raw = cluster.shoot.infrastructure_config
    if raw is None:
        raise ValueError("shoot has no infrastructure config")
    config = json.loads(raw)
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError("infrastructure config must be a JSON object")
    networks = config.get("networks") or {}
    if not isinstance(networks, dict):
        raise ValueError("infrastructure config networks must be a JSON object")
    return networks


def determine_options(
    bastion: Bastion,
    cluster: Cluster,
    project_id: str,
    vnet_name: str,
    subnet_work: str,
) -> Options:
    """Work out everything needed to reconcile a bastion; creates nothing."""
    provider_status = get_provider_status(bastion)
    base_name = generate_bastion_base_resource_name(cluster.name, bastion.name)
    workers_cidr = get_workers_cidr(cluster)
    region = cluster.shoot.region
    return Options(
        shoot=cluster.shoot,
        bastion_instance_name=base_name,
        zone=get_zone(cluster, region, provider_status),
        disk_name=disk_resource_name(base_name),
        subnetwork=f"regions/{region}/subnetworks/{subnet_work}",
        project_id=project_id,
        network=_network_path(project_id, vnet_name),
        workers_cidr=workers_cidr,
    )


def get_zone(
    cluster: Cluster, region: str, provider_status: ProviderStatus | None
) -> str:
    """Return the stored zone, else the first zone of the region, else ''."""
    if provider_status is not None:
        return provider_status.zone
    for candidate in cluster.regions:
        if candidate.name == region and candidate.zones:
            return candidate.zones[0]
    return ""


def get_network_name(cluster: Cluster, project_id: str, cluster_name: str) -> str:
    """Return the network path: the configured VPC or the cluster's own."""
    vpc = _infrastructure_networks(cluster).get("vpc")
    if vpc is not None:
        return _network_path(project_id, vpc.get("name", ""))
    return _network_path(project_id, cluster_name)


def get_workers_cidr(cluster: Cluster) -> str:
    """Return the workers CIDR from the shoot's infrastructure config."""
    return _infrastructure_networks(cluster).get("workers") or ""


def _parse_cidr(cidr: str) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
    address, sep, prefix = cidr.partition("/")
    if not sep or not prefix.isdigit() or not prefix.isascii():
        raise ValueError(f"invalid CIDR address: {cidr}")
    try:
        return ipaddress.ip_network(f"{address}/{int(prefix)}", strict=False)
    except ValueError as exc:
        raise ValueError(f"invalid CIDR address: {cidr}") from exc


def ingress_permissions(bastion: Bastion) -> list[str]:
    """Return the bastion's ingress CIDRs normalised; only IPv4 is allowed."""
    cidrs = []
    for cidr in bastion.ingress:
        try:
            network = _parse_cidr(cidr)
        except ValueError as exc:
            raise ValueError(f'invalid ingress CIDR "{cidr}": {exc}') from exc
        if network.version == 6:
            raise ValueError("IPv6 is currently not fully supported")
        cidrs.append(str(network))
    return cidrs


def generate_bastion_base_resource_name(cluster_name: str, bastion_name: str) -> str:
    """Build a stable, length-limited base name for bastion resources."""
    if not cluster_name:
        raise ValueError("clusterName can't be empty")
    if not bastion_name:
        raise ValueError("bastionName can't be empty")

    static_name = f"{cluster_name}-{bastion_name}"
    digest = hashlib.sha256(static_name.encode("utf-8")).hexdigest()
    if len(static_name) > MAX_LENGTH_FOR_BASE_NAME:
        truncated = static_name.encode("utf-8")[:MAX_LENGTH_FOR_BASE_NAME]
        static_name = truncated.decode("utf-8", errors="ignore")
    return f"{static_name}-bastion-{digest[:5]}"


def get_provider_status(bastion: Bastion) -> ProviderStatus | None:
    """Return the bastion's stored provider status, or None if there is none."""
    if bastion.provider_status is None:
        return None
    return unmarshal_provider_status(bastion.provider_status)


_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def marshal_provider_status(zone: str) -> bytes:
    """Encode the provider status as compact JSON."""
    text = json.dumps({"zone": zone}, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text.encode("utf-8")


def unmarshal_provider_status(data: bytes | str) -> ProviderStatus:
    """Decode a provider status from JSON."""
    error = "failed to parse json for status.ProviderStatus"
    try:
        decoded = json.loads(data)
    except (ValueError, TypeError) as exc:
        raise ValueError(error) from exc
    if decoded is None:
        return ProviderStatus()
    if not isinstance(decoded, dict):
        raise ValueError(error)
    zone = decoded.get("zone")
    if zone is None:
        return ProviderStatus()
    if not isinstance(zone, str):
        raise ValueError(error)
    return ProviderStatus(zone=zone)


def disk_resource_name(base_name: str) -> str:
    """Name of the bastion's boot disk."""
    return f"{base_name}-disk"


def firewall_ingress_allow_ssh_resource_name(base_name: str) -> str:
    """Name of the ingress rule allowing SSH."""
    return f"{base_name}-allow-ssh"


def firewall_egress_allow_only_resource_name(base_name: str) -> str:
    """Name of the egress rule allowing traffic to workers only."""
    return f"{base_name}-egress-worker"


def firewall_egress_deny_all_resource_name(base_name: str) -> str:
    """Name of the egress rule denying all traffic."""
    return f"{base_name}-deny-all"