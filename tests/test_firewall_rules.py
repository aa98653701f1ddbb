from provider_gcp.bastion_options import Options
from provider_gcp.firewall_rules import (
    Firewall,
    FirewallAllowed,
    FirewallDenied,
    egress_allow_only,
    egress_deny_all,
    ingress_allow_ssh,
    patch_cidrs,
)


def make_options():
    return Options(
        project_id="test-project",
        zone="us-west1-a",
        bastion_instance_name="test-bastion1",
        network="projects/test-project/global/networks/vnet",
        workers_cidr="10.250.0.0/16",
    )


def test_patch_cidrs():
    cidrs = ["213.69.151.0/24"]
    assert patch_cidrs(cidrs) == Firewall(source_ranges=cidrs)


def test_ingress_allow_ssh():
    rule = ingress_allow_ssh(make_options(), ["213.69.151.0/24"])
    assert rule.name == "test-bastion1-allow-ssh"
    assert rule.direction == "INGRESS"
    assert rule.priority == 50
    assert rule.allowed == [FirewallAllowed("tcp", ["22"])]
    assert rule.source_ranges == ["213.69.151.0/24"]
    assert rule.target_tags == ["test-bastion1"]
    assert rule.network == "projects/test-project/global/networks/vnet"


def test_egress_deny_all():
    rule = egress_deny_all(make_options())
    assert rule.name == "test-bastion1-deny-all"
    assert rule.direction == "EGRESS"
    assert rule.priority == 1000
    assert rule.denied == [FirewallDenied("all")]
    assert rule.destination_ranges == ["0.0.0.0/0"]
    assert rule.allowed == []


def test_egress_allow_only():
    rule = egress_allow_only(make_options())
    assert rule.name == "test-bastion1-egress-worker"
    assert rule.direction == "EGRESS"
    assert rule.priority == 60
    assert rule.allowed == [FirewallAllowed("tcp", ["22"])]
    assert rule.destination_ranges == ["10.250.0.0/16"]
    assert rule.description == "Allow Bastion egress to Shoot workers"