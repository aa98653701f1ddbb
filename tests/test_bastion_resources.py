import pytest

from provider_gcp.bastion_options import Options
from provider_gcp.bastion_resources import (
    ComputeClient,
    GoogleAPIError,
    RequeueAfterError,
    create_firewall_rule_if_not_exist,
    delete_firewall_rule,
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
from provider_gcp.firewall_rules import Firewall, patch_cidrs


class FakeCompute(ComputeClient):
    def __init__(self):
        self.instances = {}
        self.firewalls = {}
        self.disks = {}
        self.zones = {}
        self.calls = []
        self.errors = {}

    def _fail(self, op):
        if op in self.errors:
            raise self.errors[op]

    def get_instance(self, project_id, zone, name):
        self.calls.append(("get_instance", project_id, zone, name))
        self._fail("get_instance")
        if name not in self.instances:
            raise GoogleAPIError(404, "not found")
        return self.instances[name]

    def insert_instance(self, project_id, zone, instance):
        self.calls.append(("insert_instance", project_id, zone, instance))
        self._fail("insert_instance")

    def delete_instance(self, project_id, zone, name):
        self.calls.append(("delete_instance", project_id, zone, name))
        self._fail("delete_instance")
        self.instances.pop(name, None)

    def get_firewall(self, project_id, name):
        self.calls.append(("get_firewall", project_id, name))
        self._fail("get_firewall")
        if name not in self.firewalls:
            raise GoogleAPIError(404, "not found")
        return self.firewalls[name]

    def insert_firewall(self, project_id, firewall):
        self.calls.append(("insert_firewall", project_id, firewall.name))
        self._fail("insert_firewall")
        if firewall.name in self.firewalls:
            raise GoogleAPIError(409, "already exists")
        self.firewalls[firewall.name] = firewall

    def delete_firewall(self, project_id, name):
        self.calls.append(("delete_firewall", project_id, name))
        self._fail("delete_firewall")
        if name not in self.firewalls:
            raise GoogleAPIError(404, "not found")
        del self.firewalls[name]

    def patch_firewall(self, project_id, name, firewall):
        self.calls.append(("patch_firewall", project_id, name, firewall))
        self._fail("patch_firewall")

    def get_disk(self, project_id, zone, name):
        self.calls.append(("get_disk", project_id, zone, name))
        self._fail("get_disk")
        if name not in self.disks:
            raise GoogleAPIError(404, "not found")
        return self.disks[name]

    def insert_disk(self, project_id, zone, disk):
        self.calls.append(("insert_disk", project_id, zone, disk))

    def delete_disk(self, project_id, zone, name):
        self.calls.append(("delete_disk", project_id, zone, name))
        self._fail("delete_disk")
        self.disks.pop(name, None)

    def get_region_zones(self, project_id, region):
        self.calls.append(("get_region_zones", project_id, region))
        return self.zones.get(region, [])


@pytest.fixture
def opt():
    return Options(
        project_id="test-project",
        zone="us-west1-a",
        bastion_instance_name="test-bastion1",
        disk_name="test-bastion1-disk",
    )


@pytest.fixture
def client():
    return FakeCompute()


def test_patch_firewall_rule(client, opt):
    cidrs = ["213.69.151.0/24"]
    patch_firewall_rule(client, opt, "test-fw", cidrs)
    assert client.calls == [("patch_firewall", "test-project", "test-fw", patch_cidrs(cidrs))]


def test_delete_firewall_rule(client, opt):
    client.firewalls["test-fw"] = Firewall(name="test-fw")
    delete_firewall_rule(client, opt, "test-fw")
    assert client.calls == [("delete_firewall", "test-project", "test-fw")]
    assert "test-fw" not in client.firewalls


def test_delete_missing_firewall_rule_is_ignored(client, opt):
    delete_firewall_rule(client, opt, "test-fw")
    assert client.calls == [("delete_firewall", "test-project", "test-fw")]


def test_delete_firewall_rule_other_error(client, opt):
    client.errors["delete_firewall"] = GoogleAPIError(500, "boom")
    with pytest.raises(RuntimeError, match="failed to delete firewall rule test-fw"):
        delete_firewall_rule(client, opt, "test-fw")


def test_get_bastion_instance_missing_returns_none(client, opt):
    assert get_bastion_instance(client, opt) is None
    assert is_instance_deleted(client, opt) is True


def test_get_bastion_instance_found(client, opt):
    client.instances["test-bastion1"] = {"name": "test-bastion1"}
    assert get_bastion_instance(client, opt) == {"name": "test-bastion1"}
    assert is_instance_deleted(client, opt) is False


def test_get_bastion_instance_propagates_other_errors(client, opt):
    client.errors["get_instance"] = GoogleAPIError(403, "forbidden")
    with pytest.raises(GoogleAPIError) as info:
        get_bastion_instance(client, opt)
    assert info.value.code == 403


def test_get_firewall_rule(client, opt):
    rule = Firewall(name="rule")
    client.firewalls["rule"] = rule
    assert get_firewall_rule(client, opt, "rule") is rule
    assert get_firewall_rule(client, opt, "other") is None


def test_create_firewall_rule_conflict_is_ignored(client, opt):
    rule = Firewall(name="rule")
    create_firewall_rule_if_not_exist(client, opt, rule)
    create_firewall_rule_if_not_exist(client, opt, Firewall(name="rule", priority=5))
    assert client.firewalls["rule"] is rule


def test_create_firewall_rule_error(client, opt):
    client.errors["insert_firewall"] = GoogleAPIError(500, "boom")
    with pytest.raises(RuntimeError, match="could not create firewall rule rule"):
        create_firewall_rule_if_not_exist(client, opt, Firewall(name="rule"))


def test_get_disk(client, opt):
    assert get_disk(client, opt) is None
    client.disks["test-bastion1-disk"] = "disk"
    assert get_disk(client, opt) == "disk"


def test_get_default_zone(client, opt):
    client.zones["us-west1"] = [
        "https://compute.example.com/projects/test-project/zones/us-west1-a",
        "https://compute.example.com/projects/test-project/zones/us-west1-b",
    ]
    assert get_default_zone(client, opt, "us-west1") == "us-west1-a"


def test_get_default_zone_none_available(client, opt):
    with pytest.raises(ValueError, match="no available zones in GCP region: nowhere"):
        get_default_zone(client, opt, "nowhere")


def test_remove_firewall_rules_deletes_all_three(client, opt):
    remove_firewall_rules(client, opt)
    assert client.calls == [
        ("delete_firewall", "test-project", "test-bastion1-allow-ssh"),
        ("delete_firewall", "test-project", "test-bastion1-deny-all"),
        ("delete_firewall", "test-project", "test-bastion1-egress-worker"),
    ]


def test_remove_bastion_instance_when_missing(client, opt):
    remove_bastion_instance(client, opt)
    assert [c[0] for c in client.calls] == ["get_instance"]


def test_remove_bastion_instance_when_present(client, opt):
    client.instances["test-bastion1"] = "instance"
    remove_bastion_instance(client, opt)
    assert client.calls[-1] == ("delete_instance", "test-project", "us-west1-a", "test-bastion1")
    assert is_instance_deleted(client, opt)


def test_remove_bastion_instance_failure(client, opt):
    client.instances["test-bastion1"] = "instance"
    client.errors["delete_instance"] = GoogleAPIError(500, "boom")
    with pytest.raises(RuntimeError, match="failed to terminate bastion instance"):
        remove_bastion_instance(client, opt)


def test_remove_disk(client, opt):
    remove_disk(client, opt)
    assert [c[0] for c in client.calls] == ["get_disk"]
    client.disks["test-bastion1-disk"] = "disk"
    remove_disk(client, opt)
    assert client.calls[-1] == ("delete_disk", "test-project", "us-west1-a", "test-bastion1-disk")
    assert client.disks == {}


def test_remove_disk_failure(client, opt):
    client.disks["test-bastion1-disk"] = "disk"
    client.errors["delete_disk"] = GoogleAPIError(500, "boom")
    with pytest.raises(RuntimeError, match="failed to delete disk"):
        remove_disk(client, opt)


def test_requeue_after_error_carries_cause():
    err = RequeueAfterError("bastion instance is still deleting", 30)
    assert err.requeue_after == 30
    assert str(err) == "bastion instance is still deleting"


def test_google_api_error_code():
    err = GoogleAPIError(404, "missing")
    assert err.code == 404
    assert "missing" in str(err)