# provider_gcp

Provider logic for running Kubernetes clusters on Google Cloud Platform. The package has
these modules:

- `provider_gcp.bastion_options`: data classes for clusters, shoots and bastions. It derives
  bastion resource names with `generate_bastion_base_resource_name`, and it works out a
  bastion's `Options` with `determine_options`. That covers the zone, the disk, the network,
  the subnetwork and the workers CIDR. It also normalises ingress CIDRs with
  `ingress_permissions`, which accepts IPv4 only.
- `provider_gcp.firewall_rules`: the three firewall rules of a bastion.
  `ingress_allow_ssh` allows SSH in from the given CIDRs. `egress_deny_all` denies all
  outgoing traffic. `egress_allow_only` allows SSH out to the workers CIDR only.
- `provider_gcp.bastion_resources`: the `ComputeClient` interface and the functions that
  get, create, patch and delete instances, disks and firewall rules through it. A missing
  resource counts as `None`, not as an error. It also defines the `GoogleAPIError` and
  `RequeueAfterError` exceptions.
- `provider_gcp.bastion_actuator`: `BastionActuator.reconcile` brings a bastion up and
  returns its public endpoint. It raises `RequeueAfterError` while the instance has no
  endpoints yet. `BastionActuator.delete` removes the instance first, then the disk and the
  firewall rules.
- `provider_gcp.dnsrecord`: `DNSRecordActuator` creates, updates and deletes record sets
  through a `DNSClient`. When no zone is given, it picks the managed zone with the longest
  matching suffix.
- `provider_gcp.configvalidator`: `ConfigValidator` checks that the Cloud NAT IP names you
  configured exist. It also checks that they are free, or used only by the cluster's cloud
  router. It returns a list of `FieldError`.
- `provider_gcp.healthcheck`: the `HealthCheck` entries registered for control planes and
  workers. It also provides `compare_versions` and `csi_enabled`.

## Installation

```
pip install .
```

To install with the test dependencies:

```
pip install ".[test]"
```

## Examples

Bastion resource names:

```python
from provider_gcp.bastion_options import (
    generate_bastion_base_resource_name,
    disk_resource_name,
    firewall_ingress_allow_ssh_resource_name,
)

base = generate_bastion_base_resource_name("clusterName", "shortName")
print(base)                                            # clusterName-shortName-bastion-79641
print(disk_resource_name(base))                        # clusterName-shortName-bastion-79641-disk
print(firewall_ingress_allow_ssh_resource_name(base))  # clusterName-shortName-bastion-79641-allow-ssh
```

Finding the DNS zone for a record name:

```python
from provider_gcp.dnsrecord import find_zone_for_name, get_meta_record_name

zones = {"shoot.example.com": "zone", "example.com": "zone2"}
find_zone_for_name(zones, "api.gcp.foobar.shoot.example.com")  # "zone"
get_meta_record_name("api.example.com")                        # "comment-api.example.com"
```

Version checks used by the health checks:

```python
from provider_gcp.healthcheck import compare_versions, csi_enabled

csi_enabled("1.17.0")                       # False
csi_enabled("1.20.3")                       # True
compare_versions("1.18.0", ">=", "1.18")    # True
```

## What the package does not do

The package does not talk to Google Cloud itself. The actuators and the validator work
through client objects that you pass in. Those objects implement `ComputeClient`,
`DNSClient`, or a `get_external_addresses(region)` method. The package has no controller
loop, command or server. It does not read or write Kubernetes resources. Status values,
such as a bastion's provider status or a DNS record's zone, are set on the Python objects
you pass in. The package provides no control plane chart definitions and no chart values.

## Running the tests

```
pytest
```