"""Reconciliation of DNS records in Google Cloud DNS managed zones."""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field

from provider_gcp.bastion_resources import RequeueAfterError

logger = logging.getLogger(__name__)

# Provider errors are retried slowly so that a misconfiguration does not
# exhaust the account's rate limits.
REQUEUE_AFTER_ON_PROVIDER_ERROR = 30.0

DEFAULT_TTL = 120
LAST_OPERATION_TYPE_CREATE = "Create"
META_RECORD_TYPE = "TXT"


@dataclass
class DNSRecord:
    """A DNS record resource: its spec and the zone recorded in its status."""

    name: str = ""
    namespace: str = ""
    dns_name: str = ""
    record_type: str = "A"
    values: list[str] = field(default_factory=list)
    ttl: int | None = None
    zone: str | None = None
    status_zone: str | None = None
    last_operation_type: str | None = None

    @property
    def effective_ttl(self) -> int:
        """The TTL to use, falling back to the default."""
        return DEFAULT_TTL if self.ttl is None else self.ttl


class DNSClient(abc.ABC):
    """The Cloud DNS operations the actuator needs."""

    @abc.abstractmethod
    def get_managed_zones(self) -> dict[str, str]:
        """Return a mapping of managed zone DNS names to zone identifiers."""

    @abc.abstractmethod
    def create_or_update_record_set(
        self, managed_zone: str, name: str, record_type: str, values: list[str], ttl: int
    ) -> None:
        """Create the record set, or update it if it exists."""

    @abc.abstractmethod
    def delete_record_set(self, managed_zone: str, name: str, record_type: str) -> None:
        """Delete the record set if it exists."""


def find_zone_for_name(zones: dict[str, str], name: str) -> str:
    """Return the id of the longest zone that is the name or a suffix of it."""
    best_id, best_len = "", 0
    for zone_name, zone_id in zones.items():
        matches = name == zone_name or name.endswith("." + zone_name)
        if matches and len(zone_name) > best_len:
            best_id, best_len = zone_id, len(zone_name)
    return best_id


def get_meta_record_name(name: str) -> str:
    """Return the name of the meta TXT record that belongs to a record name."""
    if name.startswith("*."):
        return "*.comment-" + name[2:]
    return "comment-" + name


class DNSRecordActuator:
    """Creates, updates and deletes DNS record sets for DNSRecord resources."""

    def __init__(self, dns_client: DNSClient) -> None:
        self.dns_client = dns_client

    def _managed_zone(self, dns: DNSRecord) -> str:
        if dns.zone:
            return dns.zone
        if dns.status_zone:
            return dns.status_zone
        try:
            zones = self.dns_client.get_managed_zones()
        except Exception as exc:
            raise RequeueAfterError(
                f"could not get DNS managed zones: {exc}",
                REQUEUE_AFTER_ON_PROVIDER_ERROR,
            ) from exc
        logger.info("Got DNS managed zones %s for %s/%s", zones, dns.namespace, dns.name)
        zone = find_zone_for_name(zones, dns.dns_name)
        if not zone:
            raise ValueError(f"could not find DNS managed zone for name {dns.dns_name}")
        return zone

    def reconcile(self, dns: DNSRecord) -> None:
        """Create or update the record set and record its zone in the status."""
        managed_zone = self._managed_zone(dns)
        ttl = dns.effective_ttl
        logger.info(
            "Creating or updating DNS recordset %s %s in %s with %s",
            dns.dns_name, dns.record_type, managed_zone, dns.values,
        )
        try:
            self.dns_client.create_or_update_record_set(
                managed_zone, dns.dns_name, dns.record_type, list(dns.values), ttl
            )
        except Exception as exc:
            raise RequeueAfterError(
                f"could not create or update DNS recordset in managed zone {managed_zone} "
                f"with name {dns.dns_name}, type {dns.record_type}, and rrdatas "
                f"{dns.values}: {exc}",
                REQUEUE_AFTER_ON_PROVIDER_ERROR,
            ) from exc

        if dns.last_operation_type in (None, LAST_OPERATION_TYPE_CREATE):
            meta_name = get_meta_record_name(dns.dns_name)
            logger.info("Deleting meta DNS recordset %s in %s", meta_name, managed_zone)
            try:
                self.dns_client.delete_record_set(managed_zone, meta_name, META_RECORD_TYPE)
            except Exception as exc:
                raise RequeueAfterError(
                    f"could not delete meta DNS recordset in managed zone {managed_zone} "
                    f"with name {meta_name} and type {META_RECORD_TYPE}: {exc}",
                    REQUEUE_AFTER_ON_PROVIDER_ERROR,
                ) from exc

        dns.status_zone = managed_zone

    def delete(self, dns: DNSRecord) -> None:
        """Delete the record set."""
        managed_zone = self._managed_zone(dns)
        logger.info(
            "Deleting DNS recordset %s %s in %s", dns.dns_name, dns.record_type, managed_zone
        )
        try:
            self.dns_client.delete_record_set(managed_zone, dns.dns_name, dns.record_type)
        except Exception as exc:
            raise RequeueAfterError(
                f"could not delete DNS recordset in managed zone {managed_zone} "
                f"with name {dns.dns_name} and type {dns.record_type}: {exc}",
                REQUEUE_AFTER_ON_PROVIDER_ERROR,
            ) from exc

    def restore(self, dns: DNSRecord) -> None:
        """Restore the record set; the same as reconciling it."""
        self.reconcile(dns)

    def migrate(self, dns: DNSRecord) -> None:
        """Nothing needs to happen on migration."""