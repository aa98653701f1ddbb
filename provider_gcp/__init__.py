"""GCP provider logic for bastion hosts, DNS records, infrastructure validation and health checks."""

__version__ = "0.1.0"