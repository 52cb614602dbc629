"""Naming of the network endpoints a share is reachable on."""

from enum import Enum

SERVICE_LABEL_KEY = "samba-operator.samba.org/service"


class EndpointKind(str, Enum):
    """How the share host is addressed."""

    POD_IP = "pod-ip"
    SERVICE_NAME = "service-name"
    DOMAIN_NAME = "domain-name"


def service_label(name: str) -> str:
    """Label selector matching the pods and services of a share."""
    return f"{SERVICE_LABEL_KEY}={name}"


def service_dns_name(name: str, namespace: str, cluster_domain: str = "cluster.local") -> str:
    """In-cluster DNS name of the share service."""
    return f"{name}.{namespace}.svc.{cluster_domain}"


def external_dns_name(name: str, dns_domain: str) -> str:
    """DNS name registered for a domain member share."""
    return f"{name}-cluster.{dns_domain}"
