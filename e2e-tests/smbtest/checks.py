"""Topology-specific checks and the scenario variants that add them.

Variants never change the base lifecycle; they only append endpoint kinds
and checks that run after the base checks.
"""

import dataclasses

from .endpoints import EndpointKind
from .errors import VerificationError
from .scenario import Check, Scenario, ScenarioContext

DNS_CONTAINER_COUNT = 4
DNS_CONTAINERS = ("dns-register", "svc-watch")


def check_dns_containers(ctx: ScenarioContext) -> None:
    """A domain member pod runs the DNS sidecars and all containers are ready."""
    pod = ctx.workload_pod()
    containers = pod.get("spec", {}).get("containers", [])
    if len(containers) != DNS_CONTAINER_COUNT:
        raise VerificationError(
            "dns-containers",
            f"expected {DNS_CONTAINER_COUNT} containers, found {len(containers)}",
        )

    statuses = pod.get("status", {}).get("containerStatuses", [])
    not_ready = [s.get("name") for s in statuses if not s.get("ready")]
    if not_ready:
        raise VerificationError("dns-containers", f"containers not ready: {not_ready}")

    names = {s.get("name") for s in statuses}
    missing = [c for c in DNS_CONTAINERS if c not in names]
    if missing:
        raise VerificationError("dns-containers", f"missing containers: {missing}")


def check_service_is_load_balancer(ctx: ScenarioContext) -> None:
    """The share service is exposed as a LoadBalancer.

    The test cluster need not provide a load balancer, so only the service
    type is checked.
    """
    services = ctx.k8s.list_services(ctx.scenario.label, ctx.scenario.pod_namespace)
    if len(services) != 1:
        raise VerificationError(
            "service-load-balancer", f"expected 1 service, found {len(services)}"
        )
    svc_type = services[0].get("spec", {}).get("type")
    if svc_type != "LoadBalancer":
        raise VerificationError(
            "service-load-balancer", f"service type is {svc_type}, not LoadBalancer"
        )


def with_dns(scenario: Scenario) -> Scenario:
    """Domain member variant: access by external DNS name plus sidecar check."""
    return dataclasses.replace(
        scenario,
        endpoint_kinds=scenario.endpoint_kinds + (EndpointKind.DOMAIN_NAME,),
        extra_checks=scenario.extra_checks
        + (Check("dns-containers", check_dns_containers),),
    )


def with_external_net(scenario: Scenario) -> Scenario:
    """Externally exposed variant: the service must be a LoadBalancer."""
    return dataclasses.replace(
        scenario,
        extra_checks=scenario.extra_checks
        + (Check("service-load-balancer", check_service_is_load_balancer),),
    )
