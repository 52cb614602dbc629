"""Verification of the events the operator records for a resource."""

from collections import Counter
from dataclasses import dataclass

import structlog

from .errors import VerificationError
from .k8s_client import K8sClient, ResourceIdentity

log = structlog.get_logger(__name__)

DEFAULT_EXPECTED_EVENTS = {
    "CreatedPersistentVolumeClaim": 1,
    "CreatedDeployment": 1,
}


@dataclass(frozen=True)
class EventCount:
    """Observed number of events with one reason."""

    reason: str
    count: int


def event_field_selector(identity: ResourceIdentity) -> str:
    """Field selector matching events about exactly this object."""
    return (
        f"involvedObject.kind={identity.kind},"
        f"involvedObject.name={identity.name},"
        f"involvedObject.uid={identity.uid}"
    )


def count_reasons(events: list[dict]) -> dict[str, EventCount]:
    """Count events by reason.

    Events may be aggregated by the API server, so ``count`` on the event is
    used when present.
    """
    counts: Counter[str] = Counter()
    for event in events:
        counts[event.get("reason", "")] += event.get("count") or 1
    return {reason: EventCount(reason, n) for reason, n in counts.items()}


class EventVerifier:
    """Check the event trail of a resource against expected reason counts."""

    def __init__(self, k8s: K8sClient):
        self.k8s = k8s

    def fetch(self, resource: ResourceIdentity) -> list[dict]:
        """List events whose subject is the resource.

        Raises:
            VerificationError: If the resource itself cannot be found
        """
        identity = self.k8s.get_identity(
            resource.api_version, resource.kind, resource.name, resource.namespace
        )
        if identity is None or not identity.uid:
            raise VerificationError("events", f"{resource} not found")
        return self.k8s.get_events(event_field_selector(identity), identity.namespace)

    def verify(
        self,
        resource: ResourceIdentity,
        expected: dict[str, int],
        check: str = "events",
    ) -> dict[str, EventCount]:
        """Assert at least one event exists and exact counts per reason.

        Args:
            resource: Resource under test
            expected: Mapping of event reason to exact expected count
            check: Check name used in errors

        Returns:
            Observed counts by reason

        Raises:
            VerificationError: Listing every mismatching reason
        """
        events = self.fetch(resource)
        if not events:
            raise VerificationError(check, f"no events recorded for {resource}")

        observed = count_reasons(events)
        mismatches = []
        for reason, want in expected.items():
            got = observed[reason].count if reason in observed else 0
            if got != want:
                mismatches.append(f"{reason}: expected {want}, got {got}")

        log.info(
            "events_counted",
            resource=str(resource),
            observed={r: c.count for r, c in observed.items()},
        )
        if mismatches:
            raise VerificationError(check, "; ".join(mismatches))
        return observed
