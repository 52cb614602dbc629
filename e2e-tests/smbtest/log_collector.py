"""Failure diagnostics for scenario runs.

Collects:
- samba-operator controller logs
- Logs of the share pods of the scenario
- Events recorded in the workload namespace
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from .k8s_client import K8sClient

log = structlog.get_logger(__name__)


@dataclass
class LogEntry:
    """A log line that looked like an error."""

    source: str
    message: str


@dataclass
class CollectedLogs:
    """Collection of logs from all sources."""

    operator: str
    share: str
    events: list[dict]
    start_time: datetime
    end_time: datetime


class LogCollector:
    """Collect operator and share logs around a scenario."""

    ERROR_PATTERNS = [
        re.compile(r"\berror\b", re.IGNORECASE),
        re.compile(r"failed", re.IGNORECASE),
        re.compile(r"panic", re.IGNORECASE),
        re.compile(r"NT_STATUS_(?!OK)"),
    ]

    def __init__(
        self,
        k8s: K8sClient,
        operator_label: str = "control-plane=controller-manager",
        operator_namespace: str = "samba-operator-system",
        operator_container: str | None = "manager",
    ):
        """Initialize log collector.

        Args:
            k8s: K8sClient instance
            operator_label: Label selector for operator pods
            operator_namespace: Namespace where the operator runs
            operator_container: Container holding the controller logs
        """
        self.k8s = k8s
        self.operator_label = operator_label
        self.operator_namespace = operator_namespace
        self.operator_container = operator_container
        self.start_time: datetime | None = None

    def start_collection(self) -> None:
        """Mark the start time for log collection."""
        self.start_time = datetime.now(timezone.utc)

    def _since_duration(self) -> str:
        """Calculate duration since start for kubectl --since flag."""
        if not self.start_time:
            return "5m"

        delta = datetime.now(timezone.utc) - self.start_time
        seconds = int(delta.total_seconds()) + 10  # Add buffer
        return f"{seconds}s"

    def _get_logs_for_pods(
        self,
        label: str,
        namespace: str,
        container: str | None = None,
    ) -> str:
        """Get logs from pods matching a label."""
        since = self._since_duration()
        all_logs = []
        for pod in self.k8s.list_pods(label, namespace):
            name = pod["metadata"]["name"]
            output = self.k8s.get_pod_logs(name, namespace, container=container, since=since)
            if output:
                all_logs.append(f"=== Pod: {name} ===")
                all_logs.append(output)
        return "\n".join(all_logs)

    def collect_all(self, share_label: str, share_namespace: str) -> CollectedLogs:
        """Collect logs from the operator and the share pods.

        Args:
            share_label: Label selector of the share pods
            share_namespace: Namespace of the share pods

        Returns:
            CollectedLogs with all log data
        """
        end_time = datetime.now(timezone.utc)
        log.debug("collecting_logs", share_label=share_label, namespace=share_namespace)
        return CollectedLogs(
            operator=self._get_logs_for_pods(
                self.operator_label, self.operator_namespace, self.operator_container
            ),
            share=self._get_logs_for_pods(share_label, share_namespace),
            events=self.k8s.get_events(namespace=share_namespace),
            start_time=self.start_time or end_time,
            end_time=end_time,
        )

    def find_errors(self, logs: CollectedLogs) -> list[LogEntry]:
        """Extract error lines from collected logs."""
        errors = []
        for source, content in (("operator", logs.operator), ("share", logs.share)):
            for line in content.split("\n"):
                if line.strip() and any(p.search(line) for p in self.ERROR_PATTERNS):
                    errors.append(LogEntry(source=source, message=line.strip()))
        return errors

    def format_for_report(self, logs: CollectedLogs, max_lines: int = 20) -> str:
        """Format error lines and warning events for a test report."""
        sections = []

        errors = self.find_errors(logs)
        if errors:
            sections.append("=== Errors in Logs ===")
            if len(errors) > max_lines:
                sections.append(f"[Showing last {max_lines} of {len(errors)} lines]")
            sections.extend(f"[{e.source}] {e.message[:200]}" for e in errors[-max_lines:])

        warnings = [e for e in logs.events if e.get("type") == "Warning"]
        if warnings:
            sections.append("=== Warning Events ===")
            for event in warnings[-max_lines:]:
                obj = event.get("involvedObject", {})
                sections.append(
                    f"{obj.get('kind')}/{obj.get('name')} "
                    f"{event.get('reason')}: {event.get('message', '')[:200]}"
                )

        return "\n".join(sections)
