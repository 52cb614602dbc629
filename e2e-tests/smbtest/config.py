"""Harness configuration with environment variable overrides."""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_FILES_DIR = Path(__file__).parent.parent / "resources"


def _env_float(name: str, default: str) -> float:
    return float(os.environ.get(name, default))


@dataclass(frozen=True)
class HarnessConfig:
    """Settings shared by every scenario of a test run.

    Built once per session and passed to each ScenarioRunner, so nothing
    reads namespace or file locations from module globals.
    """

    namespace: str = field(
        default_factory=lambda: os.environ.get(
            "SMBOP_TEST_NAMESPACE", "samba-operator-system"
        )
    )
    files_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("SMBOP_TEST_FILES_DIR", str(DEFAULT_FILES_DIR))
        )
    )
    kubeconfig: str | None = field(default_factory=lambda: os.environ.get("KUBECONFIG"))
    cluster_domain: str = field(
        default_factory=lambda: os.environ.get("SMBOP_TEST_CLUSTER_DOMAIN", "cluster.local")
    )
    dns_domain: str = field(
        default_factory=lambda: os.environ.get("SMBOP_TEST_DNS_DOMAIN", "domain1.sink.test")
    )
    smbclient_pod: str = field(
        default_factory=lambda: os.environ.get("SMBOP_TEST_SMBCLIENT_POD", "smbclient")
    )

    # Resource creation is fast, workload startup is slow
    exist_timeout: float = field(
        default_factory=lambda: _env_float("SMBOP_TEST_EXIST_TIMEOUT", "10")
    )
    ready_timeout: float = field(
        default_factory=lambda: _env_float("SMBOP_TEST_READY_TIMEOUT", "60")
    )
    poll_interval: float = 0.25
    operation_timeout: float = field(
        default_factory=lambda: _env_float("SMBOP_TEST_OPERATION_TIMEOUT", "30")
    )
    dns_settle_delay: float = 0.4
    dns_resolve_timeout: float = field(
        default_factory=lambda: _env_float("SMBOP_TEST_DNS_RESOLVE_TIMEOUT", "10")
    )
    max_parallel_checks: int = 4

    def file_path(self, name: str) -> Path:
        """Return the path of a fixture file inside files_dir."""
        return self.files_dir / name
