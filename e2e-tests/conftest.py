"""Pytest configuration and fixtures for samba-operator E2E tests."""

import os
import subprocess
from pathlib import Path
from typing import Generator

import pytest

from smbtest.config import DEFAULT_FILES_DIR, HarnessConfig
from smbtest.errors import HarnessError, SetupError
from smbtest.fixtures import FixtureManager, FixtureTracker
from smbtest.k8s_client import K8sClient
from smbtest.log_collector import LogCollector
from smbtest.log_config import configure_logging
from smbtest.smbclient import ensure_client_pod


# -------------------------------------------------------------------------
# Configuration
# -------------------------------------------------------------------------


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command line options."""
    parser.addoption(
        "--namespace",
        action="store",
        default=os.environ.get("SMBOP_TEST_NAMESPACE", "samba-operator-system"),
        help="Namespace the operator places share pods in",
    )
    parser.addoption(
        "--kubeconfig",
        action="store",
        default=os.environ.get("KUBECONFIG"),
        help="Path to kubeconfig file",
    )
    parser.addoption(
        "--files-dir",
        action="store",
        default=os.environ.get("SMBOP_TEST_FILES_DIR", str(DEFAULT_FILES_DIR)),
        help="Directory holding fixture YAML files",
    )
    parser.addoption(
        "--dns-domain",
        action="store",
        default=os.environ.get("SMBOP_TEST_DNS_DOMAIN", "domain1.sink.test"),
        help="DNS domain that domain member shares register in",
    )
    parser.addoption(
        "--smbclient-pod",
        action="store",
        default=os.environ.get("SMBOP_TEST_SMBCLIENT_POD", "smbclient"),
        help="Name of the pod smbclient commands run in",
    )
    parser.addoption(
        "--run-cluster",
        action="store_true",
        default=False,
        help="Run tests that need a live cluster with samba-operator",
    )
    parser.addoption(
        "--harness-log-level",
        action="store",
        default=os.environ.get("SMBOP_TEST_LOG_LEVEL", "INFO"),
        help="Minimum level of harness log output",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers and harness logging."""
    config.addinivalue_line("markers", "cluster: needs a live cluster (see --run-cluster)")
    config.addinivalue_line("markers", "slow: marks tests as slow running")
    configure_logging(config.getoption("--harness-log-level"))


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-cluster"):
        return
    skip_cluster = pytest.mark.skip(reason="needs --run-cluster")
    for item in items:
        if "cluster" in item.keywords:
            item.add_marker(skip_cluster)


# -------------------------------------------------------------------------
# Session-scoped Fixtures
# -------------------------------------------------------------------------


@pytest.fixture(scope="session")
def harness_config(request: pytest.FixtureRequest) -> HarnessConfig:
    """Harness configuration built from command line options."""
    return HarnessConfig(
        namespace=request.config.getoption("--namespace"),
        files_dir=Path(request.config.getoption("--files-dir")),
        kubeconfig=request.config.getoption("--kubeconfig"),
        dns_domain=request.config.getoption("--dns-domain"),
        smbclient_pod=request.config.getoption("--smbclient-pod"),
    )


@pytest.fixture(scope="session")
def k8s(harness_config: HarnessConfig) -> K8sClient:
    """K8s client for the test session."""
    client = K8sClient(
        namespace=harness_config.namespace,
        kubeconfig=harness_config.kubeconfig,
        request_timeout=harness_config.operation_timeout,
    )

    # Verify cluster access
    if not client.cluster_info():
        pytest.fail("Cannot connect to Kubernetes cluster")

    return client


@pytest.fixture(scope="session")
def smbclient_pod(
    k8s: K8sClient, harness_config: HarnessConfig
) -> Generator[str, None, None]:
    """Ensure the smbclient pod exists and is ready for the whole session."""
    tracker = FixtureTracker(FixtureManager(k8s))
    try:
        pod_name = ensure_client_pod(k8s, harness_config, tracker)
    except SetupError as e:
        pytest.fail(str(e))

    yield pod_name

    tracker.cleanup_all()


# -------------------------------------------------------------------------
# Function-scoped Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def logs(k8s: K8sClient) -> Generator[LogCollector, None, None]:
    """Log collector that starts fresh for each test."""
    collector = LogCollector(k8s)
    collector.start_collection()
    yield collector


# -------------------------------------------------------------------------
# Reporting Hooks
# -------------------------------------------------------------------------


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    """Add the per-check report and operator log errors to failed scenarios."""
    outcome = yield
    report = outcome.get_result()

    if report.when != "call" or not report.failed:
        return

    result = getattr(item, "scenario_result", None)
    if result is None:
        return

    extra_info = ["", "=== Scenario Checks ===", result.report()]

    logs = item.funcargs.get("logs")
    scenario = getattr(item, "scenario", None)
    if logs and scenario:
        try:
            collected = logs.collect_all(scenario.label, scenario.pod_namespace)
            extra_info.append(logs.format_for_report(collected))
        except (OSError, subprocess.SubprocessError, HarnessError) as e:
            extra_info.append(f"(diagnostics unavailable: {e})")

    report.longrepr = str(report.longrepr) + "\n" + "\n".join(extra_info)
