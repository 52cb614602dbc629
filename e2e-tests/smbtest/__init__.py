# samba-operator E2E Test Library
"""Orchestration, polling and verification for samba-operator E2E tests."""

from .config import HarnessConfig
from .k8s_client import K8sClient, ResourceIdentity
from .log_collector import LogCollector
from .registry import all_smbshare_scenarios
from .scenario import Scenario, ScenarioResult, ScenarioRunner, ScenarioState

__all__ = [
    "HarnessConfig",
    "K8sClient",
    "LogCollector",
    "ResourceIdentity",
    "Scenario",
    "ScenarioResult",
    "ScenarioRunner",
    "ScenarioState",
    "all_smbshare_scenarios",
]
