"""Scenario definition and the runner that drives one scenario end to end.

A run moves through these states:

    UNINITIALIZED -> FIXTURES_APPLIED -> WORKLOAD_DISCOVERED
        -> WORKLOAD_READY -> VERIFIED -> TORN_DOWN

FAILED is reached from any state on a setup, timeout, verification or
teardown error and is final. Teardown of the fixtures this run created
happens in every case.
"""

import concurrent.futures
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Callable

import structlog

from .access import ShareAccessVerifier, access_check_name
from .config import HarnessConfig
from .endpoints import EndpointKind, service_label
from .errors import HarnessError, PollTimeoutError, SetupError, TeardownError, VerificationError
from .events import DEFAULT_EXPECTED_EVENTS, EventVerifier
from .fixtures import FileSource, FixtureManager, FixtureTracker
from .k8s_client import K8sClient, ResourceIdentity
from .polling import wait_for_pod_exists, wait_for_pod_ready
from .smbclient import Auth, SmbClient

log = structlog.get_logger(__name__)

SMBSHARE_API_VERSION = "samba-operator.samba.org/v1alpha1"


class ScenarioState(str, Enum):
    UNINITIALIZED = "uninitialized"
    FIXTURES_APPLIED = "fixtures-applied"
    WORKLOAD_DISCOVERED = "workload-discovered"
    WORKLOAD_READY = "workload-ready"
    VERIFIED = "verified"
    TORN_DOWN = "torn-down"
    FAILED = "failed"


@dataclass(frozen=True)
class Check:
    """A named verification step.

    ``run`` raises VerificationError (or any other exception) on failure.
    Consecutive parallel checks run concurrently.
    """

    name: str
    run: Callable[["ScenarioContext"], None]
    parallel: bool = False


@dataclass(frozen=True)
class Scenario:
    """One registry entry: fixtures, resource under test, share and credentials.

    file_sources are applied in order; the resource under test goes last.
    workload_namespace is where the operator runs the share pod and service
    when that differs from the namespace of the resource.
    """

    name: str
    file_sources: tuple[FileSource, ...]
    resource: ResourceIdentity
    share_name: str
    auths: tuple[Auth, ...]
    endpoint_kinds: tuple[EndpointKind, ...] = (EndpointKind.POD_IP, EndpointKind.SERVICE_NAME)
    expected_events: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_EXPECTED_EVENTS)
    )
    extra_checks: tuple[Check, ...] = ()
    workload_namespace: str | None = None

    @property
    def pod_namespace(self) -> str:
        return self.workload_namespace or self.resource.namespace

    @property
    def label(self) -> str:
        return service_label(self.resource.name)


@dataclass
class CheckResult:
    name: str
    passed: bool
    message: str = ""
    duration: float = 0.0

    def __str__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        line = f"{status} {self.name} ({self.duration:.1f}s)"
        return f"{line}: {self.message}" if self.message else line


@dataclass
class ScenarioResult:
    """Outcome of a run, reported per check."""

    name: str
    state: ScenarioState = ScenarioState.UNINITIALIZED
    history: list[ScenarioState] = field(default_factory=list)
    checks: list[CheckResult] = field(default_factory=list)
    abort_error: HarnessError | None = None
    teardown_error: TeardownError | None = None
    torn_down: bool = False

    def transition(self, state: ScenarioState) -> None:
        if self.state is ScenarioState.FAILED:
            return
        self.history.append(self.state)
        self.state = state
        log.info("scenario_state", scenario=self.name, state=state.value)

    @property
    def failed_checks(self) -> list[CheckResult]:
        return [c for c in self.checks if not c.passed]

    @property
    def passed(self) -> bool:
        return (
            self.state is ScenarioState.TORN_DOWN
            and self.abort_error is None
            and self.teardown_error is None
            and not self.failed_checks
        )

    @property
    def status(self) -> str:
        return "passed" if self.passed else "failed"

    def report(self) -> str:
        lines = [f"scenario {self.name}: {self.status} (state={self.state.value})"]
        lines.extend(f"  {c}" for c in self.checks)
        if self.teardown_error:
            lines.append(f"  FAIL teardown: {self.teardown_error}")
        return "\n".join(lines)


@dataclass
class ScenarioContext:
    """Everything a check needs to look at the running scenario."""

    scenario: Scenario
    config: HarnessConfig
    k8s: K8sClient
    access: ShareAccessVerifier
    events: EventVerifier

    def workload_pod(self) -> dict:
        return self.k8s.get_pod_by_label(self.scenario.label, self.scenario.pod_namespace)


# -------------------------------------------------------------------------
# Base checks
# -------------------------------------------------------------------------


def check_pods_ready(ctx: ScenarioContext) -> None:
    try:
        wait_for_pod_ready(
            ctx.k8s,
            ctx.scenario.label,
            ctx.scenario.pod_namespace,
            timeout=ctx.config.ready_timeout,
            interval=ctx.config.poll_interval,
        )
    except PollTimeoutError as e:
        raise VerificationError("pods-ready", str(e)) from e


def check_access(ctx: ScenarioContext, kind: EndpointKind, auth: Auth) -> None:
    ctx.access.check_endpoint(
        kind,
        ctx.scenario.resource.name,
        ctx.scenario.pod_namespace,
        ctx.scenario.share_name,
        auth,
    )


def check_events(ctx: ScenarioContext) -> None:
    ctx.events.verify(ctx.scenario.resource, ctx.scenario.expected_events)


def build_checks(scenario: Scenario) -> list[Check]:
    """Ordered checks: readiness, access matrix, events, then extra checks."""
    checks = [Check("pods-ready", check_pods_ready)]
    for kind in scenario.endpoint_kinds:
        for auth in scenario.auths:
            checks.append(
                Check(
                    access_check_name(kind, auth),
                    partial(check_access, kind=kind, auth=auth),
                    parallel=True,
                )
            )
    checks.append(Check("events", check_events))
    checks.extend(scenario.extra_checks)
    return checks


# -------------------------------------------------------------------------
# Runner
# -------------------------------------------------------------------------


class ScenarioRunner:
    """Drive a scenario through setup, waiting, verification and teardown."""

    def __init__(
        self,
        scenario: Scenario,
        config: HarnessConfig,
        k8s: K8sClient,
        smbclient: SmbClient | None = None,
        fixtures: FixtureManager | None = None,
    ):
        self.scenario = scenario
        self.config = config
        self.k8s = k8s
        self.fixtures = fixtures or FixtureManager(k8s)
        client = smbclient or SmbClient(
            k8s,
            pod_name=config.smbclient_pod,
            namespace=config.namespace,
            timeout=config.operation_timeout,
        )
        self.context = ScenarioContext(
            scenario=scenario,
            config=config,
            k8s=k8s,
            access=ShareAccessVerifier(k8s, client, config),
            events=EventVerifier(k8s),
        )

    def run(self) -> ScenarioResult:
        """Run the scenario and return its per-check result.

        Setup and timeout errors stop the run early; check failures do not.
        Teardown runs in every case.
        """
        result = ScenarioResult(self.scenario.name)
        tracker = FixtureTracker(self.fixtures)
        try:
            self._step(result, "fixtures", lambda: self._apply_fixtures(tracker))
            result.transition(ScenarioState.FIXTURES_APPLIED)

            self._step(result, "workload-exists", self._wait_exists)
            result.transition(ScenarioState.WORKLOAD_DISCOVERED)

            self._step(result, "workload-ready", self._wait_ready)
            result.transition(ScenarioState.WORKLOAD_READY)

            self._verify(result)
        except (SetupError, PollTimeoutError) as e:
            result.abort_error = e
            result.transition(ScenarioState.FAILED)
        finally:
            self._teardown(tracker, result)

        log.info("scenario_finished", scenario=self.scenario.name, status=result.status)
        return result

    def _step(self, result: ScenarioResult, name: str, fn: Callable[[], None]) -> None:
        start = time.monotonic()
        try:
            fn()
        except HarnessError as e:
            result.checks.append(
                CheckResult(name, False, str(e), time.monotonic() - start)
            )
            raise
        result.checks.append(CheckResult(name, True, duration=time.monotonic() - start))

    def _apply_fixtures(self, tracker: FixtureTracker) -> None:
        for source in self.scenario.file_sources:
            tracker.apply(source)

    def _wait_exists(self) -> None:
        wait_for_pod_exists(
            self.k8s,
            self.scenario.label,
            self.scenario.pod_namespace,
            timeout=self.config.exist_timeout,
            interval=self.config.poll_interval,
        )

    def _wait_ready(self) -> None:
        wait_for_pod_ready(
            self.k8s,
            self.scenario.label,
            self.scenario.pod_namespace,
            timeout=self.config.ready_timeout,
            interval=self.config.poll_interval,
        )

    def _run_check(self, check: Check) -> CheckResult:
        start = time.monotonic()
        try:
            check.run(self.context)
        except VerificationError as e:
            outcome = CheckResult(check.name, False, e.message)
        except Exception as e:  # noqa: BLE001
            outcome = CheckResult(check.name, False, f"{type(e).__name__}: {e}")
        else:
            outcome = CheckResult(check.name, True)
        outcome.duration = time.monotonic() - start
        log.info(
            "check_finished",
            scenario=self.scenario.name,
            check=check.name,
            passed=outcome.passed,
            message=outcome.message or None,
        )
        return outcome

    def _run_parallel(self, checks: list[Check]) -> list[CheckResult]:
        workers = max(1, min(self.config.max_parallel_checks, len(checks)))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self._run_check, checks))

    def _verify(self, result: ScenarioResult) -> None:
        group: list[Check] = []
        for check in build_checks(self.scenario):
            if check.parallel:
                group.append(check)
                continue
            if group:
                result.checks.extend(self._run_parallel(group))
                group = []
            result.checks.append(self._run_check(check))
        if group:
            result.checks.extend(self._run_parallel(group))

        if result.failed_checks:
            result.transition(ScenarioState.FAILED)
        else:
            result.transition(ScenarioState.VERIFIED)

    def _teardown(self, tracker: FixtureTracker, result: ScenarioResult) -> None:
        try:
            tracker.cleanup_all()
        except TeardownError as e:
            log.error("scenario_teardown_failed", scenario=self.scenario.name, error=str(e))
            result.teardown_error = e
            result.transition(ScenarioState.FAILED)
            return
        result.torn_down = True
        result.transition(ScenarioState.TORN_DOWN)
