"""Bounded-time polling of cluster state.

Polling uses a constant interval with no backoff: the operator reconciles
quickly, so the deadline is what bounds a wait, not the retry schedule.
Each evaluation runs in a worker thread and is waited on for the time left
before the deadline, so a hung kubectl call cannot stretch the wait.
"""

import concurrent.futures
import time
from typing import Callable

import structlog

from .errors import PollTimeoutError
from .k8s_client import K8sClient

log = structlog.get_logger(__name__)

DEFAULT_INTERVAL = 0.25

# Floor for the per-call kubectl timeout handed to probes
MIN_CALL_TIMEOUT = 0.1


class Probe:
    """A side-effect-free condition that can describe what it last saw.

    ``call_timeout`` is set by ``wait_for`` to the time left before the
    deadline; probes pass it on to their kubectl queries.
    """

    def __init__(self) -> None:
        self.last_state: str | None = None
        self.call_timeout: float | None = None

    def __call__(self) -> bool:
        raise NotImplementedError

    def describe(self) -> str | None:
        return self.last_state


def wait_for(
    condition: Callable[[], bool],
    timeout: float,
    interval: float = DEFAULT_INTERVAL,
    description: str = "condition",
) -> None:
    """Poll until condition is True or the deadline passes.

    The condition is evaluated immediately, then every ``interval`` seconds.
    Neither sleeps nor a slow evaluation run past the deadline, so a timeout
    is raised at most one interval after it.

    Args:
        condition: Callable returning True when the target state holds.
            Exceptions it raises are remembered and polling continues.
        timeout: Maximum wait time in seconds
        interval: Poll interval in seconds
        description: What is being waited for, used in errors and logs

    Raises:
        PollTimeoutError: If the condition did not hold within timeout
    """
    start = time.monotonic()
    attempts = 0
    last_error: Exception | None = None
    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=1, thread_name_prefix="poll"
    )

    try:
        while True:
            attempts += 1
            remaining = timeout - (time.monotonic() - start)
            if isinstance(condition, Probe):
                condition.call_timeout = max(remaining, MIN_CALL_TIMEOUT)

            future = executor.submit(condition)
            try:
                satisfied = future.result(timeout=max(remaining, 0))
            except concurrent.futures.TimeoutError:
                if future.done():
                    last_error = future.exception()
                else:
                    last_error = TimeoutError(f"evaluation still running after {timeout}s")
                satisfied = False
            except Exception as e:  # noqa: BLE001
                last_error = e
                satisfied = False

            if satisfied:
                log.debug(
                    "poll_satisfied",
                    description=description,
                    attempts=attempts,
                    elapsed=round(time.monotonic() - start, 3),
                )
                return

            elapsed = time.monotonic() - start
            if elapsed >= timeout:
                last_state = condition.describe() if isinstance(condition, Probe) else None
                log.warning(
                    "poll_timed_out",
                    description=description,
                    attempts=attempts,
                    last_state=last_state,
                )
                raise PollTimeoutError(description, timeout, last_state, last_error)

            sleep_time = min(interval, timeout - elapsed)
            if sleep_time > 0:
                time.sleep(sleep_time)
    finally:
        # An evaluation abandoned at the deadline finishes in the background
        executor.shutdown(wait=False, cancel_futures=True)


# -------------------------------------------------------------------------
# Pod probes
# -------------------------------------------------------------------------


def _pod_summary(pod: dict) -> str:
    name = pod.get("metadata", {}).get("name", "?")
    status = pod.get("status", {})
    conditions = ",".join(
        f"{c.get('type')}={c.get('status')}" for c in status.get("conditions", [])
    )
    return f"{name} phase={status.get('phase')} [{conditions}]"


def pod_is_ready(pod: dict) -> bool:
    """Return True when every reported pod condition is True."""
    conditions = pod.get("status", {}).get("conditions", [])
    if not conditions:
        return False
    return all(c.get("status") == "True" for c in conditions)


class PodExists(Probe):
    """Holds when at least one pod matches the label selector."""

    def __init__(self, k8s: K8sClient, label_selector: str, namespace: str):
        super().__init__()
        self.k8s = k8s
        self.label_selector = label_selector
        self.namespace = namespace

    def __call__(self) -> bool:
        pods = self.k8s.list_pods(
            self.label_selector, self.namespace, timeout=self.call_timeout
        )
        self.last_state = f"{len(pods)} pod(s) matching {self.label_selector}"
        return len(pods) > 0


class PodReady(PodExists):
    """Holds when matching pods exist and all of them are ready."""

    def __call__(self) -> bool:
        pods = self.k8s.list_pods(
            self.label_selector, self.namespace, timeout=self.call_timeout
        )
        if not pods:
            self.last_state = f"no pods matching {self.label_selector}"
            return False
        self.last_state = "; ".join(_pod_summary(p) for p in pods)
        return all(pod_is_ready(p) for p in pods)


def wait_for_pod_exists(
    k8s: K8sClient,
    label_selector: str,
    namespace: str,
    timeout: float = 10,
    interval: float = DEFAULT_INTERVAL,
) -> None:
    """Wait for a pod matching label_selector to exist."""
    wait_for(
        PodExists(k8s, label_selector, namespace),
        timeout,
        interval,
        description=f"pod {label_selector} to exist in {namespace}",
    )


def wait_for_pod_ready(
    k8s: K8sClient,
    label_selector: str,
    namespace: str,
    timeout: float = 60,
    interval: float = DEFAULT_INTERVAL,
) -> None:
    """Wait for pods matching label_selector to report ready."""
    wait_for(
        PodReady(k8s, label_selector, namespace),
        timeout,
        interval,
        description=f"pod {label_selector} to be ready in {namespace}",
    )
