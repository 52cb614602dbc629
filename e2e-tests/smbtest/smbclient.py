"""smbclient driven through ``kubectl exec`` in an in-cluster client pod.

The share is only reachable from inside the cluster network, so the test
runner never talks SMB itself: it runs smbclient in a long-lived pod.
"""

import re
import subprocess
from dataclasses import dataclass, field

import structlog

from .config import HarnessConfig
from .errors import AccessFailureKind, HarnessError, SetupError, TeardownError
from .fixtures import FileSource, FixtureTracker, load_documents
from .k8s_client import K8sClient
from .polling import wait_for_pod_ready

log = structlog.get_logger(__name__)

AUTH_STATUSES = {
    "NT_STATUS_LOGON_FAILURE",
    "NT_STATUS_ACCESS_DENIED",
    "NT_STATUS_WRONG_PASSWORD",
    "NT_STATUS_NO_SUCH_USER",
    "NT_STATUS_ACCOUNT_DISABLED",
    "NT_STATUS_ACCOUNT_LOCKED_OUT",
    "NT_STATUS_PASSWORD_EXPIRED",
    "NT_STATUS_TRUSTED_DOMAIN_FAILURE",
}

CONNECTION_STATUSES = {
    "NT_STATUS_CONNECTION_REFUSED",
    "NT_STATUS_CONNECTION_RESET",
    "NT_STATUS_CONNECTION_DISCONNECTED",
    "NT_STATUS_HOST_UNREACHABLE",
    "NT_STATUS_NETWORK_UNREACHABLE",
    "NT_STATUS_IO_TIMEOUT",
    "NT_STATUS_UNSUCCESSFUL",
    "NT_STATUS_BAD_NETWORK_NAME",
    "NT_STATUS_INVALID_PARAMETER_MIX",
}

NT_STATUS_PATTERN = re.compile(r"NT_STATUS_[A-Z_]+")


@dataclass(frozen=True)
class Auth:
    """Credential for a share. The password is kept out of repr."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class Share:
    """A share on a host (IP address or DNS name)."""

    host: str
    name: str

    @property
    def unc(self) -> str:
        return f"//{self.host}/{self.name}"


def client_pod_name(source: FileSource) -> str:
    """Name of the Pod defined by the client pod fixture file.

    Raises:
        SetupError: If the file defines no Pod
    """
    for doc in load_documents(source):
        if doc["kind"] == "Pod":
            return doc["metadata"]["name"]
    raise SetupError(str(source), "no Pod defined")


CLIENT_POD_LABEL = "app=samba-operator-test-smbclient"


def ensure_client_pod(
    k8s: K8sClient, config: HarnessConfig, tracker: FixtureTracker
) -> str:
    """Apply the smbclient pod fixture and wait for the pod to be ready.

    The pod name in the fixture file must match ``config.smbclient_pod``.
    On failure whatever the tracker created is removed again.

    Returns:
        Name of the ready client pod

    Raises:
        SetupError: If the pod could not be created or did not become ready.
            A failed cleanup is appended to the reason, never replacing it.
    """
    source = FileSource(config.file_path("smbclient.yaml"), config.namespace)
    try:
        pod_name = client_pod_name(source)
        if pod_name != config.smbclient_pod:
            raise SetupError(
                str(source),
                f"defines pod {pod_name!r} but the client pod is "
                f"configured as {config.smbclient_pod!r}",
            )
        tracker.apply(source)
        wait_for_pod_ready(
            k8s,
            CLIENT_POD_LABEL,
            config.namespace,
            timeout=config.ready_timeout,
            interval=config.poll_interval,
        )
    except HarnessError as e:
        reason = f"client pod not available: {e}"
        try:
            tracker.cleanup_all()
        except TeardownError as cleanup_error:
            reason += f" (cleanup also failed: {cleanup_error})"
        raise SetupError(str(source), reason) from e
    return pod_name


class SmbCommandError(Exception):
    """An smbclient invocation failed."""

    def __init__(self, kind: AccessFailureKind, message: str):
        self.kind = kind
        super().__init__(message)


def classify_failure(output: str) -> AccessFailureKind:
    """Map smbclient output to a failure kind.

    Args:
        output: Combined stdout and stderr of smbclient

    Returns:
        AUTH or CONNECTION for known status codes, OPERATION otherwise
    """
    statuses = set(NT_STATUS_PATTERN.findall(output))
    if statuses & AUTH_STATUSES:
        return AccessFailureKind.AUTH
    if statuses & CONNECTION_STATUSES or re.search(
        r"Connection to .* failed", output
    ):
        return AccessFailureKind.CONNECTION
    return AccessFailureKind.OPERATION


class SmbClient:
    """Run smbclient commands against a share from the client pod."""

    def __init__(
        self,
        k8s: K8sClient,
        pod_name: str = "smbclient",
        namespace: str | None = None,
        timeout: float = 30,
    ):
        """Initialize the client.

        Args:
            k8s: K8sClient used to exec into the pod
            pod_name: Name of the pod that has smbclient installed
            namespace: Namespace of the client pod
            timeout: Upper bound for one smbclient invocation in seconds
        """
        self.k8s = k8s
        self.pod_name = pod_name
        self.namespace = namespace
        self.timeout = timeout

    def _exec(self, command: list[str]) -> tuple[str, str, int]:
        try:
            # kubectl outlives smbclient's own --timeout
            return self.k8s.exec_in_pod(
                self.pod_name,
                command,
                namespace=self.namespace,
                timeout=self.timeout + 5,
            )
        except subprocess.TimeoutExpired as e:
            raise SmbCommandError(
                AccessFailureKind.CONNECTION,
                f"timed out after {self.timeout:.0f}s: {' '.join(command[:2])}",
            ) from e

    def run(self, share: Share, auth: Auth, command: str) -> str:
        """Run one smbclient command string against a share.

        Args:
            share: Target share
            auth: Credential to log in with
            command: smbclient command(s), e.g. "ls"

        Returns:
            smbclient stdout

        Raises:
            SmbCommandError: On timeout, non-zero exit or an NT_STATUS error
        """
        argv = [
            "smbclient",
            share.unc,
            "-U",
            f"{auth.username}%{auth.password}",
            "--timeout",
            str(int(self.timeout)),
            "-c",
            command,
        ]
        log.debug("smbclient_run", share=share.unc, user=auth.username, command=command)
        stdout, stderr, returncode = self._exec(argv)
        output = f"{stdout}\n{stderr}"
        if returncode != 0 or NT_STATUS_PATTERN.search(output):
            kind = classify_failure(output)
            raise SmbCommandError(
                kind,
                f"{command!r} on {share.unc} as {auth.username} failed "
                f"(rc={returncode}): {output.strip()[-500:]}",
            )
        return stdout

    def resolves(self, hostname: str) -> bool:
        """Return True if hostname resolves from inside the client pod."""
        stdout, _, returncode = self._exec(["getent", "hosts", hostname])
        return returncode == 0 and bool(stdout.strip())
