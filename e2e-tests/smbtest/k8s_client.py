"""Kubernetes client wrapper using kubectl for E2E tests."""

import json
import os
import subprocess
from dataclasses import dataclass
from typing import Any

import structlog
import yaml

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResourceIdentity:
    """Namespaced identity of a declarative object.

    uid is only known after the object has been looked up in the cluster.
    """

    api_version: str
    kind: str
    name: str
    namespace: str
    uid: str | None = None

    @property
    def ref(self) -> str:
        """kubectl resource reference (``kind.version.group`` for API groups)."""
        return resource_ref(self.api_version, self.kind)

    def __str__(self) -> str:
        return f"{self.kind} {self.namespace}/{self.name}"


def resource_ref(api_version: str, kind: str) -> str:
    """Build a fully qualified kubectl resource type.

    Args:
        api_version: apiVersion of the object (e.g., "v1", "apps/v1")
        kind: Kind of the object (e.g., "SmbShare")

    Returns:
        "Kind" for the core group, "Kind.version.group" otherwise
    """
    if "/" not in api_version:
        return kind
    group, version = api_version.split("/", 1)
    return f"{kind}.{version}.{group}"


class K8sClient:
    """Wrapper for kubectl operations with proper error handling."""

    def __init__(
        self,
        namespace: str = "default",
        kubeconfig: str | None = None,
        request_timeout: float = 30,
    ):
        """Initialize the K8s client.

        Args:
            namespace: Default namespace for operations
            kubeconfig: Path to kubeconfig file (uses KUBECONFIG env or default if None)
            request_timeout: Default timeout for a single kubectl call in seconds
        """
        self.namespace = namespace
        self.kubeconfig = kubeconfig or os.environ.get("KUBECONFIG")
        self.request_timeout = request_timeout

    def _ns(self, namespace: str | None) -> str:
        return namespace or self.namespace

    def _kubectl(
        self,
        args: list[str],
        input_data: str | None = None,
        timeout: float | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run kubectl command.

        Args:
            args: kubectl arguments
            input_data: Optional stdin data
            timeout: Command timeout in seconds (defaults to request_timeout)
            check: Whether to raise on non-zero exit

        Returns:
            CompletedProcess with stdout/stderr

        Raises:
            subprocess.CalledProcessError: On non-zero exit when check is set
            subprocess.TimeoutExpired: When kubectl does not finish in time
        """
        cmd = ["kubectl"]
        if self.kubeconfig:
            cmd.extend(["--kubeconfig", self.kubeconfig])
        cmd.extend(args)

        result = subprocess.run(
            cmd,
            input=input_data,
            capture_output=True,
            text=True,
            timeout=timeout or self.request_timeout,
            check=False,
        )
        if check and result.returncode != 0:
            raise subprocess.CalledProcessError(
                result.returncode,
                cmd,
                output=result.stdout,
                stderr=result.stderr,
            )
        return result

    def _kubectl_json(self, args: list[str], timeout: float | None = None) -> Any:
        """Run kubectl command and parse JSON output.

        Args:
            args: kubectl arguments (without -o json)
            timeout: Command timeout

        Returns:
            Parsed JSON or None if resource not found
        """
        try:
            result = self._kubectl(args + ["-o", "json"], timeout=timeout)
            return json.loads(result.stdout)
        except subprocess.CalledProcessError as e:
            if "NotFound" in e.stderr or "not found" in e.stderr.lower():
                return None
            raise

    # -------------------------------------------------------------------------
    # Generic Resource Operations
    # -------------------------------------------------------------------------

    def create(self, manifest: dict, namespace: str | None = None) -> dict | None:
        """Create an object from a manifest.

        Args:
            manifest: Object manifest as dict
            namespace: Target namespace

        Returns:
            Created resource as dict, or None if it already exists
        """
        try:
            result = self._kubectl(
                ["-n", self._ns(namespace), "create", "-f", "-", "-o", "json"],
                input_data=yaml.safe_dump(manifest),
            )
            return json.loads(result.stdout)
        except subprocess.CalledProcessError as e:
            if "AlreadyExists" in e.stderr or "already exists" in e.stderr.lower():
                return None
            raise RuntimeError(
                f"kubectl create failed: {e.stderr or e.output or 'unknown error'}"
            ) from e

    def delete(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
        wait: bool = True,
        timeout: int = 60,
        ignore_not_found: bool = True,
    ) -> bool:
        """Delete a resource.

        Args:
            kind: Resource kind (e.g., "secret", "SmbShare.v1alpha1.samba-operator.samba.org")
            name: Resource name
            namespace: Namespace of the resource
            wait: Whether to wait for deletion
            timeout: Wait timeout in seconds
            ignore_not_found: Don't error if resource doesn't exist

        Returns:
            True if deleted, False if not found
        """
        args = ["-n", self._ns(namespace), "delete", kind, name]
        if wait:
            args.append("--wait=true")
            args.extend(["--timeout", f"{timeout}s"])
        if ignore_not_found:
            args.append("--ignore-not-found=true")

        try:
            # --ignore-not-found prints nothing when there was nothing to delete
            result = self._kubectl(args, timeout=timeout + 10)
            return "deleted" in result.stdout
        except subprocess.CalledProcessError as e:
            if ignore_not_found and "not found" in e.stderr.lower():
                return False
            raise

    def get(self, kind: str, name: str, namespace: str | None = None) -> dict | None:
        """Get a resource by name.

        Args:
            kind: Resource kind
            name: Resource name
            namespace: Namespace of the resource

        Returns:
            Resource dict or None if not found
        """
        return self._kubectl_json(["-n", self._ns(namespace), "get", kind, name])

    def list_resources(
        self,
        kind: str,
        label_selector: str | None = None,
        namespace: str | None = None,
        timeout: float | None = None,
    ) -> list[dict]:
        """List resources of a kind.

        Args:
            kind: Resource kind
            label_selector: Optional label selector
            namespace: Namespace to list in
            timeout: kubectl timeout (defaults to request_timeout)

        Returns:
            List of resource dicts
        """
        args = ["-n", self._ns(namespace), "get", kind]
        if label_selector:
            args.extend(["-l", label_selector])

        result = self._kubectl_json(args, timeout=timeout)
        if result and "items" in result:
            return result["items"]
        return []

    def get_identity(
        self, api_version: str, kind: str, name: str, namespace: str | None = None
    ) -> ResourceIdentity | None:
        """Look up the identity of any object, including custom resources.

        Only metadata is read so this works across schema versions.

        Returns:
            ResourceIdentity with uid set, or None if not found
        """
        namespace = self._ns(namespace)
        obj = self.get(resource_ref(api_version, kind), name, namespace)
        if not obj:
            return None
        metadata = obj.get("metadata", {})
        return ResourceIdentity(
            api_version=obj.get("apiVersion", api_version),
            kind=obj.get("kind", kind),
            name=metadata.get("name", name),
            namespace=metadata.get("namespace", namespace),
            uid=metadata.get("uid"),
        )

    # -------------------------------------------------------------------------
    # Pod and Service Operations
    # -------------------------------------------------------------------------

    def list_pods(
        self,
        label_selector: str,
        namespace: str | None = None,
        timeout: float | None = None,
    ) -> list[dict]:
        """List pods matching a label selector."""
        return self.list_resources("pod", label_selector, namespace, timeout)

    def get_pod_by_label(self, label_selector: str, namespace: str | None = None) -> dict:
        """Get the single pod matching a label selector.

        Raises:
            LookupError: If no pod or more than one pod matches
        """
        pods = self.list_pods(label_selector, namespace)
        if len(pods) != 1:
            raise LookupError(
                f"expected 1 pod matching {label_selector!r} "
                f"in {self._ns(namespace)}, found {len(pods)}"
            )
        return pods[0]

    def list_services(
        self, label_selector: str, namespace: str | None = None
    ) -> list[dict]:
        """List services matching a label selector."""
        return self.list_resources("service", label_selector, namespace)

    def exec_in_pod(
        self,
        pod_name: str,
        command: list[str],
        namespace: str | None = None,
        container: str | None = None,
        timeout: float = 60,
    ) -> tuple[str, str, int]:
        """Execute command in a Pod.

        Args:
            pod_name: Pod name
            command: Command to execute
            namespace: Namespace of the pod
            container: Container name (optional)
            timeout: Execution timeout

        Returns:
            Tuple of (stdout, stderr, return_code)

        Raises:
            subprocess.TimeoutExpired: If the command does not finish in time
        """
        args = ["-n", self._ns(namespace), "exec", pod_name]
        if container:
            args.extend(["-c", container])
        args.append("--")
        args.extend(command)

        result = self._kubectl(args, timeout=timeout, check=False)
        return result.stdout, result.stderr, result.returncode

    # -------------------------------------------------------------------------
    # Log and Event Collection
    # -------------------------------------------------------------------------

    def get_pod_logs(
        self,
        pod_name: str,
        namespace: str | None = None,
        container: str | None = None,
        since: str | None = "5m",
        tail: int | None = None,
    ) -> str:
        """Get logs from a Pod.

        Args:
            pod_name: Pod name
            namespace: Namespace of the pod
            container: Container name (optional)
            since: Time duration (e.g., "5m")
            tail: Number of lines to return

        Returns:
            Log output
        """
        args = ["-n", self._ns(namespace), "logs", pod_name]
        if container:
            args.extend(["-c", container])
        if since:
            args.extend(["--since", since])
        if tail:
            args.extend(["--tail", str(tail)])

        try:
            result = self._kubectl(args, check=False)
            return result.stdout
        except subprocess.TimeoutExpired:
            log.warning("pod_logs_timed_out", pod=pod_name)
            return ""

    def get_events(
        self, field_selector: str | None = None, namespace: str | None = None
    ) -> list[dict]:
        """Get events in a namespace.

        Args:
            field_selector: Optional field selector
            namespace: Namespace to list events in

        Returns:
            List of events
        """
        args = ["-n", self._ns(namespace), "get", "events", "--sort-by=.lastTimestamp"]
        if field_selector:
            args.extend(["--field-selector", field_selector])

        result = self._kubectl_json(args)
        if result and "items" in result:
            return result["items"]
        return []

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def cluster_info(self) -> bool:
        """Check if cluster is accessible.

        Returns:
            True if cluster is accessible
        """
        try:
            self._kubectl(["cluster-info"], timeout=10)
            return True
        except (subprocess.SubprocessError, OSError):
            return False
