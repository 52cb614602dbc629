"""Share access verification over every endpoint kind and credential."""

import subprocess
import time
import uuid

import structlog

from .config import HarnessConfig
from .endpoints import EndpointKind, external_dns_name, service_dns_name, service_label
from .errors import AccessFailureKind, PollTimeoutError, ShareAccessError
from .k8s_client import K8sClient
from .polling import wait_for
from .smbclient import Auth, Share, SmbClient, SmbCommandError

log = structlog.get_logger(__name__)


def access_check_name(kind: EndpointKind, auth: Auth) -> str:
    return f"access[{kind.value}:{auth.username}]"


class ShareAccessVerifier:
    """Resolve share endpoints and run a small read/write/list round trip."""

    def __init__(self, k8s: K8sClient, client: SmbClient, config: HarnessConfig):
        self.k8s = k8s
        self.client = client
        self.config = config

    def resolve(self, kind: EndpointKind, resource_name: str, workload_namespace: str) -> str:
        """Return the host string for an endpoint kind.

        The pod IP is assigned by the cluster, so it is read from the live
        pod. DNS names are derived from the resource name.

        Raises:
            LookupError: If the pod or its IP cannot be found
        """
        if kind is EndpointKind.POD_IP:
            pod = self.k8s.get_pod_by_label(service_label(resource_name), workload_namespace)
            ip = pod.get("status", {}).get("podIP")
            if not ip:
                raise LookupError(f"pod {pod['metadata']['name']} has no IP yet")
            return ip
        if kind is EndpointKind.SERVICE_NAME:
            return service_dns_name(resource_name, workload_namespace, self.config.cluster_domain)
        return external_dns_name(resource_name, self.config.dns_domain)

    def wait_for_dns(self, hostname: str) -> None:
        """Give a freshly registered DNS name time to resolve.

        A short settle delay comes first, then resolution is polled from the
        client pod until dns_resolve_timeout. Registration can still lag
        past that; the result is a best effort, not a guarantee.
        """
        if self.config.dns_settle_delay > 0:
            time.sleep(self.config.dns_settle_delay)
        if self.config.dns_resolve_timeout <= 0:
            return
        wait_for(
            lambda: self.client.resolves(hostname),
            timeout=self.config.dns_resolve_timeout,
            interval=max(self.config.poll_interval, 0.5),
            description=f"{hostname} to resolve",
        )

    def verify(self, check: str, share: Share, auth: Auth) -> None:
        """Log in, list, write, list, read and delete a file on the share.

        Raises:
            ShareAccessError: On the first step that fails
        """
        remote = f"smbtest-{uuid.uuid4().hex[:8]}.txt"
        steps = [
            ("list share", "ls"),
            ("write file", f"put /etc/hostname {remote}"),
            ("list file", f"ls {remote}"),
            ("read file", f"get {remote} /dev/null"),
            ("delete file", f"del {remote}"),
        ]
        written = False
        for step, command in steps:
            try:
                output = self.client.run(share, auth, command)
            except SmbCommandError as e:
                if written and step != "delete file":
                    self._discard(share, auth, remote)
                raise ShareAccessError(check, e.kind, f"{step}: {e}") from e
            if step == "write file":
                written = True
            elif step == "list file" and remote not in output:
                self._discard(share, auth, remote)
                raise ShareAccessError(
                    check,
                    AccessFailureKind.OPERATION,
                    f"{remote} missing from listing of {share.unc}",
                )
        log.info("share_access_ok", check=check, share=share.unc, user=auth.username)

    def _discard(self, share: Share, auth: Auth, remote: str) -> None:
        try:
            self.client.run(share, auth, f"del {remote}")
        except SmbCommandError as e:
            log.warning("share_file_not_removed", share=share.unc, file=remote, error=str(e))

    def check_endpoint(
        self,
        kind: EndpointKind,
        resource_name: str,
        workload_namespace: str,
        share_name: str,
        auth: Auth,
    ) -> None:
        """Resolve one endpoint kind and verify access with one credential.

        Raises:
            ShareAccessError: If the endpoint cannot be resolved or used
        """
        check = access_check_name(kind, auth)
        try:
            host = self.resolve(kind, resource_name, workload_namespace)
            if kind is EndpointKind.DOMAIN_NAME:
                self.wait_for_dns(host)
        except (LookupError, PollTimeoutError, subprocess.SubprocessError) as e:
            raise ShareAccessError(check, AccessFailureKind.CONNECTION, str(e)) from e

        self.verify(check, Share(host=host, name=share_name), auth)
