"""In-memory cluster fakes for harness unit tests.

FakeK8s stands in for kubectl, FakeOperator reacts to SmbShare creation the
way samba-operator does, and FakeSmbServer answers smbclient commands run
through ``exec_in_pod``.
"""

import copy
import subprocess
import uuid
from typing import Callable

from smbtest.endpoints import SERVICE_LABEL_KEY
from smbtest.k8s_client import K8sClient, resource_ref

NAMESPACE = "test-ns"


def make_pod(
    name: str,
    share: str,
    ip: str | None = "10.0.0.5",
    ready: bool = True,
    containers: tuple[str, ...] = ("samba",),
) -> dict:
    status = "True" if ready else "False"
    return {
        "metadata": {"name": name, "labels": {SERVICE_LABEL_KEY: share}},
        "spec": {"containers": [{"name": c} for c in containers]},
        "status": {
            "phase": "Running",
            "podIP": ip,
            "conditions": [
                {"type": "PodScheduled", "status": "True"},
                {"type": "Initialized", "status": "True"},
                {"type": "ContainersReady", "status": status},
                {"type": "Ready", "status": status},
            ],
            "containerStatuses": [{"name": c, "ready": ready} for c in containers],
        },
    }


def make_service(share: str, svc_type: str = "ClusterIP") -> dict:
    return {
        "metadata": {"name": share, "labels": {SERVICE_LABEL_KEY: share}},
        "spec": {"type": svc_type},
    }


def make_event(obj: dict, reason: str, count: int = 1) -> dict:
    return {
        "reason": reason,
        "type": "Normal",
        "count": count,
        "message": f"{reason} for {obj['metadata']['name']}",
        "involvedObject": {
            "kind": obj["kind"],
            "name": obj["metadata"]["name"],
            "uid": obj["metadata"]["uid"],
        },
    }


class FakeK8s(K8sClient):
    """K8sClient backed by dicts instead of kubectl."""

    def __init__(self, namespace: str = NAMESPACE):
        super().__init__(namespace=namespace)
        self.objects: dict[tuple[str, str, str], dict] = {}
        self.pods: dict[str, list[dict]] = {}
        self.services: dict[str, list[dict]] = {}
        self.events: dict[str, list[dict]] = {}
        self.fail_create: set[str] = set()
        self.fail_delete: set[str] = set()
        self.created: list[tuple[str, str, str]] = []
        self.deleted: list[tuple[str, str, str]] = []
        self.list_calls = 0
        self.list_timeouts: list[float | None] = []
        self.on_create: list[Callable[[dict, str], None]] = []
        self.exec_handler: Callable[[list[str]], tuple[str, str, int]] | None = None

    def get(self, kind, name, namespace=None):
        return self.objects.get((kind, self._ns(namespace), name))

    def create(self, manifest, namespace=None):
        ns = self._ns(namespace)
        name = manifest["metadata"]["name"]
        if name in self.fail_create:
            raise RuntimeError(f"kubectl create failed: admission webhook denied {name}")
        key = (resource_ref(manifest.get("apiVersion", "v1"), manifest["kind"]), ns, name)
        if key in self.objects:
            return None
        obj = copy.deepcopy(manifest)
        obj["metadata"]["uid"] = str(uuid.uuid4())
        self.objects[key] = obj
        self.created.append(key)
        for hook in self.on_create:
            hook(obj, ns)
        return obj

    def delete(self, kind, name, namespace=None, wait=True, timeout=60, ignore_not_found=True):
        if name in self.fail_delete:
            raise subprocess.CalledProcessError(
                1, ["kubectl", "delete", kind, name], output="", stderr="Error from server (Forbidden)"
            )
        key = (kind, self._ns(namespace), name)
        self.deleted.append(key)
        return self.objects.pop(key, None) is not None

    def list_resources(self, kind, label_selector=None, namespace=None, timeout=None):
        self.list_calls += 1
        self.list_timeouts.append(timeout)
        pool = {"pod": self.pods, "service": self.services}[kind]
        items = pool.get(self._ns(namespace), [])
        if label_selector:
            key, value = label_selector.split("=", 1)
            items = [i for i in items if i["metadata"].get("labels", {}).get(key) == value]
        return items

    def get_events(self, field_selector=None, namespace=None):
        events = self.events.get(self._ns(namespace), [])
        if not field_selector:
            return events
        wanted = dict(part.split("=", 1) for part in field_selector.split(","))
        return [
            e
            for e in events
            if all(
                e["involvedObject"].get(k.split(".", 1)[1]) == v for k, v in wanted.items()
            )
        ]

    def exec_in_pod(self, pod_name, command, namespace=None, container=None, timeout=60):
        assert self.exec_handler is not None, "no exec handler installed"
        return self.exec_handler(command)

    def get_pod_logs(self, pod_name, namespace=None, container=None, since="5m", tail=None):
        return ""

    def fixture_keys(self) -> set[tuple[str, str, str]]:
        return set(self.objects)


class FakeOperator:
    """Creates the pod, service and events for each new SmbShare.

    Args:
        workload_namespace: Namespace for pods/services (default: the share's)
        ready_after: Number of pod list calls before the pod turns ready
        containers: Container names of the share pod
        service_type: Type of the created service
        extra_events: Additional (reason, count) events to record
    """

    def __init__(
        self,
        k8s: FakeK8s,
        workload_namespace: str | None = None,
        ready_after: int = 0,
        containers: tuple[str, ...] = ("samba",),
        service_type: str = "ClusterIP",
        extra_events: tuple[tuple[str, int], ...] = (),
        create_pod: bool = True,
    ):
        self.k8s = k8s
        self.workload_namespace = workload_namespace
        self.ready_after = ready_after
        self.containers = containers
        self.service_type = service_type
        self.extra_events = extra_events
        self.create_pod = create_pod
        k8s.on_create.append(self)

    def __call__(self, obj: dict, namespace: str) -> None:
        if obj["kind"] != "SmbShare":
            return
        share = obj["metadata"]["name"]
        ns = self.workload_namespace or namespace
        if self.create_pod:
            pod = make_pod(
                f"{share}-6f7d9c-abcde",
                share,
                ready=self.ready_after == 0,
                containers=self.containers,
            )
            self.k8s.pods.setdefault(ns, []).append(pod)
            if self.ready_after:
                self._flip_ready_later(pod)
        self.k8s.services.setdefault(ns, []).append(make_service(share, self.service_type))
        events = self.k8s.events.setdefault(namespace, [])
        events.append(make_event(obj, "CreatedPersistentVolumeClaim"))
        events.append(make_event(obj, "CreatedDeployment"))
        for reason, count in self.extra_events:
            events.append(make_event(obj, reason, count))

    def _flip_ready_later(self, pod: dict) -> None:
        start = self.k8s.list_calls
        original = self.k8s.list_resources

        def list_resources(kind, label_selector=None, namespace=None, timeout=None):
            if self.k8s.list_calls - start >= self.ready_after:
                for cond in pod["status"]["conditions"]:
                    cond["status"] = "True"
                for cs in pod["status"]["containerStatuses"]:
                    cs["ready"] = True
            return original(kind, label_selector, namespace, timeout)

        self.k8s.list_resources = list_resources


class FakeSmbServer:
    """Answers smbclient and getent commands like a running share would."""

    def __init__(self, k8s: FakeK8s):
        self.hosts: set[str] = set()
        self.resolvable: set[str] = set()
        self.hanging: set[str] = set()
        self.users: dict[str, str] = {}
        self.shares: set[str] = set()
        self.files: set[str] = set()
        self.commands: list[str] = []
        k8s.exec_handler = self

    def __call__(self, command: list[str]) -> tuple[str, str, int]:
        if command[0] == "getent":
            host = command[-1]
            if host in self.resolvable:
                return f"10.0.0.9      {host}\n", "", 0
            return "", "", 2

        unc, creds, smb_cmd = command[1], command[3], command[-1]
        host, share = unc[2:].split("/", 1)
        user, password = creds.split("%", 1)
        self.commands.append(smb_cmd)

        if host in self.hanging:
            raise subprocess.TimeoutExpired(command, 35)
        if host not in self.hosts:
            return "", f"do_connect: Connection to {host} failed (Error NT_STATUS_HOST_UNREACHABLE)", 1
        if self.users.get(user) != password:
            return "", "session setup failed: NT_STATUS_LOGON_FAILURE", 1
        if share not in self.shares:
            return "", "tree connect failed: NT_STATUS_BAD_NETWORK_NAME", 1

        verb, *args = smb_cmd.split()
        if verb == "ls" and not args:
            return "  .  D  0\n" + "".join(f"  {f}  A  6\n" for f in sorted(self.files)), "", 0
        if verb == "ls":
            if args[0] in self.files:
                return f"  {args[0]}  A  6\n", "", 0
            return f"NT_STATUS_NO_SUCH_FILE listing \\{args[0]}", "", 1
        if verb == "put":
            self.files.add(args[1])
            return f"putting file {args[0]} as \\{args[1]}", "", 0
        if verb == "get":
            if args[0] in self.files:
                return f"getting file \\{args[0]}", "", 0
            return "NT_STATUS_OBJECT_NAME_NOT_FOUND opening remote file", "", 1
        if verb == "del":
            self.files.discard(args[0])
            return "", "", 0
        return "", f"{verb}: command not found", 1
