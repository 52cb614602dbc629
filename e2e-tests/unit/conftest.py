"""Fixtures for harness unit tests."""

from pathlib import Path
from typing import Callable

import pytest
import yaml

from smbtest.config import HarnessConfig
from smbtest.fixtures import FileSource
from smbtest.smbclient import Auth, SmbClient

from fakes import NAMESPACE, FakeK8s, FakeSmbServer


# -------------------------------------------------------------------------
# Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def fake_k8s() -> FakeK8s:
    return FakeK8s()


@pytest.fixture
def smb_server(fake_k8s: FakeK8s) -> FakeSmbServer:
    server = FakeSmbServer(fake_k8s)
    server.hosts.update(
        {
            "10.0.0.5",
            "tshare1.test-ns.svc.cluster.local",
            "tshare1-cluster.domain1.sink.test",
        }
    )
    server.resolvable.add("tshare1-cluster.domain1.sink.test")
    server.users["sambauser"] = "1nsecurely"
    server.shares.add("My Share")
    return server


@pytest.fixture
def harness_config(tmp_path: Path) -> HarnessConfig:
    return HarnessConfig(
        namespace=NAMESPACE,
        files_dir=tmp_path,
        kubeconfig=None,
        exist_timeout=0.5,
        ready_timeout=0.5,
        poll_interval=0.02,
        operation_timeout=5,
        dns_settle_delay=0,
        dns_resolve_timeout=0.3,
    )


@pytest.fixture
def smbclient(fake_k8s: FakeK8s, harness_config: HarnessConfig) -> SmbClient:
    return SmbClient(fake_k8s, namespace=NAMESPACE, timeout=harness_config.operation_timeout)


@pytest.fixture
def sambauser() -> Auth:
    return Auth("sambauser", "1nsecurely")


@pytest.fixture
def write_fixture(tmp_path: Path) -> Callable[..., FileSource]:
    """Write YAML documents to a file and return its FileSource."""

    def write(filename: str, *docs: dict, namespace: str = NAMESPACE) -> FileSource:
        path = tmp_path / filename
        path.write_text(yaml.safe_dump_all(docs))
        return FileSource(path, namespace)

    return write


@pytest.fixture
def secret_doc() -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": "users1"},
        "stringData": {"demousers": "{}"},
    }


@pytest.fixture
def share_doc() -> dict:
    return {
        "apiVersion": "samba-operator.samba.org/v1alpha1",
        "kind": "SmbShare",
        "metadata": {"name": "tshare1"},
        "spec": {"shareName": "My Share", "securityConfig": "users1"},
    }
