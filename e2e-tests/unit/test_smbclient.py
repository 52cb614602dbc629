"""smbclient wrapper tests."""

import dataclasses

import pytest

from smbtest.config import DEFAULT_FILES_DIR, HarnessConfig
from smbtest.errors import AccessFailureKind, SetupError
from smbtest.fixtures import FileSource, FixtureManager, FixtureTracker
from smbtest.smbclient import (
    Auth,
    Share,
    SmbClient,
    SmbCommandError,
    classify_failure,
    client_pod_name,
    ensure_client_pod,
)

from fakes import NAMESPACE, FakeK8s, FakeSmbServer, make_pod

SHARE = Share("10.0.0.5", "My Share")


@pytest.mark.parametrize(
    "output, kind",
    [
        ("session setup failed: NT_STATUS_LOGON_FAILURE", AccessFailureKind.AUTH),
        ("tree connect failed: NT_STATUS_ACCESS_DENIED", AccessFailureKind.AUTH),
        (
            "do_connect: Connection to 10.0.0.9 failed (Error NT_STATUS_IO_TIMEOUT)",
            AccessFailureKind.CONNECTION,
        ),
        ("Connection to tshare1 failed", AccessFailureKind.CONNECTION),
        ("tree connect failed: NT_STATUS_BAD_NETWORK_NAME", AccessFailureKind.CONNECTION),
        ("NT_STATUS_DISK_FULL uploading", AccessFailureKind.OPERATION),
        ("something odd", AccessFailureKind.OPERATION),
    ],
)
def test_classify_failure(output: str, kind: AccessFailureKind):
    assert classify_failure(output) is kind


def test_auth_repr_hides_password():
    assert "1nsecurely" not in repr(Auth("sambauser", "1nsecurely"))


def test_share_unc():
    assert SHARE.unc == "//10.0.0.5/My Share"


class TestSmbClient:
    """Running smbclient through exec."""

    def test_run_returns_output(
        self, smbclient: SmbClient, smb_server: FakeSmbServer, sambauser: Auth
    ):
        smb_server.files.add("hello.txt")
        assert "hello.txt" in smbclient.run(SHARE, sambauser, "ls")

    def test_run_passes_credentials(self, smbclient: SmbClient, smb_server: FakeSmbServer):
        with pytest.raises(SmbCommandError) as exc_info:
            smbclient.run(SHARE, Auth("sambauser", "wrong"), "ls")
        assert exc_info.value.kind is AccessFailureKind.AUTH

    def test_nt_status_in_output_is_failure(
        self, smbclient: SmbClient, smb_server: FakeSmbServer, sambauser: Auth
    ):
        with pytest.raises(SmbCommandError) as exc_info:
            smbclient.run(SHARE, sambauser, "ls missing.txt")
        assert exc_info.value.kind is AccessFailureKind.OPERATION

    def test_exec_timeout_is_connection_failure(
        self, smbclient: SmbClient, smb_server: FakeSmbServer, sambauser: Auth
    ):
        smb_server.hanging.add("10.0.0.5")
        with pytest.raises(SmbCommandError, match="timed out") as exc_info:
            smbclient.run(SHARE, sambauser, "ls")
        assert exc_info.value.kind is AccessFailureKind.CONNECTION

    def test_resolves(self, smbclient: SmbClient, smb_server: FakeSmbServer):
        assert smbclient.resolves("tshare1-cluster.domain1.sink.test")
        assert not smbclient.resolves("unknown.domain1.sink.test")


CLIENT_POD_DOC = {
    "apiVersion": "v1",
    "kind": "Pod",
    "metadata": {"name": "smbclient", "labels": {"app": "samba-operator-test-smbclient"}},
    "spec": {"containers": [{"name": "smbclient", "image": "samba-client"}]},
}


def test_client_pod_name_from_shipped_fixture():
    source = FileSource(DEFAULT_FILES_DIR / "smbclient.yaml", NAMESPACE)
    assert client_pod_name(source) == "smbclient"


class TestEnsureClientPod:
    """Session setup of the pod smbclient runs in."""

    @pytest.fixture
    def config(self, harness_config: HarnessConfig, write_fixture) -> HarnessConfig:
        write_fixture("smbclient.yaml", CLIENT_POD_DOC)
        return dataclasses.replace(harness_config, smbclient_pod="smbclient")

    @pytest.fixture
    def tracker(self, fake_k8s: FakeK8s) -> FixtureTracker:
        return FixtureTracker(FixtureManager(fake_k8s))

    def test_ready_pod(self, fake_k8s: FakeK8s, config: HarnessConfig, tracker):
        pod = make_pod("smbclient", "none")
        pod["metadata"]["labels"] = {"app": "samba-operator-test-smbclient"}
        fake_k8s.pods[NAMESPACE] = [pod]

        assert ensure_client_pod(fake_k8s, config, tracker) == "smbclient"
        assert len(tracker) == 1

    def test_configured_name_must_match_fixture(
        self, fake_k8s: FakeK8s, config: HarnessConfig, tracker
    ):
        config = dataclasses.replace(config, smbclient_pod="my-client")

        with pytest.raises(SetupError, match="configured as 'my-client'"):
            ensure_client_pod(fake_k8s, config, tracker)
        assert not fake_k8s.created

    def test_cleanup_failure_keeps_original_reason(
        self, fake_k8s: FakeK8s, config: HarnessConfig, tracker
    ):
        fake_k8s.fail_delete.add("smbclient")

        with pytest.raises(SetupError) as exc_info:
            ensure_client_pod(fake_k8s, config, tracker)

        message = str(exc_info.value)
        assert "timed out waiting for pod" in message
        assert "cleanup also failed" in message
        assert "Forbidden" in message

    def test_not_ready_pod_is_removed(self, fake_k8s: FakeK8s, config: HarnessConfig, tracker):
        with pytest.raises(SetupError, match="client pod not available"):
            ensure_client_pod(fake_k8s, config, tracker)
        assert not fake_k8s.objects
