"""Endpoint naming tests."""

from smbtest.endpoints import external_dns_name, service_dns_name, service_label


def test_service_dns_name():
    assert service_dns_name("tshare1", "default") == "tshare1.default.svc.cluster.local"


def test_service_dns_name_custom_cluster_domain():
    assert (
        service_dns_name("tshare1", "samba", cluster_domain="k8s.example")
        == "tshare1.samba.svc.k8s.example"
    )


def test_external_dns_name():
    assert external_dns_name("tshare2", "domain1.sink.test") == "tshare2-cluster.domain1.sink.test"


def test_service_label():
    assert service_label("tshare1") == "samba-operator.samba.org/service=tshare1"
