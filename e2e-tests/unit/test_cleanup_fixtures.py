"""Leaked fixture cleanup script tests."""

import importlib.util
from pathlib import Path

import pytest

from smbtest.config import DEFAULT_FILES_DIR, HarnessConfig

from fakes import NAMESPACE, FakeK8s

SCRIPT = Path(__file__).parents[2] / "scripts" / "cleanup_fixtures.py"


@pytest.fixture(scope="module")
def cleanup():
    spec = importlib.util.spec_from_file_location("cleanup_fixtures", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def config() -> HarnessConfig:
    return HarnessConfig(namespace=NAMESPACE, files_dir=DEFAULT_FILES_DIR)


def test_objects_listed_once_share_first(cleanup, config):
    objects = cleanup.fixture_objects(config)
    keys = [(o.kind, o.namespace, o.name) for o in objects]

    assert len(keys) == len(set(keys))
    assert keys[0] == ("SmbShare", NAMESPACE, "tshare1")
    assert keys.index(("SmbShare", NAMESPACE, "tshare1")) < keys.index(
        ("Secret", NAMESPACE, "users1")
    )
    assert ("SmbShare", "default", "tshare3") in keys
    assert not any(o.kind == "Pod" for o in objects)


def test_include_client(cleanup, config):
    objects = cleanup.fixture_objects(config, include_client=True)
    assert objects[-1].kind == "Pod"
    assert objects[-1].name == "smbclient"


def test_find_and_delete_leaked(cleanup, config):
    k8s = FakeK8s()
    k8s.create({"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "users1"}})
    objects = cleanup.fixture_objects(config)

    leaked = cleanup.find_leaked(k8s, objects)
    assert [o.name for o in leaked] == ["users1"]

    assert cleanup.delete_leaked(k8s, leaked, dry_run=True) == 0
    assert k8s.objects

    assert cleanup.delete_leaked(k8s, leaked, dry_run=False) == 0
    assert not k8s.objects


def test_delete_failure_counted(cleanup, config):
    k8s = FakeK8s()
    k8s.create({"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "users1"}})
    k8s.fail_delete.add("users1")
    leaked = cleanup.find_leaked(k8s, cleanup.fixture_objects(config))
    assert cleanup.delete_leaked(k8s, leaked, dry_run=False) == 1
