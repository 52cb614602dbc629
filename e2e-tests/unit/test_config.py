"""Harness configuration tests."""

from pathlib import Path

from smbtest.config import DEFAULT_FILES_DIR, HarnessConfig


def test_defaults(monkeypatch):
    for var in ("SMBOP_TEST_NAMESPACE", "SMBOP_TEST_FILES_DIR", "SMBOP_TEST_READY_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    config = HarnessConfig()
    assert config.namespace == "samba-operator-system"
    assert config.files_dir == DEFAULT_FILES_DIR
    assert config.ready_timeout == 60
    assert config.exist_timeout < config.ready_timeout


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("SMBOP_TEST_NAMESPACE", "smbop")
    monkeypatch.setenv("SMBOP_TEST_FILES_DIR", str(tmp_path))
    monkeypatch.setenv("SMBOP_TEST_READY_TIMEOUT", "120")
    config = HarnessConfig()
    assert config.namespace == "smbop"
    assert config.files_dir == tmp_path
    assert config.ready_timeout == 120.0


def test_file_path():
    config = HarnessConfig(files_dir=Path("/srv/fixtures"))
    assert config.file_path("smbshare1.yaml") == Path("/srv/fixtures/smbshare1.yaml")
