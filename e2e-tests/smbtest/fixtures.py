"""File-based fixtures and their lifecycle.

A fixture is a YAML file applied into a namespace before a scenario runs.
``ensure`` is create-if-missing and reports the objects it created.
Teardown removes exactly those objects, identified the same way as on
creation, so objects that were already there are left alone.

Scenarios sharing a namespace must not use fixtures with clashing object
names; nothing here detects that.
"""

import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog
import yaml

from .errors import SetupError, TeardownError
from .k8s_client import K8sClient, ResourceIdentity

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FileSource:
    """A fixture file and the namespace it is applied to."""

    path: Path
    namespace: str

    def __str__(self) -> str:
        return f"{self.path.name}@{self.namespace}"


class EnsureResult(str, Enum):
    CREATED = "created"
    ALREADY_PRESENT = "already-present"


@dataclass
class AppliedFixture:
    """A fixture file and the objects ``ensure`` created from it."""

    source: FileSource
    created: list[ResourceIdentity] = field(default_factory=list)

    @property
    def result(self) -> EnsureResult:
        return EnsureResult.CREATED if self.created else EnsureResult.ALREADY_PRESENT


def load_documents(source: FileSource) -> list[dict]:
    """Read every non-empty YAML document from a fixture file.

    Raises:
        SetupError: If the file is missing or not a list of objects
    """
    try:
        with open(source.path) as f:
            docs = [d for d in yaml.safe_load_all(f) if d]
    except (OSError, yaml.YAMLError) as e:
        raise SetupError(str(source), f"cannot read fixture file: {e}") from e

    for doc in docs:
        if not isinstance(doc, dict) or "kind" not in doc or "metadata" not in doc:
            raise SetupError(str(source), "document is not a Kubernetes object")
    return docs


def document_identity(doc: dict, namespace: str) -> ResourceIdentity:
    """Identity of an object in a fixture file, placed in namespace."""
    return ResourceIdentity(
        api_version=doc.get("apiVersion", "v1"),
        kind=doc["kind"],
        name=doc["metadata"]["name"],
        namespace=namespace,
    )


class FixtureManager:
    """Create and delete fixture files in the cluster."""

    def __init__(self, k8s: K8sClient, delete_timeout: int = 60):
        self.k8s = k8s
        self.delete_timeout = delete_timeout

    def ensure(self, source: FileSource) -> AppliedFixture:
        """Create every object in the file that does not exist yet.

        Returns:
            AppliedFixture listing the objects this call created

        Raises:
            SetupError: If an object could not be looked up or created. Its
                ``created`` lists the objects created before the failure.
        """
        applied = AppliedFixture(source)
        for doc in load_documents(source):
            ident = document_identity(doc, source.namespace)
            try:
                if self.k8s.get(ident.ref, ident.name, ident.namespace) is not None:
                    log.debug("fixture_object_present", source=str(source), object=str(ident))
                    continue
                manifest = dict(doc)
                manifest["metadata"] = {**doc["metadata"], "namespace": ident.namespace}
                if self.k8s.create(manifest, ident.namespace) is not None:
                    applied.created.append(ident)
                    log.info("fixture_object_created", source=str(source), object=str(ident))
            except (RuntimeError, subprocess.SubprocessError) as e:
                raise SetupError(
                    str(source), f"{ident}: {e}", created=list(applied.created)
                ) from e

        return applied

    def remove(
        self, source: FileSource, only: list[ResourceIdentity] | None = None
    ) -> None:
        """Delete objects named in the file, last document first.

        Args:
            source: Fixture file
            only: Restrict deletion to these objects (default: every object)

        Objects that are already gone are fine; any other failure is collected
        and raised once all objects have been attempted.

        Raises:
            TeardownError: If one or more objects could not be deleted
        """
        failures = []
        for doc in reversed(load_documents(source)):
            ident = document_identity(doc, source.namespace)
            if only is not None and ident not in only:
                continue
            try:
                found = self.k8s.delete(
                    ident.ref,
                    ident.name,
                    namespace=ident.namespace,
                    wait=True,
                    timeout=self.delete_timeout,
                    ignore_not_found=True,
                )
                log.info(
                    "fixture_object_deleted",
                    source=str(source),
                    object=str(ident),
                    found=found,
                )
            except subprocess.SubprocessError as e:
                stderr = getattr(e, "stderr", None) or str(e)
                failures.append(f"{source} {ident}: {stderr.strip()}")

        if failures:
            raise TeardownError(failures)


@dataclass
class FixtureTracker:
    """Tracks the objects a scenario created and removes them in LIFO order.

    Usage:
        tracker = FixtureTracker(FixtureManager(k8s))
        tracker.apply(secret_source)
        tracker.apply(share_source)

        # At scenario end:
        tracker.cleanup_all()  # share first, then secret
    """

    manager: FixtureManager
    created: list[AppliedFixture] = field(default_factory=list)
    preexisting: list[FileSource] = field(default_factory=list)

    def apply(self, source: FileSource) -> AppliedFixture:
        """Ensure a fixture and remember what this run created from it."""
        try:
            applied = self.manager.ensure(source)
        except SetupError as e:
            if e.created:
                self.created.append(AppliedFixture(source, e.created))
            raise
        if applied.created:
            self.created.append(applied)
        else:
            self.preexisting.append(source)
            log.warning("fixture_already_present", source=str(source))
        return applied

    def cleanup_all(self) -> None:
        """Remove all created objects, newest fixture first.

        Every removal is attempted even if an earlier one fails.

        Raises:
            TeardownError: With the failures of every object that was not removed
        """
        failures = []
        for applied in reversed(self.created):
            try:
                self.manager.remove(applied.source, only=applied.created)
            except TeardownError as e:
                failures.extend(e.failures)

        self.created.clear()
        self.preexisting.clear()
        if failures:
            raise TeardownError(failures)

    def __len__(self) -> int:
        return len(self.created)
