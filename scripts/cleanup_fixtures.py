#!/usr/bin/env python3
"""Find and optionally remove fixtures leaked by interrupted test runs.

Every scenario removes the fixtures it created, but a run that is killed
(Ctrl-C twice, CI job timeout, node loss) leaves its SmbShares, security
configs and secrets behind. The next run then finds them ALREADY_PRESENT
and will not remove them either.

This script lists every object named in the fixture files of the scenario
registry that still exists in the cluster.

Usage:
    # Dry run - show leaked objects without deleting
    ./scripts/cleanup_fixtures.py

    # Delete leaked objects
    ./scripts/cleanup_fixtures.py --delete

    # Custom namespace, also remove the smbclient pod
    ./scripts/cleanup_fixtures.py --namespace smbop-test --include-client --delete
"""

import argparse
import subprocess
import sys
from pathlib import Path

# Add e2e-tests to path for imports
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "e2e-tests"))

from smbtest.config import HarnessConfig  # noqa: E402
from smbtest.errors import SetupError  # noqa: E402
from smbtest.fixtures import FileSource, document_identity, load_documents  # noqa: E402
from smbtest.k8s_client import K8sClient, ResourceIdentity  # noqa: E402
from smbtest.registry import all_smbshare_scenarios  # noqa: E402


def fixture_objects(config: HarnessConfig, include_client: bool = False) -> list[ResourceIdentity]:
    """Every object the registry would create, in deletion order.

    Within a scenario the resource under test comes first so the operator
    can tear down its workload before the secrets it mounts disappear.
    Objects shared by several scenarios are listed once.
    """
    sources: list[FileSource] = []
    for scenario in all_smbshare_scenarios(config).values():
        sources.extend(reversed(scenario.file_sources))
    if include_client:
        sources.append(FileSource(config.file_path("smbclient.yaml"), config.namespace))

    seen = set()
    objects = []
    for source in sources:
        for doc in reversed(load_documents(source)):
            ident = document_identity(doc, source.namespace)
            key = (ident.ref, ident.namespace, ident.name)
            if key not in seen:
                seen.add(key)
                objects.append(ident)
    return objects


def find_leaked(k8s: K8sClient, objects: list[ResourceIdentity]) -> list[ResourceIdentity]:
    """Return the objects that still exist in the cluster."""
    return [o for o in objects if k8s.get(o.ref, o.name, o.namespace) is not None]


def delete_leaked(
    k8s: K8sClient, leaked: list[ResourceIdentity], dry_run: bool = True, timeout: int = 60
) -> int:
    """Delete leaked objects.

    Args:
        k8s: K8sClient instance
        leaked: Objects to delete
        dry_run: If True, only print what would be deleted
        timeout: Wait timeout per object in seconds

    Returns:
        Number of objects that could not be deleted
    """
    if dry_run:
        print("\n[DRY RUN] Would delete the following objects:")
        for obj in leaked:
            print(f"  - {obj}")
        return 0

    failed = 0
    for obj in leaked:
        print(f"Deleting {obj}...", end=" ")
        try:
            if k8s.delete(obj.ref, obj.name, namespace=obj.namespace, timeout=timeout):
                print("OK")
            else:
                print("NOT FOUND (already deleted)")
        except subprocess.SubprocessError as e:
            print(f"FAILED: {getattr(e, 'stderr', None) or e}")
            failed += 1
    return failed


def main(argv: list[str] | None = None) -> int:
    defaults = HarnessConfig()
    parser = argparse.ArgumentParser(
        description="Remove samba-operator test fixtures leaked by interrupted runs"
    )
    parser.add_argument(
        "--namespace",
        default=defaults.namespace,
        help=f"Test namespace (default: {defaults.namespace})",
    )
    parser.add_argument(
        "--files-dir",
        type=Path,
        default=defaults.files_dir,
        help="Directory holding the fixture YAML files",
    )
    parser.add_argument(
        "--kubeconfig",
        default=defaults.kubeconfig,
        help="Path to kubeconfig file (uses default if not specified)",
    )
    parser.add_argument(
        "--include-client",
        action="store_true",
        help="Also remove the smbclient pod",
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Actually delete leaked objects (default is dry run)",
    )

    args = parser.parse_args(argv)
    config = HarnessConfig(
        namespace=args.namespace, files_dir=args.files_dir, kubeconfig=args.kubeconfig
    )
    k8s = K8sClient(namespace=config.namespace, kubeconfig=config.kubeconfig)

    if not k8s.cluster_info():
        print("Error: cluster is not reachable")
        return 2

    print(f"Checking for leaked fixtures in {config.namespace} (and default)\n")
    try:
        objects = fixture_objects(config, args.include_client)
    except SetupError as e:
        print(f"Error: {e}")
        return 2

    try:
        leaked = find_leaked(k8s, objects)
    except subprocess.SubprocessError as e:
        print(f"Error querying cluster: {getattr(e, 'stderr', None) or e}")
        return 2

    print(f"  Checked {len(objects)} fixture objects")
    if not leaked:
        print("\n✓ No leaked fixtures found")
        return 0

    print(f"\n⚠ Found {len(leaked)} leaked object(s)")
    if args.delete:
        print("\nDeleting leaked objects...")
        failed = delete_leaked(k8s, leaked, dry_run=False)
        print(f"\n✓ Deleted {len(leaked) - failed} object(s)")
        return 1 if failed else 0

    delete_leaked(k8s, leaked, dry_run=True)
    print("\nRun with --delete to remove these objects")
    return 1


if __name__ == "__main__":
    sys.exit(main())
