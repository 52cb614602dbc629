"""The scenario matrix for SmbShare resources."""

from .checks import with_dns, with_external_net
from .config import HarnessConfig
from .fixtures import FileSource
from .k8s_client import ResourceIdentity
from .scenario import SMBSHARE_API_VERSION, Scenario
from .smbclient import Auth

SAMBA_USER = Auth("sambauser", "1nsecurely")


def smbshare(namespace: str, name: str) -> ResourceIdentity:
    return ResourceIdentity(SMBSHARE_API_VERSION, "SmbShare", name, namespace)


def all_smbshare_scenarios(config: HarnessConfig) -> dict[str, Scenario]:
    """Build every SmbShare scenario keyed by name.

    Scenarios sharing a namespace use distinct share names; the secrets they
    share are created and removed by whichever scenario runs first.
    """
    ns = config.namespace

    def src(name: str, namespace: str = ns) -> FileSource:
        return FileSource(config.file_path(name), namespace)

    scenarios = [
        Scenario(
            name="users1",
            file_sources=(
                src("userssecret1.yaml"),
                src("smbsecurityconfig1.yaml"),
                src("smbshare1.yaml"),
            ),
            resource=smbshare(ns, "tshare1"),
            share_name="My Share",
            auths=(SAMBA_USER,),
        ),
        with_dns(
            Scenario(
                name="domainMember1",
                file_sources=(
                    src("joinsecret1.yaml"),
                    src("smbsecurityconfig2.yaml"),
                    src("smbshare2.yaml"),
                ),
                resource=smbshare(ns, "tshare2"),
                share_name="My Kingdom",
                auths=(Auth("DOMAIN1\\bwayne", "1115Rose."),),
            )
        ),
        # SmbShare and security config live in "default" while the pods run
        # in the test namespace, so the secrets must stay there too.
        Scenario(
            name="smbSharesInDefault",
            file_sources=(
                src("userssecret1.yaml"),
                src("smbsecurityconfig1.yaml", "default"),
                src("smbshare3.yaml", "default"),
            ),
            resource=smbshare("default", "tshare3"),
            share_name="My Other Share",
            auths=(SAMBA_USER,),
            workload_namespace=ns,
        ),
        with_external_net(
            Scenario(
                name="smbSharesExternal",
                file_sources=(
                    src("userssecret1.yaml"),
                    src("commonconfig1.yaml"),
                    src("smbsecurityconfig1.yaml"),
                    src("smbshare4.yaml"),
                ),
                resource=smbshare(ns, "tshare4"),
                share_name="Since When",
                auths=(SAMBA_USER,),
            )
        ),
    ]
    return {s.name: s for s in scenarios}
