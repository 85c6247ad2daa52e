from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

DEFAULT_NFS_CLIENT_MATCH = "0.0.0.0/0"
DEFAULT_ACL_PRINCIPAL = "Everyone"
DEFAULT_ACL_PERMISSION = "full_control"
ACL_PERMISSIONS = ("no_access", "read", "change", "full_control")

SHARE_NAME = "data"
SNAPSHOT_NAME = "initial_provision"

BATCH_FIELD_DELIMITER = ","
BATCH_DNS_DELIMITER = ";"


@dataclass(frozen=True)
class FieldSpec:
    """One operator-facing request field: its attribute name, flag and prompt label."""

    name: str
    flag: str
    label: str


# Batch string order; also the prompt order in the guided modes.
REQUEST_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("cluster", "--cluster", "Cluster management address"),
    FieldSpec("svm", "--svm", "SVM name"),
    FieldSpec("aggregate", "--aggregate", "Aggregate for the SVM root and data volume"),
    FieldSpec("volume_name", "--volume", "Data volume name"),
    FieldSpec("volume_size", "--volume-size", "Data volume size (e.g. 100g)"),
    FieldSpec("lif_name", "--lif", "Data LIF name"),
    FieldSpec("lif_address", "--lif-address", "Data LIF IP address"),
    FieldSpec("lif_netmask", "--lif-netmask", "Data LIF netmask"),
    FieldSpec("home_node", "--home-node", "LIF home node"),
    FieldSpec("home_port", "--home-port", "LIF home port"),
    FieldSpec("cifs_server", "--cifs-server", "CIFS server (NetBIOS) name"),
    FieldSpec("ad_domain", "--ad-domain", "Active Directory domain"),
    FieldSpec("dns_servers", "--dns-servers", "DNS servers (separated by ';')"),
)
FIELD_NAMES: Tuple[str, ...] = tuple(f.name for f in REQUEST_FIELDS)
FIELDS_BY_NAME = {f.name: f for f in REQUEST_FIELDS}

# Live, enumerable cluster resources picked from a menu in interactive mode.
SELECTABLE_FIELDS: Tuple[str, ...] = ("aggregate", "home_node")


@dataclass(frozen=True)
class OptionalFeatures:
    nfs_enabled: bool = False
    nfs_client_match: str = DEFAULT_NFS_CLIENT_MATCH
    acl_enabled: bool = False
    acl_principal: str = DEFAULT_ACL_PRINCIPAL
    acl_permission: str = DEFAULT_ACL_PERMISSION


@dataclass(frozen=True)
class ProvisioningRequest:
    """A complete, validated request. Built once by the resolver, read-only afterwards."""

    cluster: str
    svm: str
    aggregate: str
    volume_name: str
    volume_size: str
    lif_name: str
    lif_address: str
    lif_netmask: str
    home_node: str
    home_port: str
    cifs_server: str
    ad_domain: str
    dns_servers: Tuple[str, ...]
    search_domains: Tuple[str, ...] = ()
    features: OptionalFeatures = field(default_factory=OptionalFeatures)

    @property
    def junction_path(self) -> str:
        return f"/{self.volume_name}"

    @property
    def export_policy_name(self) -> str:
        return f"{self.volume_name}_policy"

    @property
    def share_path(self) -> str:
        return f"\\\\{self.cifs_server}\\{SHARE_NAME}"

    @property
    def nfs_path(self) -> str:
        return f"{self.lif_address}:{self.junction_path}"

    def as_batch_string(self) -> str:
        """Render the request back into the batch convention accepted by --batch."""
        values: List[str] = []
        for item in REQUEST_FIELDS:
            value = getattr(self, item.name)
            if item.name == "dns_servers":
                value = BATCH_DNS_DELIMITER.join(value)
            values.append(str(value))
        return f"{BATCH_FIELD_DELIMITER} ".join(values)
