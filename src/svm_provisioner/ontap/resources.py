from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Tuple, Union

from ..models import SHARE_NAME, SNAPSHOT_NAME, ProvisioningRequest
from ..util.units import parse_size

PROTOCOL_CIFS = "cifs"
PROTOCOL_NFS = "nfs"


@dataclass(frozen=True)
class TenantDescriptor:
    svm: str
    aggregate: str
    kind: str = field(default="svm", init=False)


@dataclass(frozen=True)
class DnsDescriptor:
    svm: str
    servers: Tuple[str, ...]
    domains: Tuple[str, ...]
    kind: str = field(default="dns", init=False)


@dataclass(frozen=True)
class VolumeDescriptor:
    svm: str
    name: str
    aggregate: str
    size_bytes: int
    junction_path: str
    kind: str = field(default="volume", init=False)


@dataclass(frozen=True)
class InterfaceDescriptor:
    svm: str
    name: str
    address: str
    netmask: str
    home_node: str
    home_port: str
    protocols: Tuple[str, ...]
    kind: str = field(default="interface", init=False)


@dataclass(frozen=True)
class ProtocolServerDescriptor:
    svm: str
    name: str
    domain: str
    kind: str = field(default="cifs_server", init=False)


@dataclass(frozen=True)
class ShareDescriptor:
    svm: str
    name: str
    path: str
    kind: str = field(default="share", init=False)


@dataclass(frozen=True)
class ShareAclDescriptor:
    svm: str
    share: str
    principal: str
    permission: str
    kind: str = field(default="share_acl", init=False)


@dataclass(frozen=True)
class ExportPolicyDescriptor:
    svm: str
    volume: str
    name: str
    client_match: str
    kind: str = field(default="export_policy", init=False)


@dataclass(frozen=True)
class SnapshotDescriptor:
    svm: str
    volume: str
    name: str
    kind: str = field(default="snapshot", init=False)


ResourceDescriptor = Union[
    TenantDescriptor,
    DnsDescriptor,
    VolumeDescriptor,
    InterfaceDescriptor,
    ProtocolServerDescriptor,
    ShareDescriptor,
    ShareAclDescriptor,
    ExportPolicyDescriptor,
    SnapshotDescriptor,
]


def describe(descriptor: ResourceDescriptor) -> Dict[str, Any]:
    """Flat dict view used for dry-run output and structured logs."""
    return asdict(descriptor)


def tenant_for(request: ProvisioningRequest) -> TenantDescriptor:
    return TenantDescriptor(svm=request.svm, aggregate=request.aggregate)


def dns_for(request: ProvisioningRequest) -> DnsDescriptor:
    return DnsDescriptor(svm=request.svm, servers=request.dns_servers, domains=request.search_domains)


def volume_for(request: ProvisioningRequest) -> VolumeDescriptor:
    return VolumeDescriptor(
        svm=request.svm,
        name=request.volume_name,
        aggregate=request.aggregate,
        size_bytes=parse_size(request.volume_size),
        junction_path=request.junction_path,
    )


def interface_for(request: ProvisioningRequest) -> InterfaceDescriptor:
    protocols: Tuple[str, ...] = (PROTOCOL_CIFS,)
    if request.features.nfs_enabled:
        protocols = (PROTOCOL_CIFS, PROTOCOL_NFS)
    return InterfaceDescriptor(
        svm=request.svm,
        name=request.lif_name,
        address=request.lif_address,
        netmask=request.lif_netmask,
        home_node=request.home_node,
        home_port=request.home_port,
        protocols=protocols,
    )


def cifs_server_for(request: ProvisioningRequest) -> ProtocolServerDescriptor:
    return ProtocolServerDescriptor(svm=request.svm, name=request.cifs_server, domain=request.ad_domain)


def share_for(request: ProvisioningRequest) -> ShareDescriptor:
    return ShareDescriptor(svm=request.svm, name=SHARE_NAME, path=request.junction_path)


def share_acl_for(request: ProvisioningRequest) -> ShareAclDescriptor:
    return ShareAclDescriptor(
        svm=request.svm,
        share=SHARE_NAME,
        principal=request.features.acl_principal,
        permission=request.features.acl_permission,
    )


def export_policy_for(request: ProvisioningRequest) -> ExportPolicyDescriptor:
    return ExportPolicyDescriptor(
        svm=request.svm,
        volume=request.volume_name,
        name=request.export_policy_name,
        client_match=request.features.nfs_client_match,
    )


def snapshot_for(request: ProvisioningRequest) -> SnapshotDescriptor:
    return SnapshotDescriptor(svm=request.svm, volume=request.volume_name, name=SNAPSHOT_NAME)
