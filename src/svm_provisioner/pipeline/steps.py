from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from ..credentials import Credential
from ..models import ProvisioningRequest
from ..ontap import resources
from ..ontap.client import ControlPlaneClient
from ..ontap.session import ClusterSession
from .outcome import StepPolicy

# (description, mutating call)
Action = Tuple[str, Callable[[], None]]


@dataclass(frozen=True)
class StepContext:
    client: ControlPlaneClient
    session: ClusterSession
    request: ProvisioningRequest
    domain_credential: Credential


@dataclass(frozen=True)
class Step:
    """
    One fixed pipeline stage.

    build: request -> ResourceDescriptor
    check: existence check; None when the step has no idempotency check
    actions: the mutating calls, in order; each one is gated by dry-run
    requested: whether the operator asked for this step at all
    """

    name: str
    kind: str
    policy: StepPolicy
    build: Callable[[ProvisioningRequest], Any]
    actions: Callable[[StepContext, Any], List[Action]]
    check: Optional[Callable[[StepContext, Any], bool]] = None
    requested: Callable[[ProvisioningRequest], bool] = lambda request: True


def _svm_actions(ctx: StepContext, d: resources.TenantDescriptor) -> List[Action]:
    return [(f"create SVM {d.svm} on aggregate {d.aggregate}", lambda: ctx.client.create_svm(ctx.session, d))]


def _dns_actions(ctx: StepContext, d: resources.DnsDescriptor) -> List[Action]:
    return [
        (
            f"configure DNS servers {', '.join(d.servers)} on {d.svm}",
            lambda: ctx.client.configure_dns(ctx.session, d),
        )
    ]


def _volume_actions(ctx: StepContext, d: resources.VolumeDescriptor) -> List[Action]:
    return [
        (
            f"create volume {d.name} ({d.size_bytes} bytes) on {d.aggregate} at {d.junction_path}",
            lambda: ctx.client.create_volume(ctx.session, d),
        )
    ]


def _interface_actions(ctx: StepContext, d: resources.InterfaceDescriptor) -> List[Action]:
    return [
        (
            f"create LIF {d.name} {d.address}/{d.netmask} on {d.home_node}:{d.home_port} "
            f"for {'+'.join(d.protocols)}",
            lambda: ctx.client.create_interface(ctx.session, d),
        )
    ]


def _cifs_actions(ctx: StepContext, d: resources.ProtocolServerDescriptor) -> List[Action]:
    return [
        (
            f"create CIFS server {d.name} joined to {d.domain}",
            lambda: ctx.client.create_cifs_server(ctx.session, d, ctx.domain_credential),
        )
    ]


def _share_actions(ctx: StepContext, d: resources.ShareDescriptor) -> List[Action]:
    return [(f"create share {d.name} at {d.path}", lambda: ctx.client.create_share(ctx.session, d))]


def _acl_actions(ctx: StepContext, d: resources.ShareAclDescriptor) -> List[Action]:
    return [
        (
            f"grant {d.permission} on share {d.share} to {d.principal}",
            lambda: ctx.client.add_share_acl(ctx.session, d),
        )
    ]


def _nfs_actions(ctx: StepContext, d: resources.ExportPolicyDescriptor) -> List[Action]:
    return [
        (f"enable NFS on {d.svm}", lambda: ctx.client.enable_nfs(ctx.session, d.svm)),
        (f"create export policy {d.name}", lambda: ctx.client.create_export_policy(ctx.session, d)),
        (
            f"add rule to {d.name} granting {d.client_match} read/write/superuser",
            lambda: ctx.client.add_export_rule(ctx.session, d),
        ),
        (f"attach export policy {d.name} to volume {d.volume}", lambda: ctx.client.attach_export_policy(ctx.session, d)),
    ]


def _snapshot_actions(ctx: StepContext, d: resources.SnapshotDescriptor) -> List[Action]:
    return [(f"create snapshot {d.name} of {d.volume}", lambda: ctx.client.create_snapshot(ctx.session, d))]


STEPS: Tuple[Step, ...] = (
    Step(
        name="svm",
        kind="svm",
        policy=StepPolicy.FATAL,
        build=resources.tenant_for,
        check=lambda ctx, d: ctx.client.svm_exists(ctx.session, d.svm),
        actions=_svm_actions,
    ),
    Step(
        name="dns",
        kind="dns",
        policy=StepPolicy.FATAL,
        build=resources.dns_for,
        actions=_dns_actions,
    ),
    Step(
        name="volume",
        kind="volume",
        policy=StepPolicy.FATAL,
        build=resources.volume_for,
        check=lambda ctx, d: ctx.client.volume_exists(ctx.session, d.svm, d.name),
        actions=_volume_actions,
    ),
    Step(
        name="interface",
        kind="interface",
        policy=StepPolicy.FATAL,
        build=resources.interface_for,
        check=lambda ctx, d: ctx.client.interface_exists(ctx.session, d.svm, d.name),
        actions=_interface_actions,
    ),
    Step(
        name="cifs_server",
        kind="cifs_server",
        policy=StepPolicy.FATAL,
        build=resources.cifs_server_for,
        check=lambda ctx, d: ctx.client.cifs_server_exists(ctx.session, d.svm),
        actions=_cifs_actions,
    ),
    Step(
        name="share",
        kind="share",
        policy=StepPolicy.FATAL,
        build=resources.share_for,
        check=lambda ctx, d: ctx.client.share_exists(ctx.session, d.svm, d.name),
        actions=_share_actions,
    ),
    Step(
        name="share_acl",
        kind="share_acl",
        policy=StepPolicy.DEGRADED,
        build=resources.share_acl_for,
        actions=_acl_actions,
        requested=lambda request: request.features.acl_enabled,
    ),
    Step(
        name="nfs_export",
        kind="export_policy",
        policy=StepPolicy.DEGRADED,
        build=resources.export_policy_for,
        actions=_nfs_actions,
        requested=lambda request: request.features.nfs_enabled,
    ),
    Step(
        name="snapshot",
        kind="snapshot",
        policy=StepPolicy.DEGRADED,
        build=resources.snapshot_for,
        actions=_snapshot_actions,
    ),
)
