from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable
from urllib.parse import quote

import requests

from ..credentials import Credential
from ..util.errors import ControlPlaneError, SessionError, map_http_error
from ..util.pagination import paginate
from .resources import (
    DnsDescriptor,
    ExportPolicyDescriptor,
    InterfaceDescriptor,
    ProtocolServerDescriptor,
    ShareAclDescriptor,
    ShareDescriptor,
    SnapshotDescriptor,
    TenantDescriptor,
    VolumeDescriptor,
)
from .session import ClusterSession

LOG = logging.getLogger(__name__)

DATA_FILES_SERVICE_POLICY = "default-data-files"
JOB_TERMINAL_STATES = {"success", "failure"}


@dataclass(frozen=True)
class AggregateInfo:
    name: str
    available_bytes: Optional[int]


@dataclass(frozen=True)
class NodeInfo:
    name: str
    state: Optional[str]


@runtime_checkable
class ControlPlaneClient(Protocol):
    """
    Capability surface the pipeline and the resource selector depend on.
    Every call is synchronous; failures raise ControlPlaneError (or SessionError for
    connect/disconnect).
    """

    def connect(self, endpoint: str, credential: Credential) -> ClusterSession: ...

    def disconnect(self, session: ClusterSession) -> None: ...

    def svm_exists(self, session: ClusterSession, svm: str) -> bool: ...

    def create_svm(self, session: ClusterSession, tenant: TenantDescriptor) -> None: ...

    def configure_dns(self, session: ClusterSession, dns: DnsDescriptor) -> None: ...

    def volume_exists(self, session: ClusterSession, svm: str, name: str) -> bool: ...

    def create_volume(self, session: ClusterSession, volume: VolumeDescriptor) -> None: ...

    def interface_exists(self, session: ClusterSession, svm: str, name: str) -> bool: ...

    def create_interface(self, session: ClusterSession, interface: InterfaceDescriptor) -> None: ...

    def cifs_server_exists(self, session: ClusterSession, svm: str) -> bool: ...

    def create_cifs_server(
        self, session: ClusterSession, server: ProtocolServerDescriptor, domain_credential: Credential
    ) -> None: ...

    def share_exists(self, session: ClusterSession, svm: str, name: str) -> bool: ...

    def create_share(self, session: ClusterSession, share: ShareDescriptor) -> None: ...

    def add_share_acl(self, session: ClusterSession, acl: ShareAclDescriptor) -> None: ...

    def enable_nfs(self, session: ClusterSession, svm: str) -> None: ...

    def create_export_policy(self, session: ClusterSession, policy: ExportPolicyDescriptor) -> None: ...

    def add_export_rule(self, session: ClusterSession, policy: ExportPolicyDescriptor) -> None: ...

    def attach_export_policy(self, session: ClusterSession, policy: ExportPolicyDescriptor) -> None: ...

    def create_snapshot(self, session: ClusterSession, snapshot: SnapshotDescriptor) -> None: ...

    def list_aggregates(self, session: ClusterSession) -> List[AggregateInfo]: ...

    def list_nodes(self, session: ClusterSession) -> List[NodeInfo]: ...


def _base_url(endpoint: str) -> str:
    endpoint = endpoint.strip().rstrip("/")
    if endpoint.startswith(("http://", "https://")):
        return endpoint
    return f"https://{endpoint}"


class OntapRestClient:
    """
    ControlPlaneClient over the ONTAP REST API (/api/...).

    - HTTP basic auth on a requests.Session per ClusterSession.
    - Asynchronous operations (HTTP 202 with a job link) are awaited by polling the job.
    - Collections are followed through `_links.next`.
    """

    def __init__(
        self,
        *,
        verify_ssl: bool = True,
        timeout: float = 60.0,
        job_timeout: float = 300.0,
        job_poll_interval: float = 2.0,
    ) -> None:
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.job_timeout = job_timeout
        self.job_poll_interval = job_poll_interval

    # ----------
    # Transport
    # ----------
    def connect(self, endpoint: str, credential: Credential) -> ClusterSession:
        http = requests.Session()
        http.auth = (credential.username, credential.password)
        http.verify = self.verify_ssl
        http.headers.update({"Accept": "application/json"})
        if not self.verify_ssl:
            import urllib3

            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        session = ClusterSession(endpoint=_base_url(endpoint), http=http, timeout=self.timeout)
        try:
            data = self._request(session, "GET", "/api/cluster", params={"fields": "name,version"}, context="connect")
        except ControlPlaneError as e:
            http.close()
            raise SessionError(f"Failed to connect to cluster {endpoint}: {e}") from e
        session.cluster_name = data.get("name")
        session.version = (data.get("version") or {}).get("full")
        return session

    def disconnect(self, session: ClusterSession) -> None:
        http = session.http
        session.http = None
        if http is None:
            raise SessionError(f"Session for {session.endpoint} is already closed")
        http.close()

    def _request(
        self,
        session: ClusterSession,
        method: str,
        path: str,
        *,
        context: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if session.http is None:
            raise ControlPlaneError(f"{context}: session is not connected")
        url = f"{session.endpoint}{path}"
        try:
            resp = session.http.request(method, url, params=params, json=body, timeout=session.timeout)
            resp.raise_for_status()
            if resp.status_code == 204 or not resp.content:
                return {}
            data = resp.json()
        except Exception as e:
            mapped = map_http_error(e, context)
            if mapped:
                raise mapped from e
            raise
        job = data.get("job") if isinstance(data, dict) else None
        if resp.status_code == 202 and isinstance(job, dict) and job.get("uuid"):
            self._wait_for_job(session, str(job["uuid"]), context=context)
        return data if isinstance(data, dict) else {}

    def _wait_for_job(self, session: ClusterSession, job_uuid: str, *, context: str) -> None:
        deadline = time.monotonic() + self.job_timeout
        while True:
            job = self._request(
                session,
                "GET",
                f"/api/cluster/jobs/{job_uuid}",
                params={"fields": "state,message,code"},
                context=f"{context} (job {job_uuid})",
            )
            state = str(job.get("state") or "")
            if state == "success":
                return
            if state == "failure":
                raise ControlPlaneError(f"{context}: job {job_uuid} failed: {job.get('message') or 'no message'}")
            if time.monotonic() >= deadline:
                raise ControlPlaneError(
                    f"{context}: job {job_uuid} did not finish within {int(self.job_timeout)}s (state={state or 'unknown'})"
                )
            time.sleep(self.job_poll_interval)

    def _records(
        self, session: ClusterSession, path: str, *, params: Dict[str, Any], context: str
    ) -> List[Dict[str, Any]]:
        def fetch(href: Optional[str]) -> Tuple[Sequence[Dict[str, Any]], Optional[str]]:
            if href is None:
                data = self._request(session, "GET", path, params=params, context=context)
            else:
                data = self._request(session, "GET", href, context=context)
            next_href = ((data.get("_links") or {}).get("next") or {}).get("href")
            return data.get("records") or [], next_href

        return list(paginate(fetch))

    def _exists(self, session: ClusterSession, path: str, *, params: Dict[str, Any], context: str) -> bool:
        data = self._request(session, "GET", path, params={**params, "fields": "name"}, context=context)
        count = data.get("num_records")
        if count is None:
            count = len(data.get("records") or [])
        return int(count) > 0

    def _uuid(self, session: ClusterSession, path: str, *, params: Dict[str, Any], context: str, key: str = "uuid") -> str:
        data = self._request(session, "GET", path, params={**params, "fields": key}, context=context)
        records = data.get("records") or []
        if not records or not records[0].get(key):
            raise ControlPlaneError(f"{context}: not found ({', '.join(f'{k}={v}' for k, v in params.items())})")
        return str(records[0][key])

    def _svm_uuid(self, session: ClusterSession, svm: str) -> str:
        return self._uuid(session, "/api/svm/svms", params={"name": svm}, context="look up SVM")

    def _volume_uuid(self, session: ClusterSession, svm: str, volume: str) -> str:
        return self._uuid(
            session, "/api/storage/volumes", params={"svm.name": svm, "name": volume}, context="look up volume"
        )

    # ----------
    # SVM + DNS
    # ----------
    def svm_exists(self, session: ClusterSession, svm: str) -> bool:
        return self._exists(session, "/api/svm/svms", params={"name": svm}, context="check SVM")

    def create_svm(self, session: ClusterSession, tenant: TenantDescriptor) -> None:
        body = {"name": tenant.svm, "aggregates": [{"name": tenant.aggregate}]}
        self._request(session, "POST", "/api/svm/svms", body=body, context="create SVM")

    def configure_dns(self, session: ClusterSession, dns: DnsDescriptor) -> None:
        body: Dict[str, Any] = {"servers": list(dns.servers)}
        if dns.domains:
            body["domains"] = list(dns.domains)
        existing = self._records(
            session, "/api/name-services/dns", params={"svm.name": dns.svm, "fields": "svm.uuid"}, context="read DNS"
        )
        if existing:
            svm_uuid = (existing[0].get("svm") or {}).get("uuid") or self._svm_uuid(session, dns.svm)
            self._request(session, "PATCH", f"/api/name-services/dns/{svm_uuid}", body=body, context="update DNS")
            return
        body["svm"] = {"name": dns.svm}
        self._request(session, "POST", "/api/name-services/dns", body=body, context="configure DNS")

    # ----------
    # Volume + LIF
    # ----------
    def volume_exists(self, session: ClusterSession, svm: str, name: str) -> bool:
        return self._exists(
            session, "/api/storage/volumes", params={"svm.name": svm, "name": name}, context="check volume"
        )

    def create_volume(self, session: ClusterSession, volume: VolumeDescriptor) -> None:
        body = {
            "name": volume.name,
            "svm": {"name": volume.svm},
            "aggregates": [{"name": volume.aggregate}],
            "size": volume.size_bytes,
            "nas": {"path": volume.junction_path, "security_style": "ntfs"},
        }
        self._request(session, "POST", "/api/storage/volumes", body=body, context="create volume")

    def interface_exists(self, session: ClusterSession, svm: str, name: str) -> bool:
        return self._exists(
            session, "/api/network/ip/interfaces", params={"svm.name": svm, "name": name}, context="check LIF"
        )

    def create_interface(self, session: ClusterSession, interface: InterfaceDescriptor) -> None:
        # CIFS and NFS data access are both carried by the data-files service policy.
        body = {
            "name": interface.name,
            "svm": {"name": interface.svm},
            "ip": {"address": interface.address, "netmask": interface.netmask},
            "location": {
                "home_node": {"name": interface.home_node},
                "home_port": {"name": interface.home_port, "node": {"name": interface.home_node}},
            },
            "service_policy": {"name": DATA_FILES_SERVICE_POLICY},
        }
        LOG.debug("Creating LIF", extra={"lif": interface.name, "protocols": list(interface.protocols)})
        self._request(session, "POST", "/api/network/ip/interfaces", body=body, context="create LIF")

    # ----------
    # CIFS
    # ----------
    def cifs_server_exists(self, session: ClusterSession, svm: str) -> bool:
        return self._exists(
            session, "/api/protocols/cifs/services", params={"svm.name": svm}, context="check CIFS server"
        )

    def create_cifs_server(
        self, session: ClusterSession, server: ProtocolServerDescriptor, domain_credential: Credential
    ) -> None:
        body = {
            "svm": {"name": server.svm},
            "name": server.name,
            "ad_domain": {
                "fqdn": server.domain,
                "user": domain_credential.username,
                "password": domain_credential.password,
            },
        }
        self._request(session, "POST", "/api/protocols/cifs/services", body=body, context="create CIFS server")

    def share_exists(self, session: ClusterSession, svm: str, name: str) -> bool:
        return self._exists(
            session, "/api/protocols/cifs/shares", params={"svm.name": svm, "name": name}, context="check share"
        )

    def create_share(self, session: ClusterSession, share: ShareDescriptor) -> None:
        body = {"svm": {"name": share.svm}, "name": share.name, "path": share.path}
        self._request(session, "POST", "/api/protocols/cifs/shares", body=body, context="create share")

    def add_share_acl(self, session: ClusterSession, acl: ShareAclDescriptor) -> None:
        svm_uuid = self._svm_uuid(session, acl.svm)
        path = f"/api/protocols/cifs/shares/{svm_uuid}/{acl.share}/acls"
        existing = self._records(
            session,
            path,
            params={"user_or_group": acl.principal, "fields": "user_or_group,permission"},
            context="read share ACL",
        )
        if existing:
            if existing[0].get("permission") == acl.permission:
                LOG.debug("Share ACL already present", extra={"share": acl.share, "principal": acl.principal})
                return
            self._request(
                session,
                "PATCH",
                f"{path}/{quote(acl.principal, safe='')}/windows",
                body={"permission": acl.permission},
                context="update share ACL",
            )
            return
        body = {"user_or_group": acl.principal, "permission": acl.permission, "type": "windows"}
        self._request(session, "POST", path, body=body, context="add share ACL")

    # ----------
    # NFS
    # ----------
    def enable_nfs(self, session: ClusterSession, svm: str) -> None:
        existing = self._records(
            session, "/api/protocols/nfs/services", params={"svm.name": svm, "fields": "svm.uuid"}, context="read NFS"
        )
        if existing:
            svm_uuid = (existing[0].get("svm") or {}).get("uuid") or self._svm_uuid(session, svm)
            self._request(
                session, "PATCH", f"/api/protocols/nfs/services/{svm_uuid}", body={"enabled": True}, context="enable NFS"
            )
            return
        body = {"svm": {"name": svm}, "enabled": True}
        self._request(session, "POST", "/api/protocols/nfs/services", body=body, context="enable NFS")

    def create_export_policy(self, session: ClusterSession, policy: ExportPolicyDescriptor) -> None:
        if self._exists(
            session,
            "/api/protocols/nfs/export-policies",
            params={"svm.name": policy.svm, "name": policy.name},
            context="check export policy",
        ):
            LOG.debug("Export policy already present", extra={"policy": policy.name})
            return
        body = {"name": policy.name, "svm": {"name": policy.svm}}
        self._request(session, "POST", "/api/protocols/nfs/export-policies", body=body, context="create export policy")

    def add_export_rule(self, session: ClusterSession, policy: ExportPolicyDescriptor) -> None:
        policy_id = self._uuid(
            session,
            "/api/protocols/nfs/export-policies",
            params={"svm.name": policy.svm, "name": policy.name},
            context="look up export policy",
            key="id",
        )
        path = f"/api/protocols/nfs/export-policies/{policy_id}/rules"
        rules = self._records(session, path, params={"fields": "clients"}, context="read export rules")
        for rule in rules:
            matches = {c.get("match") for c in rule.get("clients") or []}
            if policy.client_match in matches:
                LOG.debug("Export rule already present", extra={"policy": policy.name, "client_match": policy.client_match})
                return
        body = {
            "clients": [{"match": policy.client_match}],
            "protocols": ["any"],
            "ro_rule": ["any"],
            "rw_rule": ["any"],
            "superuser": ["any"],
        }
        self._request(session, "POST", path, body=body, context="add export rule")

    def attach_export_policy(self, session: ClusterSession, policy: ExportPolicyDescriptor) -> None:
        volume_uuid = self._volume_uuid(session, policy.svm, policy.volume)
        body = {"nas": {"export_policy": {"name": policy.name}}}
        self._request(
            session, "PATCH", f"/api/storage/volumes/{volume_uuid}", body=body, context="attach export policy"
        )

    # ----------
    # Snapshot
    # ----------
    def create_snapshot(self, session: ClusterSession, snapshot: SnapshotDescriptor) -> None:
        volume_uuid = self._volume_uuid(session, snapshot.svm, snapshot.volume)
        path = f"/api/storage/volumes/{volume_uuid}/snapshots"
        if self._exists(session, path, params={"name": snapshot.name}, context="check snapshot"):
            LOG.debug("Snapshot already present", extra={"volume": snapshot.volume, "snapshot": snapshot.name})
            return
        self._request(session, "POST", path, body={"name": snapshot.name}, context="create snapshot")

    # ----------
    # Enumeration (resource selector)
    # ----------
    def list_aggregates(self, session: ClusterSession) -> List[AggregateInfo]:
        records = self._records(
            session,
            "/api/storage/aggregates",
            params={"fields": "name,space.block_storage.available"},
            context="list aggregates",
        )
        out = []
        for r in records:
            available = ((r.get("space") or {}).get("block_storage") or {}).get("available")
            out.append(AggregateInfo(name=str(r.get("name")), available_bytes=int(available) if available is not None else None))
        out.sort(key=lambda a: a.name)
        return out

    def list_nodes(self, session: ClusterSession) -> List[NodeInfo]:
        records = self._records(
            session, "/api/cluster/nodes", params={"fields": "name,state"}, context="list nodes"
        )
        out = [NodeInfo(name=str(r.get("name")), state=r.get("state")) for r in records]
        out.sort(key=lambda n: n.name)
        return out
