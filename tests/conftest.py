from __future__ import annotations

import io
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
from rich.console import Console

from svm_provisioner.credentials import Credential
from svm_provisioner.ontap.client import AggregateInfo, NodeInfo
from svm_provisioner.ontap.session import ClusterSession
from svm_provisioner.resolver import batch as batch_mod
from svm_provisioner.resolver import prompts
from svm_provisioner.resolver.resolver import build_request
from svm_provisioner.util.errors import ControlPlaneError

SAMPLE_BATCH = (
    "c1, svmA, aggr1, vol1, 100g, lif1, 10.0.0.5, 255.255.255.0, node1, e0c, SMBX, dom.local, 1.1.1.1;2.2.2.2"
)
DOMAIN_CREDENTIAL = Credential(username="joiner", password="join-secret")
CLUSTER_CREDENTIAL = Credential(username="admin", password="admin-secret")

# Guided-mode answers for the mandatory fields, in prompt order.
STRICT_ANSWERS = [
    "c1",
    "svmA",
    "aggr1",
    "vol1",
    "100g",
    "lif1",
    "10.0.0.5",
    "255.255.255.0",
    "node1",
    "e0c",
    "SMBX",
    "dom.local",
    "1.1.1.1;2.2.2.2",
]
# Interactive mode does not ask for aggregate and home node.
INTERACTIVE_ANSWERS = [a for a in STRICT_ANSWERS if a not in ("aggr1", "node1")]


class FakeControlPlane:
    """
    In-memory control plane.

    - `calls` records every method invocation in order.
    - `failures` maps a method name to the exception it raises.
    - Creating a resource kind that has an existence check twice raises a duplicate error.
    - Export policies, export rules, share ACLs and snapshots converge like the REST client:
      an existing policy, identical client-match rule, principal or snapshot name is not added again.
    """

    def __init__(self) -> None:
        self.calls: List[str] = []
        self.failures: Dict[str, BaseException] = {}
        self.connects = 0
        self.disconnects = 0
        self.svms: Set[str] = set()
        self.dns: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {}
        self.volumes: Set[Tuple[str, str]] = set()
        self.interfaces: Dict[Tuple[str, str], Any] = {}
        self.cifs_servers: Dict[str, str] = {}
        self.shares: Set[Tuple[str, str]] = set()
        self.acls: List[Any] = []
        self.nfs_enabled: Set[str] = set()
        self.export_policies: Set[Tuple[str, str]] = set()
        self.export_rules: List[Any] = []
        self.attached: Dict[Tuple[str, str], str] = {}
        self.snapshots: List[Tuple[str, str, str]] = []
        self.domain_credentials: List[Credential] = []
        self.aggregates: List[AggregateInfo] = [
            AggregateInfo("aggr1", 500 * 1024**3),
            AggregateInfo("aggr2", 1536 * 1024**3 + 123456789),
            AggregateInfo("aggr3", None),
        ]
        self.nodes: List[NodeInfo] = [NodeInfo("node1", "up"), NodeInfo("node2", "down")]

    def _call(self, name: str) -> None:
        self.calls.append(name)
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    @property
    def mutating_calls(self) -> List[str]:
        prefixes = ("create_", "configure_", "add_", "enable_", "attach_")
        return [c for c in self.calls if c.startswith(prefixes)]

    def connect(self, endpoint: str, credential: Credential) -> ClusterSession:
        self._call("connect")
        self.connects += 1
        return ClusterSession(endpoint=endpoint, http=object(), cluster_name="fake", version="9.14.1")

    def disconnect(self, session: ClusterSession) -> None:
        self.disconnects += 1
        self._call("disconnect")

    def svm_exists(self, session, svm):
        self._call("svm_exists")
        return svm in self.svms

    def create_svm(self, session, tenant):
        self._call("create_svm")
        if tenant.svm in self.svms:
            raise ControlPlaneError(f"duplicate SVM {tenant.svm}", status_code=409)
        self.svms.add(tenant.svm)

    def configure_dns(self, session, dns):
        self._call("configure_dns")
        self.dns[dns.svm] = (dns.servers, dns.domains)

    def volume_exists(self, session, svm, name):
        self._call("volume_exists")
        return (svm, name) in self.volumes

    def create_volume(self, session, volume):
        self._call("create_volume")
        key = (volume.svm, volume.name)
        if key in self.volumes:
            raise ControlPlaneError(f"duplicate volume {volume.name}", status_code=409)
        self.volumes.add(key)

    def interface_exists(self, session, svm, name):
        self._call("interface_exists")
        return (svm, name) in self.interfaces

    def create_interface(self, session, interface):
        self._call("create_interface")
        key = (interface.svm, interface.name)
        if key in self.interfaces:
            raise ControlPlaneError(f"duplicate LIF {interface.name}", status_code=409)
        self.interfaces[key] = interface

    def cifs_server_exists(self, session, svm):
        self._call("cifs_server_exists")
        return svm in self.cifs_servers

    def create_cifs_server(self, session, server, domain_credential):
        self._call("create_cifs_server")
        if server.svm in self.cifs_servers:
            raise ControlPlaneError(f"duplicate CIFS server on {server.svm}", status_code=409)
        self.domain_credentials.append(domain_credential)
        self.cifs_servers[server.svm] = server.name

    def share_exists(self, session, svm, name):
        self._call("share_exists")
        return (svm, name) in self.shares

    def create_share(self, session, share):
        self._call("create_share")
        key = (share.svm, share.name)
        if key in self.shares:
            raise ControlPlaneError(f"duplicate share {share.name}", status_code=409)
        self.shares.add(key)

    def add_share_acl(self, session, acl):
        self._call("add_share_acl")
        self.acls = [a for a in self.acls if (a.svm, a.share, a.principal) != (acl.svm, acl.share, acl.principal)]
        self.acls.append(acl)

    def enable_nfs(self, session, svm):
        self._call("enable_nfs")
        self.nfs_enabled.add(svm)

    def create_export_policy(self, session, policy):
        self._call("create_export_policy")
        self.export_policies.add((policy.svm, policy.name))

    def add_export_rule(self, session, policy):
        self._call("add_export_rule")
        if (policy.svm, policy.name) not in self.export_policies:
            raise ControlPlaneError(f"look up export policy: not found (name={policy.name})")
        if not any(
            (r.svm, r.name, r.client_match) == (policy.svm, policy.name, policy.client_match) for r in self.export_rules
        ):
            self.export_rules.append(policy)

    def attach_export_policy(self, session, policy):
        self._call("attach_export_policy")
        self.attached[(policy.svm, policy.volume)] = policy.name

    def create_snapshot(self, session, snapshot):
        self._call("create_snapshot")
        key = (snapshot.svm, snapshot.volume, snapshot.name)
        if key not in self.snapshots:
            self.snapshots.append(key)

    def list_aggregates(self, session):
        self._call("list_aggregates")
        return list(self.aggregates)

    def list_nodes(self, session):
        self._call("list_nodes")
        return list(self.nodes)


class ScriptedPrompts:
    """Answers prompts from a fixed script; an unexpected prompt fails the test."""

    def __init__(self, answers: List[Any]) -> None:
        self.answers = list(answers)
        self.asked: List[str] = []

    def _next(self, prompt: str) -> Any:
        self.asked.append(prompt)
        if not self.answers:
            raise AssertionError(f"unexpected prompt: {prompt}")
        return self.answers.pop(0)

    def ask_str(self, prompt: str, default: Optional[str] = None, allow_blank: bool = False) -> str:
        answer = self._next(prompt)
        if answer == "" and default is not None:
            return default
        return answer

    def ask_secret(self, prompt: str) -> str:
        return self._next(prompt)

    def ask_bool(self, prompt: str, default: bool) -> bool:
        answer = self._next(prompt)
        return default if answer is None else bool(answer)

    def ask_choice(self, prompt: str, choices, default: str) -> str:
        return self._next(prompt) or default


@pytest.fixture
def fake_cp() -> FakeControlPlane:
    return FakeControlPlane()


@pytest.fixture
def session() -> ClusterSession:
    return ClusterSession(endpoint="https://c1", http=object())


@pytest.fixture
def quiet_console(monkeypatch) -> io.StringIO:
    buf = io.StringIO()
    monkeypatch.setattr(prompts, "console", lambda: Console(file=buf, width=200, color_system=None))
    monkeypatch.setattr(prompts, "section", lambda title: None)
    return buf


@pytest.fixture
def scripted(monkeypatch, quiet_console):
    def _install(*answers: Any) -> ScriptedPrompts:
        script = ScriptedPrompts(list(answers))
        monkeypatch.setattr(prompts, "ask_str", script.ask_str)
        monkeypatch.setattr(prompts, "ask_secret", script.ask_secret)
        monkeypatch.setattr(prompts, "ask_bool", script.ask_bool)
        monkeypatch.setattr(prompts, "ask_choice", script.ask_choice)
        return script

    return _install


@pytest.fixture
def sample_request():
    return build_request(batch_mod.parse_batch(SAMPLE_BATCH))


@pytest.fixture
def clean_env(monkeypatch) -> None:
    for name in (
        "SVM_PROV_CLUSTER",
        "SVM_PROV_USERNAME",
        "SVM_PROV_PASSWORD",
        "SVM_PROV_DOMAIN_USER",
        "SVM_PROV_DOMAIN_PASSWORD",
        "SVM_PROV_VERIFY_SSL",
        "SVM_PROV_TIMEOUT",
        "SVM_PROV_DRY_RUN",
        "SVM_PROV_LOG_LEVEL",
        "SVM_PROV_JSON_LOGS",
        "SVM_PROV_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def credentials_env(monkeypatch, clean_env) -> None:
    monkeypatch.setenv("SVM_PROV_USERNAME", CLUSTER_CREDENTIAL.username)
    monkeypatch.setenv("SVM_PROV_PASSWORD", CLUSTER_CREDENTIAL.password)
    monkeypatch.setenv("SVM_PROV_DOMAIN_USER", DOMAIN_CREDENTIAL.username)
    monkeypatch.setenv("SVM_PROV_DOMAIN_PASSWORD", DOMAIN_CREDENTIAL.password)
