from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..models import (
    ACL_PERMISSIONS,
    DEFAULT_ACL_PERMISSION,
    DEFAULT_ACL_PRINCIPAL,
    DEFAULT_NFS_CLIENT_MATCH,
    FIELD_NAMES,
    FIELDS_BY_NAME,
    SELECTABLE_FIELDS,
    OptionalFeatures,
    ProvisioningRequest,
)
from ..util.errors import ConfigurationError
from ..util.units import is_ip_address, is_netmask, parse_size
from . import prompts
from .batch import parse_batch, split_list

LOG = logging.getLogger(__name__)

MODE_BATCH = "batch"
MODE_INTERACTIVE = "interactive"  # guided, all fields plus optional features
MODE_STRICT = "strict"  # guided, mandatory fields only

_MODE_ANSWERS = {
    "": MODE_STRICT,
    "s": MODE_STRICT,
    "strict": MODE_STRICT,
    "i": MODE_INTERACTIVE,
    "interactive": MODE_INTERACTIVE,
}

FEATURE_KEYS = ("nfs_enabled", "nfs_client_match", "acl_enabled", "acl_principal", "acl_permission")


@dataclass(frozen=True)
class Resolution:
    """
    Output of the resolver before the final request is built.

    `deferred` lists the fields still to be picked from the live cluster
    (interactive mode only); every other mode leaves it empty.
    """

    mode: str
    values: Mapping[str, Any]
    deferred: Tuple[str, ...] = ()

    @property
    def interactive(self) -> bool:
        return self.mode != MODE_BATCH


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def choose_mode(*, batch: Optional[str], interactive: bool) -> str:
    """
    Batch string wins, then the interactive flag; otherwise ask the operator.
    """
    if batch is not None and batch.strip():
        if interactive:
            LOG.warning("Ignoring --interactive because a batch string was supplied")
        return MODE_BATCH
    if interactive:
        return MODE_INTERACTIVE
    while True:
        raw = prompts.ask_str(
            "Run mode: (i)nteractive for all options, (s)trict for mandatory fields only",
            default="",
            allow_blank=True,
        )
        mode = _MODE_ANSWERS.get(raw.strip().lower())
        if mode is not None:
            return mode
        prompts.console().print(
            f"Unrecognized mode: {raw}. Enter 'i', 's' or press Enter for strict.", style="red", markup=False
        )


def prompt_fields(values: Dict[str, Any], fields: Sequence[str]) -> Dict[str, Any]:
    """Prompt for each listed field that has no value yet, in order."""
    for name in fields:
        if not _is_empty(values.get(name)):
            continue
        answer = prompts.ask_str(FIELDS_BY_NAME[name].label)
        values[name] = split_list(answer) if name == "dns_servers" else answer
    return values


def _prompt_features(values: Dict[str, Any]) -> None:
    nfs = values.get("nfs_enabled")
    if nfs is None:
        nfs = prompts.ask_bool("Enable NFS access to the data volume?", default=False)
    values["nfs_enabled"] = bool(nfs)
    if nfs and _is_empty(values.get("nfs_client_match")):
        values["nfs_client_match"] = prompts.ask_str("NFS client match", default=DEFAULT_NFS_CLIENT_MATCH)

    acl = values.get("acl_enabled")
    if acl is None:
        acl = prompts.ask_bool("Set an explicit ACL on the share?", default=False)
    values["acl_enabled"] = bool(acl)
    if acl:
        if _is_empty(values.get("acl_principal")):
            values["acl_principal"] = prompts.ask_str("Share ACL user or group", default=DEFAULT_ACL_PRINCIPAL)
        if _is_empty(values.get("acl_permission")):
            values["acl_permission"] = prompts.ask_choice(
                "Share ACL permission", ACL_PERMISSIONS, default=DEFAULT_ACL_PERMISSION
            )


def resolve(supplied: Mapping[str, Any], *, batch: Optional[str] = None, interactive: bool = False) -> Resolution:
    """
    Produce request values from exactly one input mode.

    - batch: the batch string supplies all mandatory fields; optional features are off.
    - strict: prompt for every missing mandatory field, including aggregate and home node.
    - interactive: prompt for every missing field except aggregate and home node (picked
      later from the cluster), then for the search domain and the optional features.

    No remote call happens here.
    """
    mode = choose_mode(batch=batch, interactive=interactive)

    if mode == MODE_BATCH:
        values: Dict[str, Any] = parse_batch(batch or "")
        if not _is_empty(supplied.get("search_domains")):
            values["search_domains"] = supplied["search_domains"]
        return Resolution(mode=mode, values=values)

    values = {k: v for k, v in supplied.items() if not _is_empty(v) or k in ("nfs_enabled", "acl_enabled")}

    if mode == MODE_STRICT:
        for key in FEATURE_KEYS:
            values.pop(key, None)
        prompts.section("Mandatory settings")
        prompt_fields(values, FIELD_NAMES)
        return Resolution(mode=mode, values=values)

    prompts.section("Provisioning settings")
    prompt_fields(values, [name for name in FIELD_NAMES if name not in SELECTABLE_FIELDS])
    if _is_empty(values.get("search_domains")):
        answer = prompts.ask_str(
            "DNS search domains (blank for none)", default=str(values.get("ad_domain") or ""), allow_blank=True
        )
        values["search_domains"] = split_list(answer)
    prompts.section("Optional features")
    _prompt_features(values)
    deferred = tuple(name for name in SELECTABLE_FIELDS if _is_empty(values.get(name)))
    return Resolution(mode=mode, values=values, deferred=deferred)


def _str(values: Mapping[str, Any], key: str, default: str = "") -> str:
    value = values.get(key)
    if _is_empty(value):
        return default
    return str(value).strip()


def _tuple(value: Any) -> Tuple[str, ...]:
    if _is_empty(value):
        return ()
    if isinstance(value, str):
        return split_list(value)
    return tuple(str(v).strip() for v in value if str(v).strip())


def _invalid_fields(values: Mapping[str, Any], features: OptionalFeatures) -> Dict[str, str]:
    invalid: Dict[str, str] = {}
    size = _str(values, "volume_size")
    if size:
        try:
            parse_size(size)
        except ValueError as e:
            invalid["volume_size"] = str(e)
    address = _str(values, "lif_address")
    if address and not is_ip_address(address):
        invalid["lif_address"] = f"not an IP address: {address}"
    netmask = _str(values, "lif_netmask")
    if netmask and not is_netmask(netmask, address):
        invalid["lif_netmask"] = f"not a netmask or prefix length: {netmask}"
    bad_dns = [s for s in _tuple(values.get("dns_servers")) if not is_ip_address(s)]
    if bad_dns:
        invalid["dns_servers"] = f"not IP addresses: {', '.join(bad_dns)}"
    if features.acl_enabled and features.acl_permission not in ACL_PERMISSIONS:
        invalid["acl_permission"] = f"must be one of {', '.join(ACL_PERMISSIONS)}"
    return invalid


def _features(values: Mapping[str, Any]) -> OptionalFeatures:
    return OptionalFeatures(
        nfs_enabled=bool(values.get("nfs_enabled")),
        nfs_client_match=_str(values, "nfs_client_match", DEFAULT_NFS_CLIENT_MATCH),
        acl_enabled=bool(values.get("acl_enabled")),
        acl_principal=_str(values, "acl_principal", DEFAULT_ACL_PRINCIPAL),
        acl_permission=_str(values, "acl_permission", DEFAULT_ACL_PERMISSION).lower(),
    )


def check_values(values: Mapping[str, Any], *, pending: Sequence[str] = ()) -> None:
    """
    Raise ConfigurationError naming every empty mandatory field and every invalid value.

    Fields listed in `pending` are still to be picked from the cluster and are not
    reported as missing yet.
    """
    missing: List[str] = [
        name for name in FIELD_NAMES if name not in pending and _is_empty(values.get(name))
    ]
    invalid = _invalid_fields(values, _features(values))
    if missing or invalid:
        raise ConfigurationError(
            "Provisioning request is incomplete or invalid", missing_fields=missing, invalid_fields=invalid
        )


def build_request(values: Mapping[str, Any]) -> ProvisioningRequest:
    """
    Validate the collected values and freeze them into a ProvisioningRequest.

    Every empty mandatory field is reported at once; nothing is defaulted except the
    NFS client match and the share ACL principal/permission.
    """
    check_values(values)
    features = _features(values)
    return ProvisioningRequest(
        cluster=_str(values, "cluster"),
        svm=_str(values, "svm"),
        aggregate=_str(values, "aggregate"),
        volume_name=_str(values, "volume_name"),
        volume_size=_str(values, "volume_size"),
        lif_name=_str(values, "lif_name"),
        lif_address=_str(values, "lif_address"),
        lif_netmask=_str(values, "lif_netmask"),
        home_node=_str(values, "home_node"),
        home_port=_str(values, "home_port"),
        cifs_server=_str(values, "cifs_server"),
        ad_domain=_str(values, "ad_domain"),
        dns_servers=_tuple(values.get("dns_servers")),
        search_domains=_tuple(values.get("search_domains")),
        features=features,
    )
