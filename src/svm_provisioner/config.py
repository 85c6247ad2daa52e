from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .models import ACL_PERMISSIONS, REQUEST_FIELDS
from .resolver.batch import split_list

# --------
# Defaults
# --------
DEFAULT_TIMEOUT = 60.0
DEFAULT_JOB_TIMEOUT = 300.0

REQUEST_KEYS = {f.name for f in REQUEST_FIELDS} | {"search_domains"}
FEATURE_KEYS = {"nfs_enabled", "nfs_client_match", "acl_enabled", "acl_principal", "acl_permission"}
RUN_KEYS = {
    "username",
    "verify_ssl",
    "timeout",
    "job_timeout",
    "dry_run",
    "log_level",
    "json_logs",
    "log_file",
    "summary_json",
}
ALLOWED_CONFIG_KEYS = REQUEST_KEYS | FEATURE_KEYS | RUN_KEYS
BOOL_CONFIG_KEYS = {"nfs_enabled", "acl_enabled", "verify_ssl", "dry_run", "json_logs"}
FLOAT_CONFIG_KEYS = {"timeout", "job_timeout"}
LIST_CONFIG_KEYS = {"dns_servers", "search_domains"}
PATH_CONFIG_KEYS = {"log_file", "summary_json"}


@dataclass(frozen=True)
class RunConfig:
    # Input mode
    batch: Optional[str] = None
    interactive: bool = False
    dry_run: bool = False

    # Request fields and optional features already known before any prompt
    supplied: Dict[str, Any] = field(default_factory=dict)

    # Cluster connection
    username: Optional[str] = None
    verify_ssl: bool = True
    timeout: float = DEFAULT_TIMEOUT
    job_timeout: float = DEFAULT_JOB_TIMEOUT

    # Output
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: Optional[Path] = None
    summary_json: Optional[Path] = None


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except Exception as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in {"1", "true", "yes", "on"}


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except Exception:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except Exception:
            raise ValueError(f"Config field '{key}' must be a number") from None
    else:
        raise ValueError(f"Config field '{key}' must be a number")
    if number <= 0:
        raise ValueError(f"Config field '{key}' must be positive")
    return number


def _coerce_list(key: str, value: Any) -> List[str]:
    if isinstance(value, str):
        return list(split_list(value))
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return [v.strip() for v in value if v.strip()]
    raise ValueError(f"Config field '{key}' must be a list of strings or a delimited string")


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS:
            continue
        if value is None:
            normalized[key] = None
        elif key in LIST_CONFIG_KEYS:
            normalized[key] = _coerce_list(key, value)
        elif key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in FLOAT_CONFIG_KEYS:
            normalized[key] = _coerce_float(key, value)
        elif key in PATH_CONFIG_KEYS:
            if not isinstance(value, (str, Path)):
                raise ValueError(f"Config field '{key}' must be a string path")
            normalized[key] = value
        elif isinstance(value, (str, int, float)) and not isinstance(value, bool):
            # Sizes such as `100` or ports written unquoted in YAML arrive as numbers.
            normalized[key] = str(value)
        else:
            raise ValueError(f"Config field '{key}' must be a string")
    permission = normalized.get("acl_permission")
    if permission is not None:
        permission = str(permission).lower()
        if permission not in ACL_PERMISSIONS:
            raise ValueError(f"Config field 'acl_permission' must be one of: {', '.join(ACL_PERMISSIONS)}")
        normalized["acl_permission"] = permission
    return _compact_dict(normalized)


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a.
    """
    merged = dict(a)
    merged.update(b)
    return merged


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="svm-prov",
        description="Provision an SVM with a CIFS share (and optional NFS export) on an ONTAP cluster",
    )

    mode = parser.add_argument_group("input mode")
    mode.add_argument(
        "--batch",
        default=None,
        help=(
            "Non-interactive: 13 comma-separated fields "
            "(cluster,svm,aggregate,volume,size,lif,address,netmask,node,port,cifs-server,domain,dns1;dns2)"
        ),
    )
    mode.add_argument(
        "--interactive",
        action="store_true",
        default=False,
        help="Guided mode with all options (aggregate and home node picked from the cluster)",
    )
    mode.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Report every change without making it",
    )

    fields = parser.add_argument_group("request fields")
    for item in REQUEST_FIELDS:
        fields.add_argument(item.flag, dest=item.name, default=None, help=item.label)
    fields.add_argument(
        "--search-domain",
        dest="search_domains",
        default=None,
        help="DNS search domain(s), comma separated",
    )

    features = parser.add_argument_group("optional features")
    features.add_argument("--nfs", dest="nfs_enabled", action=argparse.BooleanOptionalAction, default=None)
    features.add_argument("--nfs-client-match", default=None, help="Export rule client match (default 0.0.0.0/0)")
    features.add_argument("--acl", dest="acl_enabled", action=argparse.BooleanOptionalAction, default=None)
    features.add_argument("--acl-principal", default=None, help="Share ACL user or group (default Everyone)")
    features.add_argument(
        "--acl-permission",
        default=None,
        choices=list(ACL_PERMISSIONS),
        help="Share ACL permission (default full_control)",
    )

    conn = parser.add_argument_group("cluster connection")
    conn.add_argument("--username", default=None, help="Cluster admin user (password from SVM_PROV_PASSWORD or prompt)")
    conn.add_argument("--verify-ssl", action=argparse.BooleanOptionalAction, default=None)
    conn.add_argument("--timeout", type=float, default=None, help=f"HTTP timeout seconds (default {DEFAULT_TIMEOUT:g})")
    conn.add_argument(
        "--job-timeout",
        type=float,
        default=None,
        help=f"Max seconds to wait for an async cluster job (default {DEFAULT_JOB_TIMEOUT:g})",
    )

    out = parser.add_argument_group("output")
    out.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
    out.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")
    out.add_argument("--json-logs", action=argparse.BooleanOptionalAction, default=None, help="Enable JSON logs")
    out.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    out.add_argument("--summary-json", type=Path, default=None, help="Write the run summary as JSON")
    return parser


def load_run_config(argv: Optional[List[str]] = None) -> RunConfig:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.
    """
    ns = build_parser().parse_args(argv)

    base: Dict[str, Any] = {
        "dry_run": False,
        "verify_ssl": True,
        "timeout": DEFAULT_TIMEOUT,
        "job_timeout": DEFAULT_JOB_TIMEOUT,
        "log_level": "INFO",
        "json_logs": False,
    }

    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "cluster": _env_str("SVM_PROV_CLUSTER"),
            "username": _env_str("SVM_PROV_USERNAME"),
            "verify_ssl": _env_bool("SVM_PROV_VERIFY_SSL"),
            "timeout": _env_float("SVM_PROV_TIMEOUT"),
            "dry_run": _env_bool("SVM_PROV_DRY_RUN"),
            "log_level": _env_str("SVM_PROV_LOG_LEVEL"),
            "json_logs": _env_bool("SVM_PROV_JSON_LOGS"),
            "log_file": _env_str("SVM_PROV_LOG_FILE"),
        }
    )

    cli_raw: Dict[str, Any] = {key: getattr(ns, key, None) for key in ALLOWED_CONFIG_KEYS}
    for key in LIST_CONFIG_KEYS:
        if cli_raw.get(key) is not None:
            cli_raw[key] = list(split_list(cli_raw[key]))
    cli_cfg = _compact_dict(cli_raw)

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    supplied = {k: merged[k] for k in sorted(REQUEST_KEYS | FEATURE_KEYS) if k in merged}
    log_file = merged.get("log_file")
    summary_json = merged.get("summary_json")

    return RunConfig(
        batch=ns.batch,
        interactive=bool(ns.interactive),
        dry_run=bool(merged["dry_run"]),
        supplied=supplied,
        username=str(merged["username"]) if merged.get("username") else None,
        verify_ssl=bool(merged["verify_ssl"]),
        timeout=_coerce_float("timeout", merged["timeout"]),
        job_timeout=_coerce_float("job_timeout", merged["job_timeout"]),
        log_level=(merged.get("log_level") or "INFO").upper(),
        json_logs=bool(merged["json_logs"]),
        log_file=Path(log_file) if log_file else None,
        summary_json=Path(summary_json) if summary_json else None,
    )
