from __future__ import annotations

import ipaddress
import re
from typing import Optional

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmgtp]?)b?\s*$", re.IGNORECASE)
_MULTIPLIERS = {"": 1, "k": 1024, "m": 1024**2, "g": 1024**3, "t": 1024**4, "p": 1024**5}


def parse_size(value: str) -> int:
    """Parse a volume size such as `100g`, `1.5t` or `524288000` into bytes."""
    match = _SIZE_RE.match(value or "")
    if not match:
        raise ValueError(f"unrecognized size '{value}' (expected e.g. 500m, 100g, 2t)")
    number, unit = match.groups()
    size = int(float(number) * _MULTIPLIERS[unit.lower()])
    if size <= 0:
        raise ValueError(f"size must be positive: '{value}'")
    return size


def bytes_to_gb(value: Optional[int]) -> float:
    if not value:
        return 0.0
    return round(value / 1024**3, 2)


def is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address((value or "").strip())
    except ValueError:
        return False
    return True


def is_netmask(value: str, address: Optional[str] = None) -> bool:
    """
    Accept a prefix length or a dotted IPv4 mask.

    When `address` parses, the mask must fit its family: /1-/32 or a dotted mask for IPv4,
    /1-/128 for IPv6. Without a usable address any prefix up to /128 passes.
    """
    raw = (value or "").strip()
    try:
        version = ipaddress.ip_address((address or "").strip()).version
    except ValueError:
        version = None
    if raw.isdecimal():
        limit = 32 if version == 4 else 128
        return 0 < int(raw) <= limit
    if version == 6:
        return False
    try:
        ipaddress.IPv4Network(f"0.0.0.0/{raw}")
    except ValueError:
        return False
    return True
