from __future__ import annotations

import re
from typing import Any, Dict, Optional, Tuple

from ..models import BATCH_DNS_DELIMITER, BATCH_FIELD_DELIMITER, FIELD_NAMES, REQUEST_FIELDS
from ..util.errors import ConfigurationError

BATCH_USAGE = (
    f"expected exactly {len(REQUEST_FIELDS)} fields separated by '{BATCH_FIELD_DELIMITER}' in this order: "
    + ", ".join(f.flag.lstrip("-") for f in REQUEST_FIELDS)
    + f"; separate multiple DNS servers with '{BATCH_DNS_DELIMITER}'"
)


def split_list(raw: Optional[str], pattern: str = r"[,;]") -> Tuple[str, ...]:
    """Split a delimited value into an ordered tuple, trimming and dropping empty entries."""
    if not raw:
        return ()
    return tuple(p.strip() for p in re.split(pattern, raw) if p.strip())


def parse_batch(text: str) -> Dict[str, Any]:
    """
    Parse the single-string batch input into request fields.

    Example:
      "c1, svmA, aggr1, vol1, 100g, lif1, 10.0.0.5, 255.255.255.0, node1, e0c, SMBX, dom.local, 1.1.1.1;2.2.2.2"
    """
    parts = [p.strip() for p in (text or "").split(BATCH_FIELD_DELIMITER)]
    if len(parts) != len(FIELD_NAMES):
        raise ConfigurationError(f"Batch input has {len(parts)} field(s); {BATCH_USAGE}")
    values: Dict[str, Any] = dict(zip(FIELD_NAMES, parts))
    values["dns_servers"] = split_list(values["dns_servers"], re.escape(BATCH_DNS_DELIMITER))
    return values
