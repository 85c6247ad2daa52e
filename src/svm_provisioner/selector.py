from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from .ontap.client import ControlPlaneClient
from .ontap.session import ClusterSession
from .resolver import prompts
from .util.errors import SelectionError
from .util.units import bytes_to_gb

LOG = logging.getLogger(__name__)

MAX_SELECTION_ATTEMPTS = 3


@dataclass(frozen=True)
class Candidate:
    name: str
    annotation: str


def _aggregate_candidates(client: ControlPlaneClient, session: ClusterSession) -> List[Candidate]:
    return [
        Candidate(name=a.name, annotation=f"{bytes_to_gb(a.available_bytes):.2f} GB available")
        for a in client.list_aggregates(session)
    ]


def _node_health(state: object) -> str:
    if str(state or "").lower() == "up":
        return "healthy"
    return f"UNHEALTHY ({state or 'unknown'})"


def _node_candidates(client: ControlPlaneClient, session: ClusterSession) -> List[Candidate]:
    return [Candidate(name=n.name, annotation=_node_health(n.state)) for n in client.list_nodes(session)]


_LISTERS = {
    "aggregate": ("aggregate", _aggregate_candidates),
    "home_node": ("home node", _node_candidates),
}


def list_candidates(client: ControlPlaneClient, session: ClusterSession, field: str) -> List[Candidate]:
    """
    Query the cluster for the resources that can fill `field`.
    Any failure, including an empty result, is a SelectionError.
    """
    if field not in _LISTERS:
        raise SelectionError(f"{field}: not a selectable field")
    label, lister = _LISTERS[field]
    try:
        candidates = lister(client, session)
    except Exception as e:
        raise SelectionError(f"{field}: failed to list {label} candidates: {e}") from e
    if not candidates:
        raise SelectionError(f"{field}: the cluster returned no {label} candidates")
    return candidates


def render_menu(title: str, candidates: Sequence[Candidate]) -> None:
    from rich.table import Table

    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Details")
    for idx, c in enumerate(candidates, start=1):
        table.add_row(str(idx), c.name, c.annotation)
    prompts.console().print(table)


def choose_ordinal(candidates: Sequence[Candidate], raw: str) -> str:
    """Map a 1-based ordinal to the candidate's canonical name. No fallback to a default."""
    text = (raw or "").strip()
    if not text.isdecimal():
        raise SelectionError(f"'{raw}' is not a number between 1 and {len(candidates)}")
    idx = int(text)
    if not 1 <= idx <= len(candidates):
        raise SelectionError(f"{idx} is out of range; choose between 1 and {len(candidates)}")
    return candidates[idx - 1].name


def select_resource(client: ControlPlaneClient, session: ClusterSession, field: str) -> str:
    """
    Let the operator pick a live resource for `field` (aggregate or home_node).

    A failed query propagates as SelectionError; a bad ordinal is re-asked up to
    MAX_SELECTION_ATTEMPTS times before giving up with SelectionError.
    """
    candidates = list_candidates(client, session, field)
    label = _LISTERS[field][0]
    render_menu(f"Select {label}", candidates)
    last_error: SelectionError | None = None
    for _ in range(MAX_SELECTION_ATTEMPTS):
        raw = prompts.ask_str(f"{label.capitalize()} number")
        try:
            name = choose_ordinal(candidates, raw)
        except SelectionError as e:
            last_error = e
            prompts.console().print(str(e), style="red", markup=False)
            continue
        LOG.info("Selected %s", label, extra={"field": field, "selected": name})
        return name
    raise SelectionError(f"{field}: no valid selection after {MAX_SELECTION_ATTEMPTS} attempts ({last_error})")
