from __future__ import annotations

from svm_provisioner.util.pagination import paginate


def test_paginate_follows_next_links_in_order() -> None:
    calls = []
    pages = {
        None: (["aggr1", "aggr2"], "/api/storage/aggregates?start.name=aggr3"),
        "/api/storage/aggregates?start.name=aggr3": (["aggr3"], None),
    }

    def fetch(href):
        calls.append(href)
        return pages[href]

    assert list(paginate(fetch)) == ["aggr1", "aggr2", "aggr3"]
    assert calls == [None, "/api/storage/aggregates?start.name=aggr3"]


def test_paginate_stops_on_repeated_next_link() -> None:
    calls = []

    def fetch(href):
        calls.append(href)
        return (["node1"], "/api/cluster/nodes?page=2")

    assert list(paginate(fetch)) == ["node1", "node1"]
    assert calls == [None, "/api/cluster/nodes?page=2"]
