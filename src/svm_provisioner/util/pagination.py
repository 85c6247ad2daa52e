from __future__ import annotations

from typing import Callable, Generator, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


def paginate(
    fetch: Callable[[Optional[str]], Tuple[Sequence[T], Optional[str]]]
) -> Generator[T, None, None]:
    """
    Yield records from a fetch(next_href) function until the collection is exhausted.

    fetch receives None for the first page and afterwards the `_links.next.href`
    value of the previous response; it must return (records, next_href).
    """
    href: Optional[str] = None
    seen = set()
    while True:
        records, next_href = fetch(href)
        for record in records:
            yield record
        if not next_href or next_href in seen:
            break
        seen.add(next_href)
        href = next_href
