"""
Collection Views
=================

A :class:`CollectionView` is a lazy, read-only sequence over one engine
container.  It stores no wrappers: every element access lends a fresh
handle on the underlying record and converts it on demand, typically
through a variant dispatcher.

Enumeration snapshots the container at the moment iteration starts, so a
single pass always reflects one consistent state.  Re-enumerating without
an intervening mutation of the graph yields the same elements in the same
order.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, Sequence, TypeVar, overload

from tether.core.handle import Anchor, Handle

W = TypeVar("W")


class CollectionView(Sequence[W]):
    """Sequence of wrapped values derived from an anchored engine container.

    Args:
        anchor:  Anchor of the root container.
        source:  Zero-argument callable returning the engine records, in order.
        convert: Callable turning a borrowed handle into a wrapper.
        label:   Name used in ``repr``.
    """

    __slots__ = ("_anchor", "_source", "_convert", "_label")

    def __init__(
        self,
        anchor: Anchor,
        source: Callable[[], Sequence[Any]],
        convert: Callable[[Handle[Any]], W],
        label: str = "view",
    ) -> None:
        self._anchor = anchor
        self._source = source
        self._convert = convert
        self._label = label

    def _records(self) -> tuple[Any, ...]:
        self._anchor.ensure_alive()
        return tuple(self._source())

    def __len__(self) -> int:
        return len(self._records())

    @overload
    def __getitem__(self, index: int) -> W: ...

    @overload
    def __getitem__(self, index: slice) -> list[W]: ...

    def __getitem__(self, index: int | slice) -> W | list[W]:
        records = self._records()
        if isinstance(index, slice):
            return [self._convert(self._anchor.lend(r)) for r in records[index]]
        return self._convert(self._anchor.lend(records[index]))

    def __iter__(self) -> Iterator[W]:
        for record in self._records():
            yield self._convert(self._anchor.lend(record))

    def __bool__(self) -> bool:
        return len(self) > 0

    def __repr__(self) -> str:
        if not self._anchor.alive:
            return f"<{self._label} released>"
        return f"<{self._label} of {len(self)} items>"
