"""
Handles and Lifetime Anchors
=============================

An :class:`Anchor` is the liveness token of one root container (a parsed
binary or a fat binary).  It owns the engine's record graph the way an
arena owns its allocations: everything reachable from the root, however
deep, is only observable through a :class:`Handle` that carries the
root's anchor.  Releasing the anchor drops the graph and turns every
later access through any derived handle into a :class:`ReleasedBinaryError`.

Handles come in two ownership kinds:

* ``BORROWED`` -- a shared read-only view of a record that stays in the
  graph.  Any number of wrappers may hold one.
* ``OWNED`` -- exclusive ownership handed off by the engine.  Wrapping an
  owned handle moves its content; the handle it came from is left empty.

Handles are minted only by :meth:`Anchor.lend` and :meth:`Anchor.adopt`.
"""

from __future__ import annotations

import enum
from typing import Generic, TypeVar

from tether.core.errors import MovedHandleError, ReleasedBinaryError

N = TypeVar("N")
M = TypeVar("M")


class Ownership(str, enum.Enum):
    """How a handle holds its engine record."""
    BORROWED = "borrowed"
    OWNED = "owned"


class Anchor:
    """Liveness token shared by a root container and everything derived from it."""

    __slots__ = ("_label", "_root", "_alive")

    def __init__(self, root: object, label: str = "binary") -> None:
        self._root: object | None = root
        self._label = label
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def label(self) -> str:
        return self._label

    @property
    def root(self) -> object:
        """The engine graph owned by this anchor."""
        self.ensure_alive()
        return self._root

    def ensure_alive(self) -> None:
        """Raise :class:`ReleasedBinaryError` once the anchor is released."""
        if not self._alive:
            raise ReleasedBinaryError(f"{self._label} has been released")

    def release(self) -> None:
        """Drop the engine graph.  Idempotent."""
        self._alive = False
        self._root = None

    def lend(self, native: N) -> Handle[N]:
        """Mint a borrowing handle on a record reachable from the root."""
        self.ensure_alive()
        return Handle(native, self, Ownership.BORROWED)

    def adopt(self, native: N) -> Handle[N]:
        """Mint an owning handle on a record handed off by the engine."""
        self.ensure_alive()
        return Handle(native, self, Ownership.OWNED)

    def __repr__(self) -> str:
        state = "alive" if self._alive else "released"
        return f"<Anchor {self._label} {state}>"


class Handle(Generic[N]):
    """Reference to exactly one engine record, anchored to its root."""

    __slots__ = ("_native", "_anchor", "_ownership")

    def __init__(self, native: N, anchor: Anchor, ownership: Ownership) -> None:
        self._native: N | None = native
        self._anchor = anchor
        self._ownership = ownership

    @property
    def anchor(self) -> Anchor:
        return self._anchor

    @property
    def ownership(self) -> Ownership:
        return self._ownership

    @property
    def empty(self) -> bool:
        """``True`` once an owned handle's content has been moved out."""
        return self._native is None

    def get(self) -> N:
        """Return the engine record, faulting if the root is gone or the content moved."""
        self._anchor.ensure_alive()
        if self._native is None:
            raise MovedHandleError("handle content was moved to another owner")
        return self._native

    def move(self) -> Handle[N]:
        """Transfer the content of an owned handle into a new handle.

        Borrowed handles are shared, so moving one returns it unchanged.
        """
        native = self.get()
        if self._ownership is Ownership.BORROWED:
            return self
        self._native = None
        return Handle(native, self._anchor, Ownership.OWNED)

    def lend(self, child: M) -> Handle[M]:
        """Borrow a record owned by this one.

        The child anchors to the root, not to this handle: the engine tears
        the whole graph down at once when the root is released.
        """
        return self._anchor.lend(child)

    def __repr__(self) -> str:
        target = "moved" if self._native is None else type(self._native).__name__
        return f"<Handle {self._ownership.value} {target} of {self._anchor.label}>"
