"""
Conversion Protocol
====================

:class:`NativeWrapper` is the base of every safe value type.  A wrapper
holds exactly one :class:`~tether.core.handle.Handle`; it is produced by
:meth:`NativeWrapper.from_native`, which trusts its caller (the variant
dispatcher) to pass a handle of the right engine type.

Per-variant accessors are declared, not written: each field the engine
computed is listed once as a :class:`native_field` on the class body and
becomes a read-only attribute that reads through the handle.  The
declared names are collected into ``fields`` for rendering and
serialisation.

Usage::

    class RPathCommand(Command):
        native_type = NativeRPathCommand
        path = native_field()
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar, Generic, TypeVar

from tether.core.handle import Handle

N = TypeVar("N")
W = TypeVar("W", bound="NativeWrapper[Any]")


class native_field:
    """Read-only accessor for one attribute of the wrapped engine record.

    Args:
        source:  Engine attribute name.  Defaults to the declared name.
        convert: Optional callable applied to the raw value on every read.
        doc:     Docstring exposed on the class attribute.
    """

    def __init__(
        self,
        source: str | None = None,
        *,
        convert: Callable[[Any], Any] | None = None,
        doc: str | None = None,
    ) -> None:
        self.name: str = source or ""
        self.source: str | None = source
        self.convert = convert
        self.__doc__ = doc

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        if self.source is None:
            self.source = name

    def __get__(self, instance: NativeWrapper[Any] | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        value = getattr(instance._handle.get(), self.source)  # type: ignore[arg-type]
        if self.convert is not None:
            return self.convert(value)
        return value

    def __set__(self, instance: NativeWrapper[Any], value: Any) -> None:
        raise AttributeError(f"{self.name} is read-only")


class NativeWrapper(Generic[N]):
    """Safe value type around one anchored engine record."""

    native_type: ClassVar[type] = object
    fields: ClassVar[tuple[str, ...]] = ()

    __slots__ = ("_handle",)

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        inherited = tuple(getattr(cls, "fields", ()))
        own = tuple(
            name for name, value in vars(cls).items()
            if isinstance(value, native_field) and name not in inherited
        )
        cls.fields = inherited + own

    def __init__(self, handle: Handle[N]) -> None:
        self._handle = handle

    @classmethod
    def from_native(cls: type[W], handle: Handle[Any]) -> W:
        """Wrap *handle*; owned handles are moved into the new value."""
        return cls(handle.move())

    @property
    def released(self) -> bool:
        """``True`` once the owning root has been released."""
        return not self._handle.anchor.alive

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of the declared fields."""
        return {name: getattr(self, name) for name in self.fields}

    def _render_fields(self) -> str:
        return ", ".join(f"{name}={_render(getattr(self, name))}" for name in self.fields)

    def __repr__(self) -> str:
        if self.released:
            return f"<{type(self).__name__} released>"
        return f"{type(self).__name__}({self._render_fields()})"

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._handle.get() is other._handle.get()  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), id(self._handle.get())))


def _render(value: Any) -> str:
    if isinstance(value, bool):
        return repr(value)
    if isinstance(value, int):
        return hex(value)
    return repr(value)
