"""Bridging machinery shared by every object format."""

from tether.core.convert import NativeWrapper, native_field
from tether.core.errors import (
    MovedHandleError,
    NativeTypeError,
    ReleasedBinaryError,
    TetherError,
)
from tether.core.handle import Anchor, Handle, Ownership
from tether.core.views import CollectionView

__all__ = [
    "Anchor",
    "CollectionView",
    "Handle",
    "MovedHandleError",
    "NativeTypeError",
    "NativeWrapper",
    "Ownership",
    "ReleasedBinaryError",
    "TetherError",
    "native_field",
]
