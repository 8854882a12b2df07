"""Fault types raised by the Tether bridge.

None of these are meant to be caught by library code: each one signals a
programming error on the caller's or the engine's side.  Unrecognised
discriminators are *not* errors; they surface as Unknown variants.
"""


class TetherError(Exception):
    """Base class for all Tether faults."""


class ReleasedBinaryError(TetherError, RuntimeError):
    """Raised when a value derived from a released binary is accessed."""


class MovedHandleError(ReleasedBinaryError):
    """Raised when an owned handle is used after its content was moved."""


class NativeTypeError(TetherError, TypeError):
    """Raised when a known discriminator sits on an engine record of the wrong type."""

    discriminator: object
    expected: type
    actual: type

    def __init__(self, discriminator: object, expected: type, actual: type) -> None:
        self.discriminator = discriminator
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"discriminator {discriminator!r} requires a {expected.__name__} "
            f"record, got {actual.__name__}"
        )
