"""Exception hierarchy for the AS3935 driver."""

from __future__ import annotations

__all__ = [
    'AS3935Error', 'ConfigurationError', 'DecodeError', 'StateError',
    'TransportError', 'ValidationError',
]


class AS3935Error(Exception):
    """Base class for all driver errors."""
    pass


class ConfigurationError(AS3935Error, ValueError):
    """Raised when the driver is constructed with an invalid device path or address."""
    pass


class StateError(AS3935Error, RuntimeError):
    """Raised when an operation does not match the connection state."""
    pass


class ValidationError(AS3935Error, ValueError):
    """Raised when a setter is given a value outside the field's defined set."""
    pass


class TransportError(AS3935Error, OSError):
    """Raised when the underlying bus fails to open, read, write or close."""
    pass


class DecodeError(AS3935Error):
    """Raised when a register holds a value no defined field value maps to.

    This points at a hardware fault or a library/hardware mismatch rather
    than an I/O problem.
    """

    def __init__(self, message: str, offset: int, value: int) -> None:
        super().__init__(message)
        self.offset = offset
        self.value = value
