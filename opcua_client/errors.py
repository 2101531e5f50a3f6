"""
Exception hierarchy for the OPC UA client.

All errors raised by this package derive from OpcuaClientError so callers
can catch the whole family with one clause.
"""

from .status import status_code_to_name


class OpcuaClientError(Exception):
    """Base class for every error raised by the client."""


class InvalidArgumentError(OpcuaClientError):
    """A host-supplied argument has the wrong type, shape or range."""

    def __init__(self, message: str = "Invalid arguments"):
        super().__init__(message)


class StatusCodeError(OpcuaClientError):
    """
    A non-good status code returned by the OPC UA stack.

    Attributes:
        code: Numeric 32-bit status code
        name: Symbolic name of the status code (e.g. "BadNodeIdUnknown")
    """

    def __init__(self, code: int):
        self.code = int(code)
        self.name = status_code_to_name(self.code)
        super().__init__(f"{self.code}: {self.name}")


class TypeMismatchError(OpcuaClientError):
    """The Variant tag differs from the kind requested by the accessor."""


class ShapeError(OpcuaClientError):
    """A scalar accessor was given an array Variant, or vice versa."""


class ClientInitializationError(OpcuaClientError):
    """The client handle could not be allocated. Not recoverable."""
