"""Exceptions and result types for the Milkbot channel layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ErrorKind(StrEnum):
    """Why a channel operation failed."""

    CONNECTION_UNAVAILABLE = "connection_unavailable"
    CHANNEL_NOT_FOUND = "channel_not_found"
    WRITE_UNSUPPORTED = "write_unsupported"
    DECODE_TRUNCATED = "decode_truncated"
    STALENESS_LIMIT_EXCEEDED = "staleness_limit_exceeded"
    TRANSPORT_DISCONNECTED = "transport_disconnected"
    TRANSPORT_ERROR = "transport_error"
    OPERATION_TIMEOUT = "operation_timeout"


class MilkbotError(Exception):
    """Base error for the Milkbot integration."""

    kind: ErrorKind = ErrorKind.TRANSPORT_ERROR


class ConnectionUnavailable(MilkbotError):
    """No device selected, no matching device, or not connected."""

    kind = ErrorKind.CONNECTION_UNAVAILABLE


class ChannelNotFound(MilkbotError):
    """Service or characteristic is not exposed by the robot."""

    kind = ErrorKind.CHANNEL_NOT_FOUND


class WriteUnsupported(MilkbotError):
    """Characteristic supports neither write mode."""

    kind = ErrorKind.WRITE_UNSUPPORTED


class TransportError(MilkbotError):
    """The link rejected or failed an operation."""

    kind = ErrorKind.TRANSPORT_ERROR


class TransportDisconnected(TransportError):
    """The link went away while (or before) an operation ran."""

    kind = ErrorKind.TRANSPORT_DISCONNECTED


class OperationTimeout(TransportError):
    """A read or write did not finish before the operation deadline."""

    kind = ErrorKind.OPERATION_TIMEOUT


class InvalidMapDocument(ValueError):
    """A map document is missing required fields or has wrong types."""


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a dispatcher or map transfer operation.

    Truthy on success so callers that only care about the boolean can
    keep writing ``if await dispatcher.send(cmd):``.
    """

    success: bool
    error: ErrorKind | None = None
    message: str | None = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls) -> CommandResult:
        """Return a successful result."""
        return cls(True)

    @classmethod
    def failed(cls, error: ErrorKind, message: str | None = None) -> CommandResult:
        """Return a failed result carrying its error kind."""
        return cls(False, error, message)

    @classmethod
    def from_exception(cls, err: MilkbotError) -> CommandResult:
        """Build a failed result from a channel-layer exception."""
        return cls(False, err.kind, str(err) or None)
