"""Exceptions raised by the protocol clients."""

from __future__ import annotations


class McProbeError(Exception):
    """Base exception for all protocol errors."""


class TruncatedInputError(McProbeError):
    """Raised when the input ends before all expected bytes arrived."""


class ConnectionClosedError(TruncatedInputError):
    """Raised when the peer closes the stream while bytes are still expected."""


class UnexpectedResponseError(McProbeError):
    """Raised on a wrong packet ID, type tag, or echoed value."""


class VarIntTooBigError(McProbeError):
    """Raised when a VarInt or VarLong runs past its maximum size."""


class MalformedFieldError(McProbeError):
    """Raised when a field cannot be parsed or a response has the wrong shape."""


class NotConnectedError(McProbeError):
    """Raised when an RCON session is used before it has been dialed."""


class InvalidPasswordError(McProbeError):
    """Raised when the RCON server rejects the password."""


class AlreadyLoggedInError(McProbeError):
    """Raised on a second RCON login attempt."""


class NotLoggedInError(McProbeError):
    """Raised when an RCON command is sent before a successful login."""


class UnknownVotifierVersionError(McProbeError):
    """Raised when the Votifier greeting announces an unsupported version."""


class VoteRejectedError(McProbeError):
    """Raised when the Votifier server answers with an error status."""


class DeadlineExceededError(McProbeError, TimeoutError):
    """Raised when an exchange does not finish before its deadline."""
