"""Client library for Minecraft server status, query, RCON and Votifier."""

from mcprobe.bedrock import BedrockStatus, status_bedrock
from mcprobe.connection import parse_address
from mcprobe.errors import (
    AlreadyLoggedInError,
    ConnectionClosedError,
    DeadlineExceededError,
    InvalidPasswordError,
    MalformedFieldError,
    McProbeError,
    NotConnectedError,
    NotLoggedInError,
    TruncatedInputError,
    UnexpectedResponseError,
    UnknownVotifierVersionError,
    VarIntTooBigError,
    VoteRejectedError,
)
from mcprobe.favicon import Favicon
from mcprobe.formatting import FormatRun, Motd
from mcprobe.java import JavaStatus, status
from mcprobe.legacy import LegacyJavaStatus, status_legacy
from mcprobe.query import (
    BasicQueryResponse,
    FullQueryResponse,
    SessionIdGenerator,
    basic_query,
    full_query,
)
from mcprobe.rcon import RconSession
from mcprobe.srv import SrvRecord
from mcprobe.vote import send_vote

__all__ = [
    "AlreadyLoggedInError",
    "BasicQueryResponse",
    "BedrockStatus",
    "ConnectionClosedError",
    "DeadlineExceededError",
    "Favicon",
    "FormatRun",
    "FullQueryResponse",
    "InvalidPasswordError",
    "JavaStatus",
    "LegacyJavaStatus",
    "MalformedFieldError",
    "McProbeError",
    "Motd",
    "NotConnectedError",
    "NotLoggedInError",
    "RconSession",
    "SessionIdGenerator",
    "SrvRecord",
    "TruncatedInputError",
    "UnexpectedResponseError",
    "UnknownVotifierVersionError",
    "VarIntTooBigError",
    "VoteRejectedError",
    "basic_query",
    "full_query",
    "parse_address",
    "send_vote",
    "status",
    "status_bedrock",
    "status_legacy",
]
