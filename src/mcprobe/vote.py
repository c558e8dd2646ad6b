"""Votifier protocol v2 (NuVotifier) vote sender."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass

from mcprobe.connection import dial_tcp
from mcprobe.errors import (
    MalformedFieldError,
    UnexpectedResponseError,
    UnknownVotifierVersionError,
    VoteRejectedError,
)
from mcprobe.wire import PacketWriter

log = logging.getLogger(__name__)

DEFAULT_PORT = 8192
DEFAULT_TIMEOUT = 5.0

VOTIFIER_MAGIC = 0x733A
SUPPORTED_VERSION = "2"


@dataclass(frozen=True)
class Greeting:
    version: str
    challenge: str


def parse_greeting(line: bytes) -> Greeting:
    """Parse ``VOTIFIER <version> <challenge>``."""
    fields = line.decode("utf-8", errors="replace").strip().split(" ")
    if len(fields) < 2 or fields[0] != "VOTIFIER":  # noqa: PLR2004
        msg = f"Malformed Votifier greeting: {line!r}"
        raise MalformedFieldError(msg)
    # v1 servers greet with "VOTIFIER 1.9" and no challenge.
    if fields[1] != SUPPORTED_VERSION:
        msg = f"Unsupported Votifier version: {fields[1]}"
        raise UnknownVotifierVersionError(msg)
    if len(fields) < 3:  # noqa: PLR2004
        msg = f"Votifier greeting has no challenge: {line!r}"
        raise MalformedFieldError(msg)
    return Greeting(version=fields[1], challenge=fields[2])


def build_vote_message(  # noqa: PLR0913
    *,
    service_name: str,
    username: str,
    address: str,
    timestamp_ms: int,
    challenge: str,
    token: str,
    uuid: str | None = None,
) -> bytes:
    """Build the framed, signed vote.

    The HMAC-SHA256 signature covers the exact payload bytes that are sent.
    """
    payload: dict[str, object] = {
        "serviceName": service_name,
        "username": username,
        "address": address,
        "timestamp": timestamp_ms,
        "challenge": challenge,
    }
    if uuid:
        payload["uuid"] = uuid
    payload_json = json.dumps(payload, separators=(",", ":"))

    digest = hmac.new(
        token.encode("utf-8"), payload_json.encode("utf-8"), hashlib.sha256
    ).digest()
    signature = base64.b64encode(digest).decode("ascii")
    message = json.dumps(
        {"payload": payload_json, "signature": signature}, separators=(",", ":")
    ).encode("utf-8")

    return (
        PacketWriter()
        .write_uint16(VOTIFIER_MAGIC)
        .write_uint16(len(message))
        .write(message)
        .getvalue()
    )


def check_vote_response(line: bytes) -> None:
    """Raise unless the server acknowledged the vote."""
    try:
        response = json.loads(line)
    except json.JSONDecodeError as e:
        msg = f"Votifier response is not valid JSON: {e}"
        raise MalformedFieldError(msg) from e
    if not isinstance(response, dict):
        msg = f"Unexpected Votifier response: {response!r}"
        raise UnexpectedResponseError(msg)

    status = response.get("status")
    if status == "ok":
        return
    if status == "error":
        msg = f"Server returned error: {response.get('error', '')}"
        raise VoteRejectedError(msg)
    msg = f"Unexpected Votifier status: {status!r}"
    raise UnexpectedResponseError(msg)


def send_vote(  # noqa: PLR0913
    host: str,
    port: int = DEFAULT_PORT,
    *,
    service_name: str,
    username: str,
    token: str,
    uuid: str | None = None,
    timestamp: float | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> None:
    """Send a vote to a Votifier v2 server.

    Args:
        host: Server hostname or IP address.
        port: Votifier port.
        service_name: Name of the voting site.
        username: Player who voted.
        token: Shared secret configured on the server for this service.
        uuid: Optional player UUID.
        timestamp: Vote time as a Unix timestamp; defaults to now.
        timeout: Deadline in seconds for the whole exchange.

    Raises:
        UnknownVotifierVersionError: If the server does not speak v2.
        VoteRejectedError: If the server answers with an error.
    """
    if timestamp is None:
        timestamp = time.time()

    with dial_tcp(host, port, timeout) as stream:
        greeting = parse_greeting(stream.read_until(b"\n"))
        log.debug("Votifier %s greeting from %s:%d", greeting.version, host, port)

        stream.write(
            build_vote_message(
                service_name=service_name,
                username=username,
                address=f"{host}:{port}",
                timestamp_ms=int(timestamp * 1000),
                challenge=greeting.challenge,
                token=token,
                uuid=uuid,
            )
        )
        check_vote_response(stream.read_until(b"\n"))
