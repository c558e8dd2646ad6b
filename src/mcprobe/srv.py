"""SRV record lookup for ``_minecraft._tcp.<host>``."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass

import dns.exception
import dns.resolver

log = logging.getLogger(__name__)

SRV_SERVICE = "_minecraft._tcp"


@dataclass(frozen=True)
class SrvRecord:
    """Where an SRV record redirected the connection."""

    host: str
    port: int


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def lookup_srv(host: str, timeout: float | None = None) -> SrvRecord | None:
    """Resolve the Minecraft SRV record for ``host``.

    Lookup failures are not fatal: any DNS error simply means "no record",
    and the caller keeps its original host and port. IP literals are never
    looked up.
    """
    if _is_ip_literal(host):
        return None

    name = f"{SRV_SERVICE}.{host}"
    try:
        answers = dns.resolver.resolve(name, "SRV", lifetime=timeout)
    except dns.exception.DNSException as e:
        log.debug("No SRV record for %s: %s", name, e)
        return None

    # Lowest priority first, then highest weight.
    records = sorted(
        answers,
        key=lambda rdata: (rdata.priority, -rdata.weight),  # type: ignore[attr-defined]
    )
    if not records:
        return None

    best = records[0]
    record = SrvRecord(
        host=str(best.target).rstrip("."),  # type: ignore[attr-defined]
        port=best.port,  # type: ignore[attr-defined]
    )
    log.debug("SRV record %s -> %s:%d", name, record.host, record.port)
    return record


def resolve_target(
    host: str, port: int, *, enable_srv: bool, timeout: float | None
) -> tuple[str, int, SrvRecord | None]:
    """Apply an SRV redirect when enabled and present.

    Returns:
        ``(host, port, record)`` where ``record`` is ``None`` if no redirect
        happened.
    """
    if not enable_srv:
        return host, port, None
    record = lookup_srv(host, timeout)
    if record is None:
        return host, port, None
    return record.host, record.port, record
