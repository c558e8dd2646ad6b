"""Retrieve secrets (RCON passwords, Votifier tokens) from 1Password."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mcprobe.config import CONFIG_FILE

if TYPE_CHECKING:
    from mcprobe.config import CredentialConfig

OP_TIMEOUT = 30


class CredentialError(Exception):
    """Raised when a secret cannot be retrieved from 1Password."""


@dataclass(frozen=True)
class SecretKind:
    """What a secret is for, and the flag that supplies it directly."""

    description: str
    flag: str


RCON_PASSWORD = SecretKind(description="RCON password", flag="-p")
VOTIFIER_TOKEN = SecretKind(description="Votifier token", flag="--token")

_GENERIC = SecretKind(description="secret", flag="")


def _op_command(op_path: str, creds: CredentialConfig) -> list[str]:
    return [
        op_path,
        "item",
        "get",
        creds.item,
        "--vault",
        creds.vault,
        "--fields",
        f"label={creds.field}",
        "--reveal",
    ]


def get_secret(creds: CredentialConfig, kind: SecretKind = _GENERIC) -> str:
    """Read one field of a 1Password item with the ``op`` CLI.

    Args:
        creds: Vault, item and field to read.
        kind: Used to name the secret in error messages.

    Returns:
        The secret value.

    Raises:
        CredentialError: If the op CLI is not found, the lookup fails or
            times out, or the field is empty.
    """
    op_path = shutil.which("op")
    if not op_path:
        msg = "1Password CLI (op) is not installed or not in PATH"
        raise CredentialError(msg)

    try:
        result = subprocess.run(  # noqa: S603
            _op_command(op_path, creds),
            capture_output=True,
            text=True,
            check=True,
            timeout=OP_TIMEOUT,
        )
    except subprocess.CalledProcessError as e:
        detail = e.stderr.strip()
        msg = f"Failed to retrieve {kind.description} from 1Password: {detail}"
        raise CredentialError(msg) from e
    except subprocess.TimeoutExpired as e:
        msg = "1Password CLI timed out -- is the session active?"
        raise CredentialError(msg) from e

    secret = result.stdout.strip()
    if not secret:
        msg = (
            f"Empty value for {creds.field} in 1Password"
            f" (vault={creds.vault}, item={creds.item})"
        )
        raise CredentialError(msg)

    return secret


def resolve_secret(
    explicit: str | None, creds: CredentialConfig | None, kind: SecretKind
) -> str:
    """Return ``explicit`` if given, else look the secret up in 1Password.

    Raises:
        CredentialError: If there is nothing to look up, or the lookup fails.
    """
    if explicit is not None:
        return explicit

    if creds is None:
        msg = (
            f"No {kind.description} credentials configured for this server and no"
            f" defaults set. Use {kind.flag}, or configure credentials in"
            f" {CONFIG_FILE}"
        )
        raise CredentialError(msg)

    return get_secret(creds, kind)
