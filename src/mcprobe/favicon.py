"""Server favicon wrapper."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from pathlib import Path

from mcprobe.errors import MalformedFieldError

DATA_URI_PREFIX = "data:image/png;base64,"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@dataclass(frozen=True)
class Favicon:
    """The base64 PNG data URI a Java server sends with its status.

    The payload is kept as received and only decoded on demand.
    """

    raw: str | None = None

    @classmethod
    def from_json(cls, value: object) -> Favicon:
        return cls(value if isinstance(value, str) else None)

    @property
    def exists(self) -> bool:
        return self.raw is not None

    def data(self) -> bytes:
        """Decode the data URI into PNG bytes.

        Raises:
            MalformedFieldError: If there is no favicon, the base64 is
                invalid, or the decoded bytes are not a PNG image.
        """
        if self.raw is None:
            msg = "Server did not send a favicon"
            raise MalformedFieldError(msg)

        encoded = self.raw.removeprefix(DATA_URI_PREFIX)
        try:
            data = base64.b64decode(encoded, validate=True)
        except binascii.Error as e:
            msg = f"Favicon is not valid base64: {e}"
            raise MalformedFieldError(msg) from e

        if not data.startswith(PNG_SIGNATURE):
            msg = "Favicon is not a PNG image"
            raise MalformedFieldError(msg)
        return data

    def save(self, path: Path | str) -> Path:
        """Write the decoded PNG to ``path`` and return the path."""
        target = Path(path)
        target.write_bytes(self.data())
        return target

    def __str__(self) -> str:
        return self.raw if self.raw is not None else "<nil>"
