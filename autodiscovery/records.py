"""Reply records and the record factory contract."""

from dataclasses import dataclass
from typing import Callable, TypeVar

Address = tuple[str, int]

T = TypeVar("T")

# Builds a domain record from a responder address and its raw reply bytes.
RecordFactory = Callable[[Address, bytes], T]


def normalize_payload(payload: bytes | bytearray | memoryview | None) -> bytes:
    """Normalize a query or response payload to immutable bytes.

    Args:
        payload: Raw payload. None is treated as an empty payload.

    Returns:
        The payload as bytes.

    Raises:
        TypeError: If the payload is text or another non-bytes type.
    """
    if payload is None:
        return b""
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, (bytearray, memoryview)):
        return bytes(payload)
    raise TypeError(
        f"Payload must be bytes-like or None, not {type(payload).__name__}"
    )


@dataclass(frozen=True)
class ServerInformation:
    """A reply from a discovery server."""

    address: Address  # (host, port) the reply came from
    data: bytes  # Raw reply payload

    @property
    def host(self) -> str:
        return self.address[0]

    @property
    def port(self) -> int:
        return self.address[1]

    def text(self, encoding: str = "utf-8") -> str:
        """Decode the reply payload as text."""
        return self.data.decode(encoding)

    def __str__(self) -> str:
        return f"{self.host}:{self.port} ({len(self.data)} bytes)"
