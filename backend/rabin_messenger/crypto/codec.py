"""Text <-> integer codec used to feed messages into the Rabin cipher.

Text is UTF-8 encoded and read as a big-endian hexadecimal number. On the way
back a single leading zero nibble is restored when the hex string has odd
length; leading zero bytes beyond that are lost.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional


class DecodeError(ValueError):
    """The integer does not map to a valid UTF-8 byte sequence."""


@dataclass(frozen=True)
class DecodeResult:
    value: int
    text: Optional[str] = None
    error: Optional[DecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def encode(text: str) -> int:
    data = text.encode("utf-8")
    if not data:
        return 0
    return int(data.hex(), 16)


def decode(value: int) -> str:
    if value < 0:
        raise DecodeError("negative integers have no byte representation")
    if value == 0:
        return ""
    hex_str = format(value, "x")
    if len(hex_str) % 2:
        hex_str = "0" + hex_str
    try:
        return bytes.fromhex(hex_str).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"{value} is not valid UTF-8") from exc


def try_decode(value: int) -> DecodeResult:
    try:
        return DecodeResult(value=value, text=decode(value))
    except DecodeError as exc:
        return DecodeResult(value=value, error=exc)


def decode_all(values: Iterable[int]) -> List[DecodeResult]:
    return [try_decode(v) for v in values]
