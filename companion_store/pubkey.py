"""Base58 encoding and Solana public-key validation."""

from __future__ import annotations

_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_INDEX = {char: value for value, char in enumerate(_ALPHABET)}

PUBKEY_LENGTH = 32


class PubkeyError(ValueError):
    """A public key string was rejected."""


class InvalidBase58(PubkeyError):
    """The text holds a character outside the base58 alphabet."""

    def __init__(self) -> None:
        super().__init__("invalid base58")


class WrongLength(PubkeyError):
    """The text decoded to the wrong number of bytes."""

    def __init__(self, length: int) -> None:
        super().__init__(f"wrong length: expected {PUBKEY_LENGTH} bytes, got {length}")
        self.length = length


def b58encode(data: bytes) -> str:
    """Encode bytes as base58 text, one leading '1' per leading zero byte."""
    zeros = len(data) - len(data.lstrip(b"\x00"))
    number = int.from_bytes(data, "big")
    digits = []
    while number:
        number, remainder = divmod(number, 58)
        digits.append(_ALPHABET[remainder])
    return "1" * zeros + "".join(reversed(digits))


def b58decode(text: str) -> bytes:
    """Decode base58 text; raises InvalidBase58 on a character outside the alphabet."""
    number = 0
    for char in text:
        try:
            number = number * 58 + _INDEX[char]
        except KeyError:
            raise InvalidBase58() from None
    zeros = len(text) - len(text.lstrip("1"))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big")
    return b"\x00" * zeros + body


def validate_solana_pubkey(s: str) -> str:
    """Check that ``s`` decodes to 32 bytes and return its canonical encoding."""
    data = b58decode(s)
    if len(data) != PUBKEY_LENGTH:
        raise WrongLength(len(data))
    return b58encode(data)