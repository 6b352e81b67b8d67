import pytest

from companion_store.pubkey import (
    InvalidBase58,
    PubkeyError,
    WrongLength,
    b58decode,
    b58encode,
    validate_solana_pubkey,
)


def test_accepts_canonical_32_byte_pubkey():
    canonical = "11111111111111111111111111111111"
    assert validate_solana_pubkey(canonical) == canonical


def test_accepts_real_shaped_pubkey():
    wallet = "BvHvbHBeF2zXa1pT5eExMzTAydPGFTyhqMAbPyuMTfQt"
    assert validate_solana_pubkey(wallet) == wallet
    assert len(b58decode(wallet)) == 32


def test_rejects_empty_string():
    with pytest.raises(WrongLength) as info:
        validate_solana_pubkey("")
    assert info.value.length == 0


def test_rejects_non_base58():
    with pytest.raises(InvalidBase58):
        validate_solana_pubkey("0OIl/+=")


def test_rejects_wrong_length():
    too_long = b58encode(bytes(33))
    with pytest.raises(WrongLength) as info:
        validate_solana_pubkey(too_long)
    assert info.value.length == 33
    assert str(info.value) == "wrong length: expected 32 bytes, got 33"


def test_errors_share_base_class():
    with pytest.raises(PubkeyError):
        validate_solana_pubkey("I")
    with pytest.raises(ValueError):
        validate_solana_pubkey("1")


def test_known_encoding():
    assert b58encode(b"hello world") == "StV1DL6CwTryKyV"
    assert b58decode("StV1DL6CwTryKyV") == b"hello world"


def test_leading_zeros_become_ones():
    assert b58encode(b"\x00\x00\x01") == "112"
    assert b58decode("112") == b"\x00\x00\x01"


def test_empty_round_trip():
    assert b58encode(b"") == ""
    assert b58decode("") == b""


@pytest.mark.parametrize(
    "data",
    [b"\x00" * 32, bytes(range(32)), b"\xff" * 32, b"\x00\x00abc", b"\x01"],
)
def test_round_trip(data):
    assert b58decode(b58encode(data)) == data