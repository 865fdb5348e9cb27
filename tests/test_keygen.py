"""Key generation tests."""

import base64
import hashlib

import pytest

from offlinefind import keys
from offlinefind.keys import KeyPair

PRIVATE_KEY = bytes(range(1, 29))


@pytest.mark.parametrize("execution_number", range(100))
def test_keypair(execution_number: int) -> None:  # noqa: ARG001
    """Test generation of new keypairs."""
    kp = KeyPair.new()
    assert len(kp.private_key_bytes) == 28
    assert len(kp.public_key_bytes) == 29
    assert kp.public_key_bytes[0] in (0x02, 0x03)
    assert len(kp.adv_key_bytes) == 28
    assert len(kp.hashed_adv_key_bytes) == 32


def test_derived_keys_are_consistent() -> None:
    kp = KeyPair(PRIVATE_KEY)

    assert kp.adv_key_bytes == kp.public_key_bytes[1:]
    assert kp.hashed_adv_key_bytes == hashlib.sha256(kp.adv_key_bytes).digest()
    assert kp.hashed_adv_key_b64 == base64.b64encode(kp.hashed_adv_key_bytes).decode("ascii")


def test_hashed_key_is_deterministic() -> None:
    first = KeyPair(PRIVATE_KEY).hashed_adv_key_b64
    kp = KeyPair(PRIVATE_KEY)

    assert all(kp.hashed_adv_key_b64 == first for _ in range(10))
    assert keys.hashed_advertisement_key(PRIVATE_KEY) == first


def test_module_functions_match_keypair() -> None:
    kp = KeyPair(PRIVATE_KEY)

    assert keys.derive_public_key(PRIVATE_KEY) == kp.public_key_bytes
    assert keys.advertisement_key(PRIVATE_KEY) == kp.adv_key_bytes


def test_b64_roundtrip() -> None:
    kp = KeyPair.new()
    restored = KeyPair.from_b64(kp.private_key_b64)

    assert restored.private_key_bytes == kp.private_key_bytes
    assert restored == kp
    assert hash(restored) == hash(kp)


def test_short_private_key_is_padded() -> None:
    kp = KeyPair(PRIVATE_KEY[1:])

    assert kp.private_key_bytes == b"\x00" + PRIVATE_KEY[1:]


@pytest.mark.parametrize("private_key", [bytes(28), b"\xff" * 28])
def test_invalid_private_key(private_key: bytes) -> None:
    with pytest.raises(ValueError, match="out of range"):
        KeyPair(private_key)


def test_json_roundtrip(tmp_path) -> None:
    kp = KeyPair(PRIVATE_KEY, name="keys", identifier="0000ABCD")
    path = tmp_path / "key.json"

    data = kp.to_json(path)
    restored = KeyPair.from_json(path)

    assert data["private_key"] == kp.private_key_b64
    assert restored == kp
    assert restored.name == "keys"
    assert restored.identifier == "0000ABCD"
