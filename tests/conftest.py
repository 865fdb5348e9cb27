"""Shared fixtures for building location reports."""

from __future__ import annotations

import base64
import hashlib
from typing import Callable

import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from offlinefind.keys import KeyPair
from offlinefind.reports import EncryptedReport

OWNER_PRIVATE_KEY = bytes(range(1, 29))
EPHEMERAL_PRIVATE_KEY = bytes(range(100, 128))

ReportFactory = Callable[..., EncryptedReport]


def build_plaintext(lat_raw: int, lon_raw: int, accuracy: int, status: int) -> bytes:
    return (
        lat_raw.to_bytes(4, "big")
        + lon_raw.to_bytes(4, "big")
        + bytes([accuracy, status])
    )


def build_payload(
    owner_private_key: bytes,
    plaintext: bytes,
    seen_seconds: int = 700_000_000,
    confidence: int = 2,
    ephemeral_private_key: bytes = EPHEMERAL_PRIVATE_KEY,
) -> bytes:
    """Encrypt `plaintext` the way a tag does, without using any code under test."""
    curve = ec.SECP224R1()
    owner_pub = ec.derive_private_key(
        int.from_bytes(owner_private_key, "big"),
        curve,
    ).public_key()
    eph_priv = ec.derive_private_key(int.from_bytes(ephemeral_private_key, "big"), curve)
    eph_pub = eph_priv.public_key().public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)

    shared = eph_priv.exchange(ec.ECDH(), owner_pub)
    symmetric_key = hashlib.sha256(shared + b"\x00\x00\x00\x01" + eph_pub).digest()
    sealed = AESGCM(symmetric_key[:16]).encrypt(symmetric_key[16:], plaintext, None)

    return seen_seconds.to_bytes(4, "big") + bytes([confidence]) + eph_pub + sealed


@pytest.fixture
def owner_key() -> KeyPair:
    return KeyPair(OWNER_PRIVATE_KEY, name="tag")


@pytest.fixture
def make_report() -> ReportFactory:
    def _make(  # noqa: PLR0913
        key: KeyPair,
        lat_raw: int = 523_676_000,
        lon_raw: int = 49_041_000,
        accuracy: int = 25,
        status: int = 0x60,
        seen_seconds: int = 700_000_000,
        confidence: int = 2,
        inserted_byte: int | None = None,
    ) -> EncryptedReport:
        plaintext = build_plaintext(lat_raw, lon_raw, accuracy, status)
        payload = build_payload(key.private_key_bytes, plaintext, seen_seconds, confidence)
        if inserted_byte is not None:
            payload = payload[:4] + bytes([inserted_byte]) + payload[4:]
        return EncryptedReport(key.hashed_adv_key_b64, base64.b64encode(payload).decode("ascii"))

    return _make
