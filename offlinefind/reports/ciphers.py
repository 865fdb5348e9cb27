"""AES-GCM backends used to decrypt the encrypted part of location reports."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from Cryptodome.Cipher import AES
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from typing_extensions import override

from offlinefind.errors import (
    AuthenticationFailureError,
    MalformedPayloadError,
    NoDecryptionBackendError,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

TAG_LENGTH = 16
DERIVED_KEY_LENGTH = 32

# every backend gets one extra attempt after an implementation error
_ATTEMPTS_PER_BACKEND = 2


class DecryptionBackend(ABC):
    """
    ABC for an AES-GCM implementation.

    Implementations must raise :class:`AuthenticationFailureError` when the tag does not
    verify, and must never return plaintext that has not been authenticated.
    Any other exception is considered an implementation error of the backend.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of this backend."""
        raise NotImplementedError

    @abstractmethod
    def decrypt(self, key: bytes, iv: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        """Decrypt and authenticate `ciphertext` using a 128-bit tag."""
        raise NotImplementedError

    @override
    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CryptographyBackend(DecryptionBackend):
    """AES-GCM through `cryptography`, backed by the platform's OpenSSL."""

    @property
    @override
    def name(self) -> str:
        return "cryptography"

    @override
    def decrypt(self, key: bytes, iv: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        decryptor = Cipher(
            algorithms.AES(key),
            modes.GCM(iv, tag),
        ).decryptor()
        plaintext = decryptor.update(ciphertext)
        try:
            plaintext += decryptor.finalize()
        except InvalidTag:
            msg = "Authentication tag does not match"
            raise AuthenticationFailureError(msg) from None
        return plaintext


class PycryptodomeBackend(DecryptionBackend):
    """AES-GCM through `pycryptodomex`, which does not depend on the platform's crypto library."""

    @property
    @override
    def name(self) -> str:
        return "pycryptodome"

    @override
    def decrypt(self, key: bytes, iv: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        cipher = AES.new(key, AES.MODE_GCM, nonce=iv, mac_len=TAG_LENGTH)
        plaintext = cipher.decrypt(ciphertext)
        try:
            cipher.verify(tag)
        except ValueError:
            msg = "Authentication tag does not match"
            raise AuthenticationFailureError(msg) from None
        return plaintext


DEFAULT_BACKENDS: tuple[DecryptionBackend, ...] = (CryptographyBackend(), PycryptodomeBackend())


def decrypt_payload(
    ciphertext: bytes,
    derived_key: bytes,
    tag: bytes,
    backends: Sequence[DecryptionBackend] | None = None,
) -> bytes:
    """
    Decrypt the encrypted part of a report using the key material from the KDF.

    The first 16 bytes of `derived_key` are the AES key, the last 16 bytes are the IV.
    Backends are tried in order until one succeeds. A backend that fails with anything
    other than an authentication failure is retried once before moving on.

    :raises AuthenticationFailureError: if the tag does not verify.
    :raises NoDecryptionBackendError: if every backend failed.
    """
    if len(derived_key) != DERIVED_KEY_LENGTH:
        msg = f"Derived key must be {DERIVED_KEY_LENGTH} bytes, got {len(derived_key)}"
        raise MalformedPayloadError(msg)
    if len(tag) != TAG_LENGTH:
        msg = f"Authentication tag must be {TAG_LENGTH} bytes, got {len(tag)}"
        raise MalformedPayloadError(msg)

    if backends is None:
        backends = DEFAULT_BACKENDS

    key = derived_key[:16]
    iv = derived_key[16:]

    last_error: Exception | None = None
    for backend in backends:
        for attempt in range(1, _ATTEMPTS_PER_BACKEND + 1):
            try:
                return backend.decrypt(key, iv, ciphertext, tag)
            except AuthenticationFailureError:
                raise
            except Exception as e:  # noqa: BLE001
                logger.warning(
                    "AES-GCM backend %s failed (attempt %i/%i): %s",
                    backend.name,
                    attempt,
                    _ATTEMPTS_PER_BACKEND,
                    e,
                )
                last_error = e

    msg = "No AES-GCM backend was able to decrypt the payload"
    raise NoDecryptionBackendError(msg) from last_error
