"""Module to work with private and public keys as used by offline finding accessories."""

from __future__ import annotations

import base64
import hashlib
import secrets
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Literal, TypedDict

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from typing_extensions import override

from offlinefind.util.abc import Serializable
from offlinefind.util.files import read_data_json, save_and_return_json

from .util import crypto

if TYPE_CHECKING:
    import io
    from pathlib import Path


class KeyPairMapping(TypedDict):
    """JSON mapping representing a KeyPair."""

    type: Literal["keypair"]

    private_key: str
    name: str | None
    identifier: str | None


class HasHashedPublicKey(ABC):
    """
    ABC for anything that has a public, hashed advertisement key.

    Also called a "lookup" key: it is the id under which the report store indexes reports.
    """

    @property
    @abstractmethod
    def hashed_adv_key_bytes(self) -> bytes:
        """Return the hashed advertised (public) key as bytes."""
        raise NotImplementedError

    @property
    def hashed_adv_key_b64(self) -> str:
        """Return the hashed advertised (public) key as a base64-encoded string."""
        return base64.b64encode(self.hashed_adv_key_bytes).decode("ascii")

    @override
    def __hash__(self) -> int:
        return crypto.bytes_to_int(self.hashed_adv_key_bytes)

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HasHashedPublicKey):
            return NotImplemented

        return self.hashed_adv_key_bytes == other.hashed_adv_key_bytes


class HasPublicKey(HasHashedPublicKey, ABC):
    """
    ABC for anything that has a public advertisement key.

    The advertisement key is the X coordinate of the public key; it is what a tag broadcasts.
    """

    @property
    @abstractmethod
    def adv_key_bytes(self) -> bytes:
        """Return the advertised (public) key as bytes."""
        raise NotImplementedError

    @property
    def adv_key_b64(self) -> str:
        """Return the advertised (public) key as a base64-encoded string."""
        return base64.b64encode(self.adv_key_bytes).decode("ascii")

    @property
    @override
    def hashed_adv_key_bytes(self) -> bytes:
        """See :meth:`HasHashedPublicKey.hashed_adv_key_bytes`."""
        return hashlib.sha256(self.adv_key_bytes).digest()


class KeyPair(HasPublicKey, Serializable[KeyPairMapping]):
    """
    A private-public keypair for a trackable accessory.

    Only the private key is stored. Every public value is derived from it on access.
    """

    def __init__(
        self,
        private_key: bytes,
        name: str | None = None,
        identifier: str | None = None,
    ) -> None:
        """
        Initialize the :meth:`KeyPair` with the private key bytes.

        :raises CurveUnavailableError: if SECP224R1 is not supported by the backend.
        :raises ValueError: if the private key is not a valid SECP224R1 scalar.
        """
        self._priv_key = crypto.derive_private_key(private_key)

        self._name = name
        self._identifier = identifier

    @property
    def name(self) -> str | None:
        """Name of this KeyPair."""
        return self._name

    @name.setter
    def name(self, name: str | None) -> None:
        self._name = name

    @property
    def identifier(self) -> str | None:
        """Identifier of the device this key belongs to, if known."""
        return self._identifier

    @classmethod
    def new(cls) -> KeyPair:
        """Generate a new random :meth:`KeyPair`."""
        while True:
            key_bytes = secrets.token_bytes(crypto.KEY_LENGTH)
            if 0 < crypto.bytes_to_int(key_bytes) < crypto.P224_N:
                return cls(key_bytes)

    @classmethod
    def from_b64(cls, key_b64: str, name: str | None = None) -> KeyPair:
        """
        Import an existing :meth:`KeyPair` from its base64-encoded representation.

        Same format as returned by :meth:`KeyPair.private_key_b64`.
        """
        return cls(base64.b64decode(key_b64), name=name)

    @property
    def private_key_bytes(self) -> bytes:
        """Return the private key as bytes."""
        key_bytes = self._priv_key.private_numbers().private_value
        return int.to_bytes(key_bytes, crypto.KEY_LENGTH, "big")

    @property
    def private_key_b64(self) -> str:
        """
        Return the private key as a base64-encoded string.

        Can be re-imported using :meth:`KeyPair.from_b64`.
        """
        return base64.b64encode(self.private_key_bytes).decode("ascii")

    @property
    def public_key_bytes(self) -> bytes:
        """Return the public key as a compressed point (format prefix + X coordinate)."""
        return self._priv_key.public_key().public_bytes(
            Encoding.X962,
            PublicFormat.CompressedPoint,
        )

    @property
    @override
    def adv_key_bytes(self) -> bytes:
        """Return the advertised (public) key as bytes."""
        return self.public_key_bytes[1:]

    @override
    def to_json(self, dst: str | Path | io.TextIOBase | None = None, /) -> KeyPairMapping:
        return save_and_return_json(
            {
                "type": "keypair",
                "private_key": self.private_key_b64,
                "name": self.name,
                "identifier": self.identifier,
            },
            dst,
        )

    @classmethod
    @override
    def from_json(
        cls, val: str | Path | io.TextIOBase | io.BufferedIOBase | KeyPairMapping, /
    ) -> KeyPair:
        val = read_data_json(val)
        assert val["type"] == "keypair"

        try:
            return cls(
                private_key=base64.b64decode(val["private_key"]),
                name=val.get("name"),
                identifier=val.get("identifier"),
            )
        except KeyError as e:
            msg = f"Failed to restore KeyPair data: {e}"
            raise ValueError(msg) from None

    def dh_exchange(self, other_pub_key: ec.EllipticCurvePublicKey) -> bytes:
        """Do a Diffie-Hellman key exchange using another EC public key."""
        return self._priv_key.exchange(ec.ECDH(), other_pub_key)

    @override
    def __repr__(self) -> str:
        return f'KeyPair(name="{self.name}", public_key="{self.adv_key_b64}")'


def derive_public_key(private_key: bytes) -> bytes:
    """Derive the compressed public key of a raw private key."""
    return KeyPair(private_key).public_key_bytes


def advertisement_key(private_key: bytes) -> bytes:
    """Derive the 28-byte advertisement key of a raw private key."""
    return KeyPair(private_key).adv_key_bytes


def hashed_advertisement_key(private_key: bytes) -> str:
    """Derive the base64-encoded hashed advertisement key (the lookup id) of a raw private key."""
    return KeyPair(private_key).hashed_adv_key_b64
