"""NIST P-224 (SECP224R1) helpers used to decrypt location reports."""

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.kdf.x963kdf import X963KDF

from offlinefind.errors import CurveUnavailableError

P224_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFF16A2E0B8F03E13DD29455C5C2A3D

KEY_LENGTH = 28


def bytes_to_int(value: bytes) -> int:
    """Convert bytes in big-endian format to int."""
    return int.from_bytes(value, "big")


def derive_private_key(private_key: bytes) -> ec.EllipticCurvePrivateKey:
    """
    Load a raw private scalar as a SECP224R1 private key.

    :raises CurveUnavailableError: if the backend does not support the curve.
    :raises ValueError: if the scalar is not a valid private key for the curve.
    """
    priv_int = bytes_to_int(private_key)
    if not 0 < priv_int < P224_N:
        msg = "Private key is out of range for SECP224R1"
        raise ValueError(msg)

    try:
        return ec.derive_private_key(priv_int, ec.SECP224R1())
    except UnsupportedAlgorithm as e:
        msg = f"SECP224R1 is not available: {e}"
        raise CurveUnavailableError(msg) from e


def load_public_key(encoded_point: bytes) -> ec.EllipticCurvePublicKey:
    """
    Load an X9.62-encoded SECP224R1 point.

    :raises CurveUnavailableError: if the backend does not support the curve.
    :raises ValueError: if the encoded point is not on the curve.
    """
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP224R1(), encoded_point)
    except UnsupportedAlgorithm as e:
        msg = f"SECP224R1 is not available: {e}"
        raise CurveUnavailableError(msg) from e


def ecdh(ephemeral_public_key: bytes, private_key: bytes) -> bytes:
    """
    Compute the ECDH shared secret between a private scalar and an encoded public point.

    The result is the 28-byte X coordinate of the shared point.
    """
    priv_key = derive_private_key(private_key)
    pub_key = load_public_key(ephemeral_public_key)
    return priv_key.exchange(ec.ECDH(), pub_key)


def x963_kdf(value: bytes, si: bytes, length: int) -> bytes:
    """ANSI X9.63 KDF with SHA256."""
    return X963KDF(
        algorithm=hashes.SHA256(),
        sharedinfo=si,
        length=length,
    ).derive(value)


def derive_symmetric_key(secret: bytes, ephemeral_key: bytes) -> bytes:
    """
    Derive the 32 bytes of AES key and IV material for a report.

    Equivalent to ``SHA256(secret || 0x00000001 || ephemeral_key)``: a single
    X9.63 round produces exactly the 32 bytes that are needed.
    """
    return x963_kdf(secret, ephemeral_key, 32)
