"""Parsers for the byte encodings used by location reports."""

import base64


def b64_to_bytes(value: str) -> bytes:
    """Decode a base64-encoded string."""
    return base64.b64decode(value)


def bytes_to_b64(value: bytes) -> str:
    """Encode bytes as a base64 string."""
    return base64.b64encode(value).decode("ascii")


def hex_to_bytes(value: str) -> bytes:
    """Decode a hex string. Both upper- and lowercase digits are accepted."""
    return bytes.fromhex(value)


def bytes_to_hex(value: bytes) -> str:
    """Encode bytes as a lowercase hex string."""
    return value.hex()


def read_uint32_be(data: bytes, offset: int = 0) -> int:
    """Read a big-endian unsigned 32-bit integer at `offset`."""
    return int.from_bytes(data[offset : offset + 4], "big")


def read_uint8(data: bytes, offset: int) -> int:
    """Read a single unsigned byte at `offset`."""
    return data[offset]
