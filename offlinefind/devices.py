"""Read device records (as exported to ``device.json``) into key pairs."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING, Any

from offlinefind.keys import KeyPair
from offlinefind.util.files import read_data_json

if TYPE_CHECKING:
    import io
    from collections.abc import Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)


def _format_identifier(value: Any) -> str | None:  # noqa: ANN401
    if value is None:
        return None
    if isinstance(value, int):
        return f"{value:08X}"
    return str(value)


def device_from_record(record: Mapping[str, Any]) -> KeyPair:
    """
    Create a :class:`KeyPair` from a single device record.

    :raises ValueError: if the record has no usable private key.
    """
    try:
        private_key = base64.b64decode(record["privateKey"])
    except KeyError:
        msg = "Device record has no privateKey"
        raise ValueError(msg) from None
    except binascii.Error as e:
        msg = f"Device record has an invalid privateKey: {e}"
        raise ValueError(msg) from None

    return KeyPair(
        private_key,
        name=record.get("name"),
        identifier=_format_identifier(record.get("id")),
    )


def load_devices(
    src: str | Path | io.TextIOBase | list[dict[str, Any]] | dict[str, Any],
    /,
    *,
    include_inactive: bool = False,
) -> list[KeyPair]:
    """
    Load the active devices from a list of device records.

    Records look like ``{"name": ..., "id": ..., "privateKey": ..., "isActive": ...}``.
    A single record instead of a list is accepted too. Records without ``isActive``
    count as active.
    """
    data = read_data_json(src)
    records = data if isinstance(data, list) else [data]

    devices: list[KeyPair] = []
    for record in records:
        if not include_inactive and not record.get("isActive", True):
            logger.debug("Skipping inactive device %s", record.get("name"))
            continue
        devices.append(device_from_record(record))

    logger.info("Loaded %i device(s)", len(devices))
    return devices
