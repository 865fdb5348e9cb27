"""Module providing the location report format and the report decryption pipeline."""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Literal, TypedDict

from typing_extensions import override

from offlinefind import util
from offlinefind.errors import MalformedPayloadError
from offlinefind.keys import HasHashedPublicKey, KeyPair, KeyPairMapping

from .ciphers import decrypt_payload

if TYPE_CHECKING:
    import io
    from collections.abc import Sequence
    from pathlib import Path

    from .ciphers import DecryptionBackend

logger = logging.getLogger(__name__)

PAYLOAD_LENGTH = 88
PLAINTEXT_LENGTH = 10

# the offset of the byte some devices insert into an otherwise regular payload
_INSERTED_BYTE_OFFSET = 4

SEEN_TIMESTAMP_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)

COORDINATE_SCALE = 10_000_000.0
POINT_CORRECTION = 0xFFFFFFFF / 10_000_000


class BatteryStatus(Enum):
    """Battery level of an accessory as reported in the status byte."""

    OK = "ok"
    MEDIUM = "medium"
    LOW = "low"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


_BATTERY_LEVELS = (
    BatteryStatus.OK,
    BatteryStatus.MEDIUM,
    BatteryStatus.LOW,
    BatteryStatus.CRITICAL,
)


def correct_payload_length(payload: bytes) -> bytes:
    """
    Normalize a report payload to its regular 88-byte layout.

    Some devices publish 89-byte payloads with a spurious byte at offset 4,
    which is dropped here. Any other length is rejected.

    :raises MalformedPayloadError: if the payload is neither 88 nor 89 bytes long.
    """
    if len(payload) == PAYLOAD_LENGTH + 1:
        payload = payload[:_INSERTED_BYTE_OFFSET] + payload[_INSERTED_BYTE_OFFSET + 1 :]

    if len(payload) != PAYLOAD_LENGTH:
        msg = f"Unexpected payload length: {len(payload)} bytes"
        raise MalformedPayloadError(msg)

    return payload


def seen_timestamp(seconds: int) -> datetime:
    """Convert a report timestamp (seconds since 2001-01-01 UTC) to a datetime."""
    return SEEN_TIMESTAMP_EPOCH + timedelta(seconds=seconds)


def correct_coordinate(value: float, limit: float) -> float:
    """
    Undo the unsigned encoding of negative coordinates.

    Negative degrees arrive as large unsigned values; anything beyond ±`limit`
    is shifted back into range.
    """
    if value > limit:
        value -= POINT_CORRECTION
    if value < -limit:
        value += POINT_CORRECTION
    return value


def decode_battery_status(status: int) -> BatteryStatus:
    """Decode the battery level from the status byte of a decrypted report."""
    if not (status & 0x20 or status > 0):
        return BatteryStatus.UNKNOWN
    return _BATTERY_LEVELS[(status >> 6) & 0x03]


def decode_location(plaintext: bytes) -> tuple[float, float, int, BatteryStatus]:
    """
    Decode the decrypted part of a report.

    Returns a tuple of latitude, longitude, horizontal accuracy and battery status.
    """
    if len(plaintext) != PLAINTEXT_LENGTH:
        msg = f"Unexpected decrypted payload length: {len(plaintext)} bytes"
        raise MalformedPayloadError(msg)

    latitude = util.parsers.read_uint32_be(plaintext, 0) / COORDINATE_SCALE
    longitude = util.parsers.read_uint32_be(plaintext, 4) / COORDINATE_SCALE
    accuracy = util.parsers.read_uint8(plaintext, 8)
    status = util.parsers.read_uint8(plaintext, 9)

    return (
        correct_coordinate(latitude, 90),
        correct_coordinate(longitude, 180),
        accuracy,
        decode_battery_status(status),
    )


class EncryptedReportMapping(TypedDict):
    """JSON mapping of a raw report, as returned by the report store."""

    id: str
    payload: str
    datePublished: int | None


class EncryptedReport(HasHashedPublicKey):
    """A raw location report as returned by the report store, before decryption."""

    def __init__(
        self,
        report_id: str,
        payload: str,
        date_published: datetime | None = None,
    ) -> None:
        """
        Initialize an :class:`EncryptedReport`.

        :param report_id: Base64-encoded hashed advertisement key the report belongs to.
        :param payload: Base64-encoded report payload.
        :param date_published: When the report was published to the store.
        """
        self._id = report_id
        self._payload = payload
        self._date_published = date_published

    @classmethod
    def from_mapping(cls, data: EncryptedReportMapping) -> EncryptedReport:
        """
        Build a report from a record in the report store's `results` list.

        `datePublished` is expected in milliseconds since the Unix epoch.
        """
        try:
            report_id = data["id"]
            payload = data["payload"]
        except KeyError as e:
            msg = f"Report record is missing field {e}"
            raise MalformedPayloadError(msg) from None
        if not isinstance(report_id, str) or not isinstance(payload, str):
            msg = "Report record id and payload must be strings"
            raise MalformedPayloadError(msg)

        date_published = None
        published_ms = data.get("datePublished")
        if published_ms is not None:
            try:
                date_published = datetime.fromtimestamp(published_ms / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError, TypeError) as e:
                msg = f"Invalid datePublished {published_ms!r}: {e}"
                raise MalformedPayloadError(msg) from None

        return cls(report_id, payload, date_published)

    @property
    def id(self) -> str:
        """Hashed advertisement key this report belongs to."""
        return self._id

    @property
    def payload(self) -> str:
        """Base64-encoded payload of the report."""
        return self._payload

    @property
    def date_published(self) -> datetime | None:
        """When the report was published to the store."""
        return self._date_published

    @property
    @override
    def hashed_adv_key_bytes(self) -> bytes:
        return base64.b64decode(self._id)

    def can_decrypt(self, key: KeyPair, /) -> bool:
        """Whether the report can be decrypted using the given key."""
        return key.hashed_adv_key_b64 == self._id

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EncryptedReport):
            return NotImplemented
        return self._id == other._id and self._payload == other._payload

    @override
    def __hash__(self) -> int:
        return hash((self._id, self._payload))

    @override
    def __repr__(self) -> str:
        return f"EncryptedReport(id={self._id}, date_published={self._date_published})"


class LocationReportMapping(TypedDict):
    """JSON mapping representing a decrypted location report."""

    type: Literal["locReportDecrypted"]

    latitude: float
    longitude: float
    accuracy: int
    timestamp: str
    confidence: int
    battery_status: str
    published_at: str | None
    hashed_adv_key: str
    name: str | None
    key: KeyPairMapping | None


class LocationReport(HasHashedPublicKey, util.abc.Serializable[LocationReportMapping]):
    """Decrypted location report corresponding to a certain :class:`KeyPair`."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        key: KeyPair,
        timestamp: datetime,
        latitude: float,
        longitude: float,
        accuracy: int,
        confidence: int,
        battery_status: BatteryStatus,
        published_at: datetime | None = None,
    ) -> None:
        """
        Initialize a :class:`LocationReport`.

        You should probably use :meth:`decrypt_report` instead.
        """
        self._key = key
        self._timestamp = timestamp
        self._latitude = latitude
        self._longitude = longitude
        self._accuracy = accuracy
        self._confidence = confidence
        self._battery_status = battery_status
        self._published_at = published_at

    @property
    def key(self) -> KeyPair:
        """`KeyPair` using which this report was decrypted."""
        return self._key

    @property
    @override
    def hashed_adv_key_bytes(self) -> bytes:
        """See :meth:`HasHashedPublicKey.hashed_adv_key_bytes`."""
        return self._key.hashed_adv_key_bytes

    @property
    def timestamp(self) -> datetime:
        """The :meth:`datetime` when this report was recorded by a device."""
        return self._timestamp

    @property
    def published_at(self) -> datetime | None:
        """The :meth:`datetime` when this report was published to the report store."""
        return self._published_at

    @property
    def latitude(self) -> float:
        """Latitude of the location of this report."""
        return self._latitude

    @property
    def longitude(self) -> float:
        """Longitude of the location of this report."""
        return self._longitude

    @property
    def accuracy(self) -> int:
        """Horizontal accuracy of the location of this report, in meters."""
        return self._accuracy

    @property
    def confidence(self) -> int:
        """Confidence byte of the report, passed through as-is."""
        return self._confidence

    @property
    def battery_status(self) -> BatteryStatus:
        """Battery level of the accessory, if it was reported."""
        return self._battery_status

    @override
    def to_json(
        self,
        dst: str | Path | io.TextIOBase | None = None,
        /,
        *,
        include_key: bool = True,
    ) -> LocationReportMapping:
        """
        Export the report as a JSON-serializable dictionary.

        The private key of the device is included unless `include_key` is False.
        Reports exported without their key cannot be restored by :meth:`from_json`.
        """
        return util.files.save_and_return_json(
            {
                "type": "locReportDecrypted",
                "latitude": self._latitude,
                "longitude": self._longitude,
                "accuracy": self._accuracy,
                "timestamp": self._timestamp.isoformat(),
                "confidence": self._confidence,
                "battery_status": self._battery_status.value,
                "published_at": (
                    self._published_at.isoformat() if self._published_at is not None else None
                ),
                "hashed_adv_key": self.hashed_adv_key_b64,
                "name": self._key.name,
                "key": self._key.to_json() if include_key else None,
            },
            dst,
        )

    @classmethod
    @override
    def from_json(
        cls, val: str | Path | io.TextIOBase | io.BufferedIOBase | LocationReportMapping, /
    ) -> LocationReport:
        val = util.files.read_data_json(val)
        assert val["type"] == "locReportDecrypted"

        if not val.get("key"):
            msg = "Location report was exported without its key"
            raise ValueError(msg)

        try:
            published_at = val.get("published_at")
            return cls(
                key=KeyPair.from_json(val["key"]),
                timestamp=datetime.fromisoformat(val["timestamp"]),
                latitude=val["latitude"],
                longitude=val["longitude"],
                accuracy=val["accuracy"],
                confidence=val["confidence"],
                battery_status=BatteryStatus(val["battery_status"]),
                published_at=datetime.fromisoformat(published_at) if published_at else None,
            )
        except KeyError as e:
            msg = f"Failed to restore location report data: {e}"
            raise ValueError(msg) from None

    @override
    def __eq__(self, other: object) -> bool:
        """
        Compare two report instances.

        Two reports are considered equal iff they correspond to the same key,
        were reported at the same timestamp and represent the same physical location.
        """
        if not isinstance(other, LocationReport):
            return NotImplemented

        return (
            super().__eq__(other)
            and self.timestamp == other.timestamp
            and self.latitude == other.latitude
            and self.longitude == other.longitude
        )

    @override
    def __hash__(self) -> int:
        return hash((self.hashed_adv_key_bytes, self.timestamp, self.latitude, self.longitude))

    def __lt__(self, other: LocationReport) -> bool:
        """
        Compare against another :meth:`LocationReport`.

        A :meth:`LocationReport` is said to be "less than" another :meth:`LocationReport` iff
        its recorded timestamp is strictly less than the other report.
        """
        if isinstance(other, LocationReport):
            return self.timestamp < other.timestamp
        return NotImplemented

    @override
    def __repr__(self) -> str:
        """Human-readable string representation of the location report."""
        return (
            f"LocationReport(hashed_adv_key={self.hashed_adv_key_b64}, timestamp={self.timestamp}"
            f", lat={self.latitude}, lon={self.longitude}, accuracy={self.accuracy}"
            f", battery={self.battery_status.value})"
        )


def decrypt_report(
    report: EncryptedReport,
    key: KeyPair,
    backends: Sequence[DecryptionBackend] | None = None,
) -> LocationReport:
    """
    Decrypt a raw report using its corresponding :class:`KeyPair`.

    :raises ValueError: if the report does not belong to `key`.
    :raises ReportDecryptionError: if the report cannot be decrypted.
    :raises CurveUnavailableError: if SECP224R1 is not supported by the backend.
    """
    if not report.can_decrypt(key):
        msg = "Cannot decrypt with this key!"
        raise ValueError(msg)

    try:
        payload = util.parsers.b64_to_bytes(report.payload)
    except (binascii.Error, ValueError, TypeError) as e:
        msg = f"Payload is not valid base64: {e}"
        raise MalformedPayloadError(msg) from None

    payload = correct_payload_length(payload)

    timestamp = seen_timestamp(util.parsers.read_uint32_be(payload, 0))
    confidence = util.parsers.read_uint8(payload, 4)
    eph_key = payload[5:62]
    enc_data = payload[62:72]
    tag = payload[72:88]

    try:
        shared_key = key.dh_exchange(util.crypto.load_public_key(eph_key))
    except ValueError as e:
        msg = f"Invalid ephemeral public key: {e}"
        raise MalformedPayloadError(msg) from None

    symmetric_key = util.crypto.derive_symmetric_key(shared_key, eph_key)
    plaintext = decrypt_payload(enc_data, symmetric_key, tag, backends)

    latitude, longitude, accuracy, battery_status = decode_location(plaintext)
    logger.debug("Decrypted report %s recorded at %s", report.id, timestamp)

    return LocationReport(
        key=key,
        timestamp=timestamp,
        latitude=latitude,
        longitude=longitude,
        accuracy=accuracy,
        confidence=confidence,
        battery_status=battery_status,
        published_at=report.date_published,
    )
