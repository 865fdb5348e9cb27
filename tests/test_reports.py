"""Report decoding and decryption tests."""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from conftest import OWNER_PRIVATE_KEY, build_payload, build_plaintext

from offlinefind.errors import AuthenticationFailureError, MalformedPayloadError
from offlinefind.keys import KeyPair
from offlinefind.reports import (
    BatteryStatus,
    EncryptedReport,
    LocationReport,
    correct_coordinate,
    correct_payload_length,
    decode_battery_status,
    decode_location,
    decrypt_report,
    seen_timestamp,
)

# 52.3676, -73.9857
LAT_RAW = 523_676_000
LON_RAW = 2**32 - 739_857_000

# Report sealed with an independent AES-GCM implementation for OWNER_PRIVATE_KEY:
# seen 700_000_000 s after 2001-01-01, confidence 2, LAT_RAW/LON_RAW, accuracy 25, status 0x60
VECTOR_PRIVATE_KEY = "AQIDBAUGBwgJCgsMDQ4PEBESExQVFhcYGRobHA=="
VECTOR_HASHED_KEY = "/vOKuaTt4YQhx94Ge/rHR9KDiKnuhcZ7CrxlJFsRUzg="
VECTOR_PAYLOAD = (
    "KbknAAIEtSm+az0kQAmbe3HefnMvMThaFPRLeddtvdIRYDwPKYHdojSgs8Iy8aAW1vLdHzzhgK/M"
    "iAOs+omceGoGw5hRmGzoway/qIax/sSdumRx9+jXTg=="
)


@pytest.mark.parametrize("inserted", range(256))
def test_inserted_byte_is_removed(inserted: int) -> None:
    original = bytes(range(88))
    payload = original[:4] + bytes([inserted]) + original[4:]

    assert len(payload) == 89
    assert correct_payload_length(payload) == original


def test_regular_payload_is_untouched() -> None:
    payload = bytes(range(88))

    assert correct_payload_length(payload) == payload


@pytest.mark.parametrize("length", [0, 10, 87, 90, 100])
def test_unexpected_payload_length(length: int) -> None:
    with pytest.raises(MalformedPayloadError):
        correct_payload_length(bytes(length))


def test_seen_timestamp() -> None:
    assert seen_timestamp(0) == datetime(2001, 1, 1, tzinfo=timezone.utc)
    assert seen_timestamp(700_000_000) == datetime(2023, 3, 8, 20, 26, 40, tzinfo=timezone.utc)


def test_max_unsigned_coordinate_is_near_zero() -> None:
    latitude, longitude, _, _ = decode_location(build_plaintext(0xFFFFFFFF, 0xFFFFFFFF, 0, 0))

    assert latitude == pytest.approx(0, abs=1e-6)
    assert longitude == pytest.approx(0, abs=1e-6)


def test_negative_coordinates() -> None:
    latitude, longitude, _, _ = decode_location(
        build_plaintext(2**32 - 338_688_000, LON_RAW, 0, 0),
    )

    assert latitude == pytest.approx(-33.8688, abs=1e-6)
    assert longitude == pytest.approx(-73.9857, abs=1e-6)


@pytest.mark.parametrize(
    ("value", "limit", "expected"),
    [
        (45.0, 90, 45.0),
        (90.0, 90, 90.0),
        (179.9, 180, 179.9),
        (0xFFFFFFFF / 10_000_000, 90, 0.0),
        (0xFFFFFFFF / 10_000_000, 180, 0.0),
    ],
)
def test_correct_coordinate(value: float, limit: float, expected: float) -> None:
    assert correct_coordinate(value, limit) == pytest.approx(expected)


def test_correct_coordinate_below_range() -> None:
    assert correct_coordinate(-400.0, 180) == pytest.approx(-400.0 + 0xFFFFFFFF / 10_000_000)


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (0, BatteryStatus.UNKNOWN),
        (0b00_100000, BatteryStatus.OK),
        (0b01_100000, BatteryStatus.MEDIUM),
        (0b10_100000, BatteryStatus.LOW),
        (0b11_100000, BatteryStatus.CRITICAL),
        (0b00_000001, BatteryStatus.OK),
        (0b10_000000, BatteryStatus.LOW),
    ],
)
def test_battery_status(status: int, expected: BatteryStatus) -> None:
    assert decode_battery_status(status) is expected


def test_decode_location_length() -> None:
    with pytest.raises(MalformedPayloadError):
        decode_location(bytes(9))


def test_known_vector() -> None:
    key = KeyPair.from_b64(VECTOR_PRIVATE_KEY)
    report = EncryptedReport(VECTOR_HASHED_KEY, VECTOR_PAYLOAD)

    location = decrypt_report(report, key)

    assert key.hashed_adv_key_b64 == VECTOR_HASHED_KEY
    assert (
        location.latitude,
        location.longitude,
        location.accuracy,
        location.battery_status,
        location.timestamp,
    ) == (
        pytest.approx(52.3676),
        pytest.approx(-73.9857, abs=1e-6),
        25,
        BatteryStatus.MEDIUM,
        datetime(2023, 3, 8, 20, 26, 40, tzinfo=timezone.utc),
    )
    assert location.confidence == 2


def test_end_to_end(owner_key: KeyPair) -> None:
    plaintext = build_plaintext(LAT_RAW, LON_RAW, 25, 0b01_100000)
    payload = build_payload(OWNER_PRIVATE_KEY, plaintext, seen_seconds=700_000_000, confidence=3)
    report = EncryptedReport(owner_key.hashed_adv_key_b64, base64.b64encode(payload).decode())

    location = decrypt_report(report, owner_key)

    assert location.latitude == pytest.approx(52.3676)
    assert location.longitude == pytest.approx(-73.9857, abs=1e-6)
    assert location.accuracy == 25
    assert location.battery_status is BatteryStatus.MEDIUM
    assert location.confidence == 3
    assert location.timestamp == datetime(2023, 3, 8, 20, 26, 40, tzinfo=timezone.utc)
    assert location.key is owner_key


def test_end_to_end_inserted_byte(owner_key: KeyPair, make_report) -> None:
    regular = decrypt_report(make_report(owner_key), owner_key)
    shifted = decrypt_report(make_report(owner_key, inserted_byte=0xAB), owner_key)

    assert shifted == regular
    assert shifted.accuracy == regular.accuracy
    assert shifted.confidence == regular.confidence


def test_published_date(owner_key: KeyPair, make_report) -> None:
    report = make_report(owner_key)
    report = EncryptedReport.from_mapping(
        {"id": report.id, "payload": report.payload, "datePublished": 1_700_000_000_000},
    )

    location = decrypt_report(report, owner_key)

    assert location.published_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


def test_tampered_tag(owner_key: KeyPair, make_report) -> None:
    payload = bytearray(base64.b64decode(make_report(owner_key).payload))
    payload[-1] ^= 0xFF
    report = EncryptedReport(owner_key.hashed_adv_key_b64, base64.b64encode(payload).decode())

    with pytest.raises(AuthenticationFailureError):
        decrypt_report(report, owner_key)


def test_invalid_ephemeral_key(owner_key: KeyPair) -> None:
    payload = bytes(5) + b"\x04" + bytes(56) + bytes(26)
    report = EncryptedReport(owner_key.hashed_adv_key_b64, base64.b64encode(payload).decode())

    with pytest.raises(MalformedPayloadError):
        decrypt_report(report, owner_key)


def test_invalid_base64(owner_key: KeyPair) -> None:
    report = EncryptedReport(owner_key.hashed_adv_key_b64, "not base64!")

    with pytest.raises(MalformedPayloadError):
        decrypt_report(report, owner_key)


def test_wrong_key(owner_key: KeyPair, make_report) -> None:
    report = make_report(owner_key)

    with pytest.raises(ValueError, match="Cannot decrypt"):
        decrypt_report(report, KeyPair.new())


def test_from_mapping_missing_field() -> None:
    with pytest.raises(MalformedPayloadError):
        EncryptedReport.from_mapping({"id": "abc"})


@pytest.mark.parametrize(
    "record",
    [
        {"id": "abc", "payload": 12345},
        {"id": "abc", "payload": None},
        {"id": 7, "payload": "AAAA"},
    ],
)
def test_from_mapping_wrong_field_type(record) -> None:
    with pytest.raises(MalformedPayloadError):
        EncryptedReport.from_mapping(record)


@pytest.mark.parametrize("published", [10**20, -(10**20), float("nan"), "yesterday"])
def test_from_mapping_invalid_published_date(published) -> None:
    with pytest.raises(MalformedPayloadError):
        EncryptedReport.from_mapping({"id": "abc", "payload": "AAAA", "datePublished": published})


def test_ordering(owner_key: KeyPair, make_report) -> None:
    early = decrypt_report(make_report(owner_key, seen_seconds=100), owner_key)
    late = decrypt_report(make_report(owner_key, seen_seconds=200), owner_key)

    assert early < late
    assert sorted([late, early]) == [early, late]
    assert early.timestamp + timedelta(seconds=100) == late.timestamp


def test_json_roundtrip(owner_key: KeyPair, make_report, tmp_path) -> None:
    location = decrypt_report(make_report(owner_key), owner_key)
    path = tmp_path / "report.json"

    location.to_json(path)
    restored = LocationReport.from_json(path)

    assert restored == location
    assert restored.accuracy == location.accuracy
    assert restored.battery_status is location.battery_status


def test_json_without_key(owner_key: KeyPair, make_report) -> None:
    location = decrypt_report(make_report(owner_key), owner_key)

    data = location.to_json(include_key=False)

    assert data["key"] is None
    assert data["hashed_adv_key"] == owner_key.hashed_adv_key_b64
    assert owner_key.private_key_b64 not in json.dumps(data)
    with pytest.raises(ValueError, match="without its key"):
        LocationReport.from_json(data)
