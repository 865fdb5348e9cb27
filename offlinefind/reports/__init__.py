"""Code related to fetching and decrypting location reports."""

from .ciphers import (
    CryptographyBackend,
    DecryptionBackend,
    PycryptodomeBackend,
    decrypt_payload,
)
from .fetcher import FetchResult, LocationReportsFetcher
from .reports import (
    BatteryStatus,
    EncryptedReport,
    EncryptedReportMapping,
    LocationReport,
    LocationReportMapping,
    correct_coordinate,
    correct_payload_length,
    decode_battery_status,
    decode_location,
    decrypt_report,
    seen_timestamp,
)
from .store import BaseReportStore, ConnectionCheck, ConnectionStatus, HttpReportStore

__all__ = (
    "BaseReportStore",
    "BatteryStatus",
    "ConnectionCheck",
    "ConnectionStatus",
    "CryptographyBackend",
    "DecryptionBackend",
    "EncryptedReport",
    "EncryptedReportMapping",
    "FetchResult",
    "HttpReportStore",
    "LocationReport",
    "LocationReportMapping",
    "LocationReportsFetcher",
    "PycryptodomeBackend",
    "correct_coordinate",
    "correct_payload_length",
    "decode_battery_status",
    "decode_location",
    "decrypt_payload",
    "decrypt_report",
    "seen_timestamp",
)
