"""Module providing functionality to fetch and decrypt location reports for many devices."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from typing_extensions import override

from offlinefind.errors import ReportDecryptionError, ReportStoreError

from .reports import EncryptedReport, LocationReport, decrypt_report

if TYPE_CHECKING:
    from collections.abc import Sequence

    from offlinefind.keys import KeyPair

    from .ciphers import DecryptionBackend
    from .store import BaseReportStore

logger = logging.getLogger(__name__)


class FetchResult:
    """Outcome of a single batch fetch."""

    def __init__(
        self,
        locations: list[LocationReport],
        device_failures: list[tuple[KeyPair, Exception]],
        report_failures: list[tuple[EncryptedReport, Exception]],
        device_count: int,
    ) -> None:
        """Initialize the result. Use :meth:`LocationReportsFetcher.fetch_locations` instead."""
        self._locations = locations
        self._device_failures = device_failures
        self._report_failures = report_failures
        self._device_count = device_count

    @property
    def locations(self) -> list[LocationReport]:
        """Successfully decrypted locations, sorted by timestamp."""
        return self._locations

    @property
    def device_failures(self) -> list[tuple[KeyPair, Exception]]:
        """Devices whose query failed, with the error that occurred."""
        return self._device_failures

    @property
    def report_failures(self) -> list[tuple[EncryptedReport, Exception]]:
        """Reports that could not be decrypted, with the error that occurred."""
        return self._report_failures

    @property
    def success_count(self) -> int:
        """Number of decrypted locations."""
        return len(self._locations)

    @property
    def failure_count(self) -> int:
        """Number of failed device queries plus the number of reports that failed to decrypt."""
        return len(self._device_failures) + len(self._report_failures)

    @property
    def nothing_fetched(self) -> bool:
        """Whether devices were queried but every single query failed."""
        return self._device_count > 0 and len(self._device_failures) == self._device_count

    def by_device(self) -> dict[KeyPair, list[LocationReport]]:
        """Group the decrypted locations per device, keeping their order."""
        grouped: dict[KeyPair, list[LocationReport]] = {}
        for location in self._locations:
            grouped.setdefault(location.key, []).append(location)
        return grouped

    @override
    def __repr__(self) -> str:
        return (
            f"FetchResult(locations={self.success_count}"
            f", device_failures={len(self._device_failures)}"
            f", report_failures={len(self._report_failures)})"
        )


class LocationReportsFetcher:
    """Fetcher class to retrieve and decrypt location reports."""

    def __init__(
        self,
        store: BaseReportStore,
        backends: Sequence[DecryptionBackend] | None = None,
    ) -> None:
        """
        Initialize the fetcher.

        :param store: Report store to query.
        :param backends: AES-GCM backends to use, in order of preference.
        """
        self._store = store
        self._backends = backends

    async def fetch_locations(self, devices: Sequence[KeyPair], days: int) -> FetchResult:
        """
        Fetch and decrypt the location history of multiple devices.

        Every device is queried separately and concurrently. A device whose query
        fails or a report that cannot be decrypted is recorded in the result, but
        does not prevent other devices or reports from being processed.

        :raises CurveUnavailableError: if keys cannot be derived at all.
        """
        if not devices:
            logger.warning("No devices to fetch locations for")
            return FetchResult([], [], [], 0)

        # derive all lookup ids up front; this aborts the batch if the curve is unavailable
        id_to_key: dict[str, KeyPair] = {}
        for device in devices:
            hashed_key = device.hashed_adv_key_b64
            logger.debug("%s -> hashed key %s", device.name, hashed_key)
            id_to_key[hashed_key] = device

        responses = await asyncio.gather(
            *(self._fetch_device(hashed_key, days) for hashed_key in id_to_key),
        )

        locations: list[LocationReport] = []
        device_failures: list[tuple[KeyPair, Exception]] = []
        report_failures: list[tuple[EncryptedReport, Exception]] = []
        for hashed_key, response in zip(id_to_key, responses):
            device = id_to_key[hashed_key]
            if isinstance(response, ReportStoreError):
                logger.warning("Failed to fetch reports for %s: %s", device.name, response)
                device_failures.append((device, response))
                continue

            for report in response:
                key = id_to_key.get(report.id)
                if key is None:
                    logger.warning("Received report for unknown key %s", report.id)
                    report_failures.append((report, LookupError(report.id)))
                    continue

                try:
                    locations.append(decrypt_report(report, key, self._backends))
                except ReportDecryptionError as e:
                    logger.warning("Failed to decrypt report for %s: %s", key.name, e)
                    report_failures.append((report, e))

        # list.sort is stable: equal timestamps keep device order, then store order
        locations.sort(key=lambda loc: loc.timestamp)

        result = FetchResult(locations, device_failures, report_failures, len(id_to_key))
        logger.info(
            "Fetched %i location(s) for %i device(s), %i failure(s)",
            result.success_count,
            len(id_to_key),
            result.failure_count,
        )
        return result

    async def _fetch_device(
        self,
        hashed_key: str,
        days: int,
    ) -> list[EncryptedReport] | ReportStoreError:
        try:
            return await self._store.fetch_raw_reports([hashed_key], days)
        except ReportStoreError as e:
            return e
