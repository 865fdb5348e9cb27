"""Clients for the report store that holds encrypted location reports."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any

import aiohttp
from typing_extensions import override

from offlinefind.errors import (
    BackendError,
    EndpointNotFoundError,
    MalformedPayloadError,
    RequestTimeoutError,
    UnauthorizedError,
    UnhandledProtocolError,
)
from offlinefind.util.abc import Closable
from offlinefind.util.http import DEFAULT_TIMEOUT, HttpSession

from .reports import EncryptedReport

if TYPE_CHECKING:
    from collections.abc import Sequence

    from offlinefind.config import EndpointConfig
    from offlinefind.util.http import HttpResponse

logger = logging.getLogger(__name__)

CONNECTION_CHECK_TIMEOUT = 10.0


class ConnectionStatus(Enum):
    """Outcome of :meth:`HttpReportStore.check_connection`."""

    REACHABLE = "reachable"
    AUTH_REQUIRED = "auth_required"
    NOT_FOUND = "not_found"
    UNEXPECTED_STATUS = "unexpected_status"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"


class ConnectionCheck:
    """Result of a connection check against a report store."""

    def __init__(self, status: ConnectionStatus, status_code: int | None, detail: str) -> None:
        """Initialize the result. Use :meth:`HttpReportStore.check_connection` instead."""
        self._status = status
        self._status_code = status_code
        self._detail = detail

    @property
    def status(self) -> ConnectionStatus:
        """Classification of the response."""
        return self._status

    @property
    def status_code(self) -> int | None:
        """HTTP status code, or None if no response was received."""
        return self._status_code

    @property
    def detail(self) -> str:
        """Human-readable description of the outcome."""
        return self._detail

    @property
    def ok(self) -> bool:
        """Whether the server answered on the configured endpoint."""
        return self._status in (ConnectionStatus.REACHABLE, ConnectionStatus.AUTH_REQUIRED)

    def to_json(self) -> dict[str, Any]:
        """Export the result as a JSON-serializable dictionary."""
        return {
            "status": self._status.value,
            "status_code": self._status_code,
            "detail": self._detail,
        }

    @override
    def __repr__(self) -> str:
        return f"ConnectionCheck(status={self._status.value}, status_code={self._status_code})"


class BaseReportStore(ABC):
    """ABC for a store that can be queried for encrypted location reports."""

    @abstractmethod
    async def fetch_raw_reports(self, ids: Sequence[str], days: int) -> list[EncryptedReport]:
        """
        Fetch all reports published within the last `days` days for the given hashed keys.

        :param ids: Base64-encoded hashed advertisement keys.
        :param days: Number of days to look back.
        :raises ReportStoreError: if the query fails.
        """
        raise NotImplementedError


class HttpReportStore(BaseReportStore, Closable):
    """
    Report store reachable over HTTP.

    Reports are requested with a JSON ``POST`` of ``{"ids": [...], "days": n}``
    and returned as ``{"results": [{"id", "payload", "datePublished"}, ...]}``.
    """

    def __init__(
        self,
        url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """
        Initialize the store.

        :param url: Endpoint URL of the report store.
        :param username: Optional username for HTTP Basic authentication.
        :param password: Optional password for HTTP Basic authentication.
        :param timeout: Time in seconds after which a query is aborted.
        """
        super().__init__()

        self._url = url
        self._username = username
        self._password = password

        self._http = HttpSession(timeout=timeout)

    @classmethod
    def from_config(cls, config: EndpointConfig) -> HttpReportStore:
        """Create a store using the endpoint settings of an :class:`EndpointConfig`."""
        return cls(
            config.url,
            username=config.username,
            password=config.password,
            timeout=config.timeout,
        )

    @property
    def url(self) -> str:
        """Endpoint URL of the report store."""
        return self._url

    @override
    async def close(self) -> None:
        await self._http.close()

    async def _post(self, http: HttpSession, query: dict[str, Any]) -> HttpResponse:
        if self._username or self._password:
            auth = (self._username or "", self._password or "")
            return await http.post(self._url, json=query, auth=auth)
        return await http.post(self._url, json=query)

    @override
    async def fetch_raw_reports(self, ids: Sequence[str], days: int) -> list[EncryptedReport]:
        logger.debug("Querying %s for %i key(s) over %i day(s)", self._url, len(ids), days)
        try:
            r = await self._post(self._http, {"ids": list(ids), "days": days})
        except aiohttp.ClientError as e:
            raise BackendError(0, str(e)) from e

        logger.debug("Report store responded with status %i", r.status_code)

        if r.status_code == 401:
            msg = "Authentication failed. Check your username/password."
            raise UnauthorizedError(msg)
        if r.status_code == 404:
            msg = f"Endpoint not found: {self._url}"
            raise EndpointNotFoundError(msg)
        if r.status_code != 200:
            body = r.text()
            logger.debug("Error response: %s", body)
            raise BackendError(r.status_code, body)

        try:
            data = r.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            msg = f"Report store returned invalid JSON: {e}"
            raise UnhandledProtocolError(msg) from None
        if not isinstance(data, dict):
            msg = f"Unknown response from report store: {data}"
            raise UnhandledProtocolError(msg)

        results = data.get("results") or []
        if not isinstance(results, list):
            msg = f"Report store returned results that are not a list: {results}"
            raise UnhandledProtocolError(msg)
        logger.debug("Report store returned %i report(s)", len(results))

        try:
            return [EncryptedReport.from_mapping(result) for result in results]
        except (MalformedPayloadError, TypeError, AttributeError) as e:
            msg = f"Report store returned an invalid report: {e}"
            raise UnhandledProtocolError(msg) from None

    async def check_connection(self, timeout: float = CONNECTION_CHECK_TIMEOUT) -> ConnectionCheck:
        """
        Check whether the report store can be reached, without querying any keys.

        Sends an empty query and classifies the response. Never raises for
        network or HTTP failures; those are reported in the returned :class:`ConnectionCheck`.

        :param timeout: Time in seconds to wait for a response.
        """
        logger.debug("Checking connection to %s", self._url)
        async with HttpSession(timeout=timeout) as http:
            try:
                r = await self._post(http, {"ids": [], "days": 1})
            except RequestTimeoutError as e:
                return ConnectionCheck(ConnectionStatus.TIMEOUT, None, str(e))
            except aiohttp.ClientError as e:
                return ConnectionCheck(ConnectionStatus.UNREACHABLE, None, str(e))

        logger.debug("Connection check got status %i", r.status_code)

        # 400 means the server is up and only rejected the empty query
        if r.status_code in (200, 400):
            return ConnectionCheck(
                ConnectionStatus.REACHABLE,
                r.status_code,
                "Connection successful",
            )
        if r.status_code == 401:
            return ConnectionCheck(
                ConnectionStatus.AUTH_REQUIRED,
                r.status_code,
                "Server reachable, but authentication is required or was rejected",
            )
        if r.status_code == 404:
            return ConnectionCheck(
                ConnectionStatus.NOT_FOUND,
                r.status_code,
                "Server reachable, but the endpoint was not found. The URL may need a path.",
            )
        return ConnectionCheck(ConnectionStatus.UNEXPECTED_STATUS, r.status_code, r.text())
