"""Module to simplify asynchronous HTTP calls."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, TypedDict, cast

import aiohttp
from aiohttp import BasicAuth, ClientSession, ClientTimeout
from typing_extensions import Unpack, override

from offlinefind.errors import RequestTimeoutError

from .abc import Closable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class _RequestOptions(TypedDict, total=False):
    json: dict[str, Any] | None


class _AiohttpRequestOptions(_RequestOptions):
    auth: BasicAuth


class _HttpRequestOptions(_RequestOptions, total=False):
    auth: BasicAuth | tuple[str, str]


class HttpResponse:
    """Response of a request made by `HttpSession`."""

    def __init__(self, status_code: int, content: bytes) -> None:
        """Initialize the response."""
        self._status_code = status_code
        self._content = content

    @property
    def status_code(self) -> int:
        """HTTP status code of the response."""
        return self._status_code

    def text(self) -> str:
        """Response content as a UTF-8 encoded string."""
        return self._content.decode("utf-8", errors="replace")

    def json(self) -> Any:  # noqa: ANN401
        """Response content, obtained by JSON-decoding the response content."""
        return json.loads(self.text())


class HttpSession(Closable):
    """Asynchronous HTTP session manager. For internal use only."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, verify_ssl: bool = True) -> None:
        """
        Initialize the session.

        :param timeout: Total time in seconds a single request may take.
        :param verify_ssl: Whether to verify TLS certificates.
        """
        super().__init__()

        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._session: ClientSession | None = None

    async def _get_session(self) -> ClientSession:
        if self._session is not None:
            return self._session

        logger.debug("Creating aiohttp session")
        self._session = ClientSession(timeout=ClientTimeout(total=self._timeout))
        return self._session

    @override
    async def close(self) -> None:
        """Close the underlying session. Should be called when session will no longer be used."""
        if self._session is not None:
            logger.debug("Closing aiohttp session")
            await self._session.close()
            self._session = None

    async def request(
        self,
        method: str,
        url: str,
        **kwargs: Unpack[_HttpRequestOptions],
    ) -> HttpResponse:
        """
        Make an HTTP request.

        The full response body is read before returning, so a request that times out
        never hands out a partially consumed response.
        Keyword arguments will directly be passed to `aiohttp.ClientSession.request`.

        :raises RequestTimeoutError: if the request does not finish within the timeout.
        :raises aiohttp.ClientError: on connection-level errors.
        """
        session = await self._get_session()

        # cast from http options to library supported options
        auth = kwargs.pop("auth", None)
        if isinstance(auth, tuple):
            kwargs["auth"] = BasicAuth(auth[0], auth[1])
        elif auth is not None:
            kwargs["auth"] = auth
        options = cast("_AiohttpRequestOptions", kwargs)

        try:
            async with session.request(
                method,
                url,
                ssl=self._verify_ssl,
                **options,
            ) as r:
                return HttpResponse(r.status, await r.read())
        except (asyncio.TimeoutError, aiohttp.ServerTimeoutError) as e:
            msg = f"Request to {url} timed out after {self._timeout:g}s"
            raise RequestTimeoutError(msg) from e

    async def post(self, url: str, **kwargs: Unpack[_HttpRequestOptions]) -> HttpResponse:
        """Alias for `HttpSession.request("POST", ...)`."""
        return await self.request("POST", url, **kwargs)
