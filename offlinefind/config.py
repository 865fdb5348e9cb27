"""Settings for connecting to a report store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, TypedDict

from typing_extensions import override

from offlinefind.util.abc import Serializable
from offlinefind.util.files import read_data_json, save_and_return_json
from offlinefind.util.http import DEFAULT_TIMEOUT

if TYPE_CHECKING:
    import io
    from pathlib import Path

DEFAULT_URL = "http://localhost:6176"
DEFAULT_DAYS = 7


class EndpointConfigMapping(TypedDict, total=False):
    """JSON mapping representing an EndpointConfig."""

    type: Literal["endpoint"]

    url: str
    username: str | None
    password: str | None
    days: int
    timeout: float


class EndpointConfig(Serializable[EndpointConfigMapping]):
    """Where to fetch reports from, and how."""

    def __init__(  # noqa: PLR0913
        self,
        url: str = DEFAULT_URL,
        username: str | None = None,
        password: str | None = None,
        days: int = DEFAULT_DAYS,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """
        Initialize the config.

        :param url: Endpoint URL of the report store.
        :param username: Optional username for HTTP Basic authentication.
        :param password: Optional password for HTTP Basic authentication.
        :param days: Number of days of history to fetch.
        :param timeout: Time in seconds after which a query is aborted.
        """
        if days < 1:
            msg = f"Number of days must be at least 1, got {days}"
            raise ValueError(msg)
        if timeout <= 0:
            msg = f"Timeout must be positive, got {timeout}"
            raise ValueError(msg)

        self.url = url
        self.username = username
        self.password = password
        self.days = days
        self.timeout = timeout

    @override
    def to_json(
        self, dst: str | Path | io.TextIOBase | None = None, /
    ) -> EndpointConfigMapping:
        return save_and_return_json(
            {
                "type": "endpoint",
                "url": self.url,
                "username": self.username,
                "password": self.password,
                "days": self.days,
                "timeout": self.timeout,
            },
            dst,
        )

    @classmethod
    @override
    def from_json(
        cls, val: str | Path | io.TextIOBase | io.BufferedIOBase | EndpointConfigMapping, /
    ) -> EndpointConfig:
        """
        Load a config. Missing fields fall back to their defaults.

        Both the keys written by :meth:`EndpointConfig.to_json` and the camelCase
        keys of the web app's settings (``endpointUrl``, ``endpointUser``,
        ``endpointPass``, ``daysToFetch``) are understood.
        """
        val = read_data_json(val)

        return cls(
            url=val.get("url") or val.get("endpointUrl") or DEFAULT_URL,
            username=val.get("username") or val.get("endpointUser") or None,
            password=val.get("password") or val.get("endpointPass") or None,
            days=int(val.get("days") or val.get("daysToFetch") or DEFAULT_DAYS),
            timeout=float(val.get("timeout") or DEFAULT_TIMEOUT),
        )

    @override
    def __repr__(self) -> str:
        return f"EndpointConfig(url={self.url!r}, days={self.days}, timeout={self.timeout:g})"
