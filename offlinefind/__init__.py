"""A package to fetch and decrypt location reports of offline finding accessories."""

from . import config, devices, errors, keys, reports
from .config import EndpointConfig
from .keys import KeyPair
from .reports import HttpReportStore, LocationReport, LocationReportsFetcher

__all__ = (
    "EndpointConfig",
    "HttpReportStore",
    "KeyPair",
    "LocationReport",
    "LocationReportsFetcher",
    "config",
    "devices",
    "errors",
    "keys",
    "reports",
)
