"""Utility functions and classes. Intended for internal use."""

from . import abc, crypto, files, http, parsers

__all__ = (
    "abc",
    "crypto",
    "files",
    "http",
    "parsers",
)
