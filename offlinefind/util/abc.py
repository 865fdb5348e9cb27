"""Various utility ABCs for internal and external classes."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Generic, TypeVar

from typing_extensions import Self

if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

logger = logging.getLogger(__name__)


class Closable(ABC):
    """ABC for async classes that need to be cleaned up before exiting."""

    @abstractmethod
    async def close(self) -> None:
        """Clean up."""
        raise NotImplementedError

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __del__(self) -> None:
        """Attempt to automatically clean up when garbage collected inside a running loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.call_soon_threadsafe(loop.create_task, self.close())


_T = TypeVar("_T", bound=Mapping)


class Serializable(ABC, Generic[_T]):
    """ABC for serializable classes."""

    @abstractmethod
    def to_json(self, dst: str | Path | None = None, /) -> _T:
        """
        Export the current state of the object as a JSON-serializable dictionary.

        If an argument is provided, the output will also be written to that file.

        Passing the return value of this function to :meth:`Serializable.from_json`
        will always result in an equivalent object.
        """
        raise NotImplementedError

    @classmethod
    @abstractmethod
    def from_json(cls, val: str | Path | _T, /) -> Self:
        """
        Restore state from a previous :meth:`Serializable.to_json` export.

        If given a str or Path, it must point to a json file from :meth:`Serializable.to_json`.
        Otherwise, it should be the Mapping itself.
        """
        raise NotImplementedError
