# shelfsync/services/fetch_outcome.py

"""Tagged results of a synchronizer fetch."""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Fetched(Generic[T]):
    """The network returned fresh data, already written through."""

    items: tuple[T, ...]


@dataclass(frozen=True)
class FallbackToCache(Generic[T]):
    """The network failed; these are the last cached items."""

    items: tuple[T, ...]
    reason: str
    timestamp: int | None = None  # epoch ms of the cached snapshot


@dataclass(frozen=True)
class FetchFailed:
    """The network failed and nothing was cached."""

    message: str


FetchOutcome = Union[Fetched[T], FallbackToCache[T], FetchFailed]
