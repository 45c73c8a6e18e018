from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Union

import httpx

from studybridge.errors import ProviderShapeFailure, ProviderTransportFailure

UNKNOWN_AUTHOR = "unknown"


class ProviderName(str, Enum):
    OPEN_LIBRARY = "open_library"
    GOOGLE_BOOKS = "google_books"
    BIG_BOOK_API = "big_book_api"


@dataclass(frozen=True)
class NormalizedItem:
    """A search hit in the shape shared by every book provider."""

    title: str
    external_id: str
    source: ProviderName
    author: str = UNKNOWN_AUTHOR
    year: int | None = None
    cover_url: str | None = None
    subjects: tuple[str, ...] = ()
    link: str | None = None
    rating: float | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "title": self.title,
            "author": self.author,
            "year": self.year,
            "cover_url": self.cover_url,
            "external_id": self.external_id,
            "subjects": list(self.subjects),
            "source": self.source.value,
            "link": self.link,
            "rating": self.rating,
        }


@dataclass(frozen=True)
class Success:
    payload: object
    headers: Mapping[str, str]
    latency_ms: int = 0


@dataclass(frozen=True)
class Failure:
    cause: Union[ProviderTransportFailure, ProviderShapeFailure]
    latency_ms: int = 0


ProviderOutcome = Union[Success, Failure]


class SearchProvider(ABC):
    name: ProviderName
    endpoint: str
    reports_quota: bool = False
    requires_key: bool = False

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def build_params(self, query: str, limit: int) -> dict[str, object]:
        """Return the query string parameters for one search call."""
        raise NotImplementedError

    async def fetch(self, query: str, limit: int, timeout: int) -> ProviderOutcome:
        """Run one search call and capture its outcome without raising."""
        start = time.perf_counter()
        params = self.build_params(query, limit)
        headers = {"Accept": "application/json"}
        name = self.name.value

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.get(self.endpoint, params=params, headers=headers)
                response.raise_for_status()
                try:
                    data = response.json()
                except ValueError as exc:
                    return Failure(
                        cause=ProviderShapeFailure(name, f"invalid JSON body: {exc}"),
                        latency_ms=_elapsed_ms(start),
                    )
        except httpx.TimeoutException:
            return Failure(
                cause=ProviderTransportFailure(name, "timeout", timed_out=True),
                latency_ms=_elapsed_ms(start),
            )
        except httpx.HTTPStatusError as exc:
            # str(exc) embeds the request URL, which may carry an API key.
            status_code = exc.response.status_code
            return Failure(
                cause=ProviderTransportFailure(name, f"HTTP {status_code}", status_code=status_code),
                latency_ms=_elapsed_ms(start),
            )
        except httpx.RequestError as exc:
            return Failure(
                cause=ProviderTransportFailure(name, f"{type(exc).__name__}: {exc}"),
                latency_ms=_elapsed_ms(start),
            )

        return Success(payload=data, headers=response.headers, latency_ms=_elapsed_ms(start))


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
