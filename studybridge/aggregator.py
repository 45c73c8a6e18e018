from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping

import httpx

from studybridge.config import DEFAULT_SEARCH_LIMIT, Settings, load_settings, timeout_for
from studybridge.errors import ProviderShapeFailure, ProviderTransportFailure, ProviderUnavailable
from studybridge.normalize import normalize_payload
from studybridge.providers import create_provider, list_providers
from studybridge.providers.base import (
    Failure,
    NormalizedItem,
    ProviderName,
    ProviderOutcome,
    SearchProvider,
)

logger = logging.getLogger(__name__)

QUOTA_LEFT_HEADER = "x-api-quota-left"
QUOTA_USED_HEADER = "x-api-quota-used"

# Quota-bearing provider first, then the keyless providers.
PROVIDER_PRIORITY: tuple[ProviderName, ...] = (
    ProviderName.BIG_BOOK_API,
    ProviderName.OPEN_LIBRARY,
    ProviderName.GOOGLE_BOOKS,
)

_LEADING_INT_RE = re.compile(r"^\s*(\d+)")


@dataclass(frozen=True)
class SearchQuery:
    text: str
    limit: int = DEFAULT_SEARCH_LIMIT


@dataclass(frozen=True)
class QuotaInfo:
    left: int
    used: int

    @property
    def limit(self) -> int:
        return self.left + self.used

    def to_dict(self) -> dict[str, int]:
        return {"left": self.left, "used": self.used, "limit": self.limit}


@dataclass(frozen=True)
class AggregatedSearchResult:
    items: list[NormalizedItem]
    quota: QuotaInfo | None = None
    outcomes: dict[ProviderName, ProviderOutcome] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "items": [item.to_dict() for item in self.items],
            "bigBookQuota": self.quota.to_dict() if self.quota else None,
        }


class SearchAggregator:
    """Fan a book query out to every active provider and merge what comes back."""

    def __init__(
        self,
        providers: Iterable[SearchProvider] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        if providers is None:
            providers = _default_providers(self.settings)
        self.providers = sorted(providers, key=_priority)

    def active_providers(self) -> list[SearchProvider]:
        active = []
        for provider in self.providers:
            if not provider.is_available():
                skipped = ProviderUnavailable(provider.name.value)
                logger.info("Skipping search provider: %s", skipped)
                continue
            active.append(provider)
        return active

    @staticmethod
    def per_provider_limit(limit: int, providers: Iterable[SearchProvider]) -> int:
        # Only keyless providers split the budget; the quota provider shares it.
        baseline = sum(1 for p in providers if not p.requires_key)
        return math.ceil(max(0, limit) / max(1, baseline))

    async def search(self, query: SearchQuery) -> AggregatedSearchResult:
        text = query.text.strip()
        if not text:
            return AggregatedSearchResult(items=[])

        providers = self.active_providers()
        budget = self.per_provider_limit(query.limit, providers)
        tasks = [
            _run_provider(provider, text, budget, timeout_for(provider.name.value, self.settings))
            for provider in providers
        ]
        outcomes = dict(await asyncio.gather(*tasks))

        items: list[NormalizedItem] = []
        quota: QuotaInfo | None = None
        for provider in providers:
            outcome = outcomes[provider.name]
            if isinstance(outcome, Failure):
                _log_failure(provider.name, outcome.cause)
                continue
            if provider.reports_quota:
                quota = extract_quota(outcome.headers)
            try:
                items.extend(normalize_payload(provider.name, outcome.payload))
            except ProviderShapeFailure as exc:
                _log_failure(provider.name, exc)

        return AggregatedSearchResult(items=items, quota=quota, outcomes=outcomes)


def extract_quota(headers: Mapping[str, str]) -> QuotaInfo | None:
    lookup = httpx.Headers(headers)
    left = _leading_int(lookup.get(QUOTA_LEFT_HEADER))
    if left is None:
        return None
    used = _leading_int(lookup.get(QUOTA_USED_HEADER))
    return QuotaInfo(left=left, used=used or 0)


def _leading_int(value: str | None) -> int | None:
    if value is None:
        return None
    match = _LEADING_INT_RE.match(value)
    if not match:
        return None
    return int(match.group(1))


async def _run_provider(
    provider: SearchProvider,
    query: str,
    limit: int,
    timeout: int,
) -> tuple[ProviderName, ProviderOutcome]:
    try:
        outcome = await provider.fetch(query, limit=limit, timeout=timeout)
    except Exception as exc:  # A provider bug still only fails that provider.
        outcome = Failure(
            cause=ProviderTransportFailure(provider.name.value, f"{type(exc).__name__}: {exc}")
        )
    return provider.name, outcome


def _log_failure(name: ProviderName, cause: Exception) -> None:
    status = getattr(cause, "status_code", None)
    logger.warning(
        "Search provider %s failed (%s): %s",
        name.value,
        f"status {status}" if status else type(cause).__name__,
        cause,
    )


def _priority(provider: SearchProvider) -> int:
    try:
        return PROVIDER_PRIORITY.index(provider.name)
    except ValueError:
        return len(PROVIDER_PRIORITY)


def _default_providers(settings: Settings) -> list[SearchProvider]:
    providers = []
    for name in list_providers():
        if name is ProviderName.BIG_BOOK_API:
            providers.append(create_provider(name, api_key=settings.credentials.big_book_api_key or ""))
        else:
            providers.append(create_provider(name))
    return providers
