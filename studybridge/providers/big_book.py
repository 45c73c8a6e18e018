from __future__ import annotations

import os

from studybridge.config import BIGBOOK_KEY_ENV
from studybridge.providers import register
from studybridge.providers.base import ProviderName, SearchProvider


@register
class BigBookProvider(SearchProvider):
    """Semantic book search; reports remaining quota in response headers."""

    name = ProviderName.BIG_BOOK_API
    reports_quota = True
    requires_key = True

    def __init__(self, api_key: str | None = None, endpoint: str | None = None) -> None:
        self.api_key = api_key if api_key is not None else os.getenv(BIGBOOK_KEY_ENV)
        self.endpoint = endpoint or "https://api.bigbookapi.com/search-books"

    def is_available(self) -> bool:
        return bool(self.api_key)

    def build_params(self, query: str, limit: int) -> dict[str, object]:
        return {"query": query, "api-key": self.api_key, "number": limit}
