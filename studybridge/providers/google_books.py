from __future__ import annotations

from studybridge.providers import register
from studybridge.providers.base import ProviderName, SearchProvider

# Requests above this are rejected with a 400.
MAX_RESULTS = 40


@register
class GoogleBooksProvider(SearchProvider):
    name = ProviderName.GOOGLE_BOOKS

    def __init__(self, endpoint: str | None = None) -> None:
        self.endpoint = endpoint or "https://www.googleapis.com/books/v1/volumes"

    def build_params(self, query: str, limit: int) -> dict[str, object]:
        return {"q": query, "maxResults": min(limit, MAX_RESULTS)}
