from __future__ import annotations

from studybridge.providers import register
from studybridge.providers.base import ProviderName, SearchProvider

SEARCH_FIELDS = "key,title,author_name,cover_i,first_publish_year,subject"


@register
class OpenLibraryProvider(SearchProvider):
    name = ProviderName.OPEN_LIBRARY

    def __init__(self, endpoint: str | None = None) -> None:
        self.endpoint = endpoint or "https://openlibrary.org/search.json"

    def build_params(self, query: str, limit: int) -> dict[str, object]:
        return {"q": query, "limit": limit, "fields": SEARCH_FIELDS}
