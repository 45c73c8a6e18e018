from __future__ import annotations

from typing import Dict, Type

from studybridge.providers.base import (
    Failure,
    NormalizedItem,
    ProviderName,
    ProviderOutcome,
    SearchProvider,
    Success,
)

_REGISTRY: Dict[ProviderName, Type[SearchProvider]] = {}


def register(provider_cls: Type[SearchProvider]) -> Type[SearchProvider]:
    name = getattr(provider_cls, "name", None)
    if not isinstance(name, ProviderName):
        raise ValueError("Provider must define a ProviderName")
    _REGISTRY[name] = provider_cls
    return provider_cls


def get_provider(name: ProviderName | str) -> Type[SearchProvider]:
    try:
        return _REGISTRY[ProviderName(name)]
    except (KeyError, ValueError) as exc:
        raise KeyError(f"Unknown provider: {name}") from exc


def create_provider(name: ProviderName | str, **kwargs) -> SearchProvider:
    provider_cls = get_provider(name)
    return provider_cls(**kwargs)


def list_providers() -> list[ProviderName]:
    return sorted(_REGISTRY.keys(), key=lambda name: name.value)


__all__ = [
    "Failure",
    "NormalizedItem",
    "ProviderName",
    "ProviderOutcome",
    "SearchProvider",
    "Success",
    "register",
    "get_provider",
    "create_provider",
    "list_providers",
]

# Provider registrations
from studybridge.providers.big_book import BigBookProvider  # noqa: E402,F401
from studybridge.providers.google_books import GoogleBooksProvider  # noqa: E402,F401
from studybridge.providers.open_library import OpenLibraryProvider  # noqa: E402,F401
