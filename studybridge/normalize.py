"""Mapping of each book provider's native payload into :class:`NormalizedItem`.

Every mapper takes one raw record and returns an item, or ``None`` when the
record lacks a title or an id. Container problems (a payload that is not the
documented shape at all) raise :class:`ProviderShapeFailure` so the caller
can drop the whole provider without touching the others.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional

from studybridge.errors import ProviderShapeFailure
from studybridge.providers.base import UNKNOWN_AUTHOR, NormalizedItem, ProviderName

logger = logging.getLogger(__name__)

MAX_SUBJECTS = 5

OPEN_LIBRARY_COVER = "https://covers.openlibrary.org/b/id/{cover_id}-M.jpg"
OPEN_LIBRARY_BASE = "https://openlibrary.org"

_YEAR_RE = re.compile(r"^\s*(\d{4})")


def secure_url(url: object) -> str | None:
    if not isinstance(url, str) or not url:
        return None
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


def _text(value: object) -> str | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _first_author(authors: object) -> str:
    if not isinstance(authors, list):
        return UNKNOWN_AUTHOR
    for author in authors:
        if isinstance(author, dict):
            author = author.get("name")
        name = _text(author)
        if name:
            return name
    return UNKNOWN_AUTHOR


def _subjects(raw: object) -> tuple[str, ...]:
    if not isinstance(raw, list):
        return ()
    subjects = [s for s in (_text(item) for item in raw) if s]
    return tuple(subjects[:MAX_SUBJECTS])


def _year(raw: object) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        match = _YEAR_RE.match(raw)
        if match:
            return int(match.group(1))
    return None


def _rating(raw: object) -> float | None:
    if isinstance(raw, dict):
        raw = raw.get("average")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    return float(raw)


def normalize_open_library(doc: dict) -> NormalizedItem | None:
    title = _text(doc.get("title"))
    key = _text(doc.get("key"))
    if not title or not key:
        return None
    cover_id = doc.get("cover_i")
    cover_url = None
    if isinstance(cover_id, int) and not isinstance(cover_id, bool):
        cover_url = OPEN_LIBRARY_COVER.format(cover_id=cover_id)
    return NormalizedItem(
        title=title,
        external_id=key,
        source=ProviderName.OPEN_LIBRARY,
        author=_first_author(doc.get("author_name")),
        year=_year(doc.get("first_publish_year")),
        cover_url=cover_url,
        subjects=_subjects(doc.get("subject")),
        link=f"{OPEN_LIBRARY_BASE}{key}",
    )


def normalize_google_books(item: dict) -> NormalizedItem | None:
    volume = item.get("volumeInfo")
    if not isinstance(volume, dict):
        volume = {}
    title = _text(volume.get("title"))
    volume_id = _text(item.get("id"))
    if not title or not volume_id:
        return None
    images = volume.get("imageLinks")
    cover = None
    if isinstance(images, dict):
        cover = images.get("thumbnail") or images.get("smallThumbnail")
    return NormalizedItem(
        title=title,
        external_id=volume_id,
        source=ProviderName.GOOGLE_BOOKS,
        author=_first_author(volume.get("authors")),
        year=_year(volume.get("publishedDate")),
        cover_url=secure_url(cover),
        subjects=_subjects(volume.get("categories")),
        link=_text(volume.get("previewLink")) or _text(volume.get("infoLink")),
    )


def normalize_big_book(book: dict) -> NormalizedItem | None:
    title = _text(book.get("title"))
    book_id = _text(book.get("id"))
    if not title or not book_id:
        return None
    return NormalizedItem(
        title=title,
        external_id=book_id,
        source=ProviderName.BIG_BOOK_API,
        author=_first_author(book.get("authors")),
        cover_url=secure_url(book.get("image")),
        rating=_rating(book.get("rating")),
    )


def _open_library_records(payload: object) -> list:
    docs = payload.get("docs") if isinstance(payload, dict) else None
    if not isinstance(docs, list):
        raise ProviderShapeFailure(ProviderName.OPEN_LIBRARY.value, "payload has no 'docs' list")
    return docs


def _google_books_records(payload: object) -> list:
    if not isinstance(payload, dict):
        raise ProviderShapeFailure(ProviderName.GOOGLE_BOOKS.value, "payload is not an object")
    # No 'items' key means zero matches.
    items = payload.get("items") or []
    if not isinstance(items, list):
        raise ProviderShapeFailure(ProviderName.GOOGLE_BOOKS.value, "'items' is not a list")
    return items


def _big_book_records(payload: object) -> list:
    if not isinstance(payload, dict):
        raise ProviderShapeFailure(ProviderName.BIG_BOOK_API.value, "payload is not an object")
    groups = payload.get("books") or []
    if not isinstance(groups, list):
        raise ProviderShapeFailure(ProviderName.BIG_BOOK_API.value, "'books' is not a list")
    # Books come grouped by edition.
    records: list = []
    for group in groups:
        if isinstance(group, list):
            records.extend(group)
        else:
            records.append(group)
    return records


Mapper = Callable[[dict], Optional[NormalizedItem]]
RecordExtractor = Callable[[object], list]

NORMALIZERS: dict[ProviderName, tuple[RecordExtractor, Mapper]] = {
    ProviderName.OPEN_LIBRARY: (_open_library_records, normalize_open_library),
    ProviderName.GOOGLE_BOOKS: (_google_books_records, normalize_google_books),
    ProviderName.BIG_BOOK_API: (_big_book_records, normalize_big_book),
}


def normalize_payload(provider: ProviderName, payload: object) -> list[NormalizedItem]:
    """Normalize one provider response, keeping the first item per external id."""
    extract, mapper = NORMALIZERS[provider]
    items: list[NormalizedItem] = []
    seen: set[str] = set()
    for record in extract(payload):
        item = mapper(record) if isinstance(record, dict) else None
        if item is None:
            logger.debug("Dropping %s record without title or id: %r", provider.value, record)
            continue
        if item.external_id in seen:
            continue
        seen.add(item.external_id)
        items.append(item)
    return items

