from __future__ import annotations

import logging
from typing import Mapping

from studybridge.actions import build_generation_request, postprocess
from studybridge.aggregator import SearchAggregator, SearchQuery
from studybridge.config import Settings, load_settings
from studybridge.errors import ClientRequestInvalid, StudyBridgeError
from studybridge.generation import GenerationFailoverClient

logger = logging.getLogger(__name__)


async def handle_search(
    body: object,
    aggregator: SearchAggregator | None = None,
    settings: Settings | None = None,
) -> dict[str, object]:
    if not isinstance(body, Mapping):
        raise ClientRequestInvalid("Request body must be a JSON object")
    query = body.get("query")
    if query is not None and not isinstance(query, str):
        raise ClientRequestInvalid("query must be a string")
    if not query or not query.strip():
        return {"items": []}

    if aggregator is None:
        aggregator = SearchAggregator(settings=settings)
    limit = body.get("limit", aggregator.settings.default_limit)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise ClientRequestInvalid("limit must be a non-negative integer")

    result = await aggregator.search(SearchQuery(text=query, limit=limit))
    return result.to_dict()


async def handle_generation(
    body: object,
    client: GenerationFailoverClient | None = None,
    settings: Settings | None = None,
) -> object:
    settings = settings or load_settings()
    action, request = build_generation_request(
        body,
        temperature=settings.generation.temperature,
        max_tokens=settings.generation.max_tokens,
    )
    logger.info("Processing generation action %s", action)
    client = client or GenerationFailoverClient(settings=settings)
    result = await client.generate(request)
    return postprocess(action, result.data)


def error_payload(exc: StudyBridgeError) -> tuple[int, dict[str, object]]:
    return exc.status, {
        "error": exc.code,
        "message": exc.message,
        "details": exc.details,
        "status": exc.status,
    }
