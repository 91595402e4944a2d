import asyncio
import logging
from typing import Sequence

from .models import PlaceRecord, QuerySuggestion
from .providers import PlaceProvider

logger = logging.getLogger(__name__)


async def _with_timeout(coro, timeout, default):
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        return default


async def _safe_lookup(
    provider: PlaceProvider,
    query: str,
    lat: float,
    lon: float,
    radius_m: float,
    timeout: float,
) -> PlaceRecord | None:
    try:
        result = await _with_timeout(
            provider.lookup(query, lat, lon, radius_m), timeout=timeout, default=None
        )
    except Exception as exc:
        logger.warning("%s lookup raised for %r: %s", provider.source_name, query, exc)
        return None
    if result is None:
        logger.info("%s: nothing for %r", provider.source_name, query)
    return result


async def aggregate(
    suggestions: Sequence[QuerySuggestion],
    lat: float,
    lon: float,
    radius_m: float,
    providers: Sequence[PlaceProvider],
    timeout: float = 10.0,
) -> list[PlaceRecord]:
    """Run every suggestion against every provider.

    Providers are queried concurrently for one suggestion at a time. The
    result keeps suggestion order, then provider order, and may contain
    duplicates.
    """
    if not providers:
        logger.info("No place providers configured")
        return []

    records: list[PlaceRecord] = []
    for suggestion in suggestions:
        results = await asyncio.gather(
            *(
                _safe_lookup(p, suggestion.search_query, lat, lon, radius_m, timeout)
                for p in providers
            )
        )
        records.extend(r for r in results if r is not None)

    logger.info(
        "Collected %d records for %d queries from %d providers",
        len(records), len(suggestions), len(providers),
    )
    return records
