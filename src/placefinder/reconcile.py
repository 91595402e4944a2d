"""Merge place records that describe the same real-world place.

Two passes, always in this order:

1. Within one source, drop records whose provider id was already seen.
2. Across sources, compare every non-base record against the base source's
   records (in order) and drop it on the first fuzzy match. The base source is
   the highest-priority source present in the input.

A fuzzy match needs both a close name and a nearby coordinate. No fields are
merged from a dropped record.
"""

import logging
from typing import Sequence

from .geo import haversine_km
from .models import PlaceRecord
from .providers import SOURCE_PRIORITY
from .similarity import name_similarity, normalize_name

logger = logging.getLogger(__name__)

NAME_SIMILARITY_THRESHOLD = 0.85
MIN_CONTAINED_NAME_LEN = 5
MAX_DUPLICATE_DISTANCE_KM = 0.15


def names_match(a: str, b: str) -> bool:
    a, b = normalize_name(a), normalize_name(b)
    if not a or not b:
        return False
    if name_similarity(a, b) > NAME_SIMILARITY_THRESHOLD:
        return True
    shorter, longer = sorted((a, b), key=len)
    return len(shorter) > MIN_CONTAINED_NAME_LEN and shorter in longer


def same_place(a: PlaceRecord, b: PlaceRecord) -> bool:
    if not names_match(a.name, b.name):
        return False
    distance = haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
    return distance < MAX_DUPLICATE_DISTANCE_KM


def base_source(records: Sequence[PlaceRecord]) -> str | None:
    present = {r.source_name for r in records}
    for source in SOURCE_PRIORITY:
        if source in present:
            return source
    return records[0].source_name if records else None


def _dedupe_by_id(records: Sequence[PlaceRecord]) -> list[PlaceRecord]:
    seen_ids: set[tuple[str, str]] = set()
    seen_names: set[tuple[str, str]] = set()
    kept: list[PlaceRecord] = []
    for r in records:
        if r.provider_id:
            key = (r.source_name, r.provider_id)
            if key in seen_ids:
                continue
            seen_ids.add(key)
        else:
            key = (r.source_name, r.name)
            if key in seen_names:
                continue
            seen_names.add(key)
        kept.append(r)
    return kept


def reconcile(records: Sequence[PlaceRecord]) -> list[PlaceRecord]:
    unique = _dedupe_by_id(records)
    base = base_source(unique)
    base_records = [r for r in unique if r.source_name == base]

    kept: list[PlaceRecord] = []
    for r in unique:
        if r.source_name != base:
            match = next((b for b in base_records if same_place(b, r)), None)
            if match is not None:
                logger.info(
                    "Dropping %s place %r (%s) as duplicate of %s place %r (%s)",
                    r.source_name, r.name, r.provider_id,
                    match.source_name, match.name, match.provider_id,
                )
                continue
        kept.append(r)

    logger.info("Reconciled %d records into %d", len(records), len(kept))
    return kept
