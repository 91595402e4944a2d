from typing import Sequence

from .geo import haversine_km
from .models import PlaceRecord


def rank(records: Sequence[PlaceRecord], lat: float, lon: float) -> list[PlaceRecord]:
    """Sort by distance from (lat, lon), nearest first, attaching the distance."""
    scored = []
    for r in records:
        if r.distance_from_query_km is not None:
            km = r.distance_from_query_km
        else:
            km = haversine_km(lat, lon, r.latitude, r.longitude)
        scored.append((km, r))
    # sorted() is stable, so equal distances keep input order
    scored.sort(key=lambda pair: pair[0])
    return [r.model_copy(update={"distance_from_query_km": round(km, 3)}) for km, r in scored]
