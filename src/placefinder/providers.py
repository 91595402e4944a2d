"""Pieces shared by the place-provider adapters."""

from typing import Callable, Protocol, Sequence, TypeVar

import httpx

from .geo import haversine_km
from .models import PlaceRecord

# Order in which sources become the "base" set during reconciliation.
SOURCE_PRIORITY = ("Google", "Foursquare")

REVIEW_MAX_CHARS = 150

T = TypeVar("T")


class PlaceProvider(Protocol):
    source_name: str

    async def lookup(
        self, query: str, lat: float, lon: float, radius_m: float
    ) -> PlaceRecord | None: ...


def truncate_review(text: str, limit: int = REVIEW_MAX_CHARS) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def price_symbols(tier: int | None) -> str | None:
    """Render a 1-indexed price tier as a run of '$'."""
    if tier is None or tier < 1:
        return None
    return "$" * tier


def scaled_rating(value: float | None, native_max: float, digits: int) -> float | None:
    """Map a provider rating on a 0..native_max scale onto 0..5.

    Zero, negative and out-of-scale values are treated as missing.
    """
    if value is None or value <= 0 or value > native_max:
        return None
    return round(value * 5 / native_max, digits)


def nearest(
    candidates: Sequence[T],
    lat: float,
    lon: float,
    coords: Callable[[T], tuple[float, float]],
) -> T | None:
    """Pick the candidate closest to (lat, lon); earlier entries win ties."""
    if not candidates:
        return None
    return min(candidates, key=lambda c: haversine_km(lat, lon, *coords(c)))


def describe_error(exc: Exception) -> str:
    # httpx messages embed the request URL, which can carry an API key.
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    if isinstance(exc, httpx.HTTPError):
        return type(exc).__name__
    return f"{type(exc).__name__}: {exc}"
