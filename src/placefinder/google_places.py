import logging
import urllib.parse

import httpx
from pydantic import BaseModel

from .models import PlaceRecord
from .providers import describe_error, nearest, price_symbols, scaled_rating, truncate_review

logger = logging.getLogger(__name__)

_BASE = "https://maps.googleapis.com/maps/api/place"
PHOTO_URL = f"{_BASE}/photo"

_DETAIL_FIELDS = (
    "name,place_id,geometry,types,editorial_summary,website,"
    "formatted_phone_number,rating,price_level,reviews,photos"
)
_GENERIC_TYPES = {"point_of_interest", "establishment"}


class _LatLng(BaseModel):
    lat: float
    lng: float


class _Geometry(BaseModel):
    location: _LatLng


class _SearchHit(BaseModel):
    place_id: str | None = None
    name: str = ""
    formatted_address: str | None = None
    geometry: _Geometry


class _SearchResponse(BaseModel):
    status: str = ""
    results: list[_SearchHit] = []
    error_message: str | None = None


class _Photo(BaseModel):
    photo_reference: str | None = None


class _Review(BaseModel):
    text: str = ""


class _Summary(BaseModel):
    overview: str | None = None


class _Details(BaseModel):
    place_id: str | None = None
    name: str | None = None
    geometry: _Geometry
    types: list[str] = []
    editorial_summary: _Summary | None = None
    website: str | None = None
    formatted_phone_number: str | None = None
    rating: float | None = None
    price_level: int | None = None
    reviews: list[_Review] = []
    photos: list[_Photo] = []


class _DetailsResponse(BaseModel):
    status: str = ""
    result: _Details | None = None
    error_message: str | None = None


def photo_url(api_key: str, reference: str, max_width: int = 800, max_height: int | None = None) -> str:
    params: dict = {"maxwidth": max_width}
    if max_height:
        params["maxheight"] = max_height
    params["photoreference"] = reference
    params["key"] = api_key
    return PHOTO_URL + "?" + urllib.parse.urlencode(params)


class GooglePlacesProvider:
    """Text Search for candidates, then Place Details for the nearest one."""

    source_name = "Google"

    def __init__(self, api_key: str, client: httpx.AsyncClient):
        self.api_key = api_key
        self.client = client

    async def lookup(
        self, query: str, lat: float, lon: float, radius_m: float
    ) -> PlaceRecord | None:
        try:
            hit = await self._search(query, lat, lon, radius_m)
            if hit is None:
                return None
            details = await self._details(hit.place_id)
            if details is None:
                return None
            return self._to_record(details, hit, query)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Google lookup failed for %r: %s", query, describe_error(exc))
            return None

    async def _search(
        self, query: str, lat: float, lon: float, radius_m: float
    ) -> _SearchHit | None:
        resp = await self.client.get(
            f"{_BASE}/textsearch/json",
            params={
                "query": query,
                "location": f"{lat},{lon}",
                "radius": int(radius_m),
                "key": self.api_key,
            },
        )
        resp.raise_for_status()
        data = _SearchResponse.model_validate(resp.json())
        if data.status == "ZERO_RESULTS":
            logger.info("Google: no results for %r", query)
            return None
        if data.status != "OK":
            raise ValueError(f"text search status {data.status}: {data.error_message or ''}")

        hits = [h for h in data.results if h.place_id]
        return nearest(
            hits, lat, lon, lambda h: (h.geometry.location.lat, h.geometry.location.lng)
        )

    async def _details(self, place_id: str) -> _Details | None:
        resp = await self.client.get(
            f"{_BASE}/details/json",
            params={"place_id": place_id, "fields": _DETAIL_FIELDS, "key": self.api_key},
        )
        resp.raise_for_status()
        data = _DetailsResponse.model_validate(resp.json())
        if data.status != "OK" or data.result is None:
            raise ValueError(f"details status {data.status}: {data.error_message or ''}")
        return data.result

    def _to_record(self, d: _Details, hit: _SearchHit, query: str) -> PlaceRecord:
        name = d.name or hit.name or query
        images = [
            photo_url(self.api_key, p.photo_reference)
            for p in d.photos[:5]
            if p.photo_reference
        ]
        description = (
            (d.editorial_summary.overview if d.editorial_summary else None)
            or hit.formatted_address
            or f"A notable place: {name}"
        )
        tags = [
            t.replace("_", " ") for t in d.types if t.lower() not in _GENERIC_TYPES
        ][:4]
        return PlaceRecord(
            provider_id=d.place_id or hit.place_id,
            source_name=self.source_name,
            name=name,
            description=description,
            latitude=d.geometry.location.lat,
            longitude=d.geometry.location.lng,
            category=d.types[0].replace("_", " ") if d.types else "Place",
            image_urls=images,
            rating=scaled_rating(d.rating, 5, 1),
            # Google's price_level is 0-indexed
            price_level=price_symbols(d.price_level + 1 if d.price_level is not None else None),
            review_snippets=[truncate_review(r.text) for r in d.reviews if r.text.strip()][:3],
            tags=tags,
            website_url=d.website,
            phone_number=d.formatted_phone_number,
        )
