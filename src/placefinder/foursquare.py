import asyncio
import logging

import httpx
from pydantic import BaseModel, TypeAdapter

from .models import PlaceRecord, SocialLink
from .providers import describe_error, nearest, price_symbols, scaled_rating, truncate_review

logger = logging.getLogger(__name__)

_BASE = "https://api.foursquare.com/v3"

_SEARCH_FIELDS = (
    "fsq_id,name,geocodes,location,categories,website,social_media,"
    "tel,email,rating,price,description,menu"
)
_CANDIDATES = 5


class _Point(BaseModel):
    latitude: float
    longitude: float


class _Geocodes(BaseModel):
    main: _Point


class _Category(BaseModel):
    name: str = ""


class _SocialMedia(BaseModel):
    facebook_id: str | None = None
    instagram: str | None = None
    twitter: str | None = None


class _Place(BaseModel):
    fsq_id: str
    name: str
    geocodes: _Geocodes
    categories: list[_Category] = []
    description: str | None = None
    website: str | None = None
    tel: str | None = None
    menu: str | None = None
    rating: float | None = None  # 0-10
    price: int | None = None  # 1-4
    social_media: _SocialMedia | None = None


class _SearchResponse(BaseModel):
    results: list[_Place] = []


class _Photo(BaseModel):
    prefix: str
    suffix: str


class _Tip(BaseModel):
    text: str = ""


_photos = TypeAdapter(list[_Photo])
_tips = TypeAdapter(list[_Tip])


def _social_links(social: _SocialMedia | None) -> list[SocialLink]:
    if social is None:
        return []
    links: list[SocialLink] = []
    if social.facebook_id:
        links.append(SocialLink(platform="Facebook", url=f"https://www.facebook.com/{social.facebook_id}"))
    if social.instagram:
        links.append(SocialLink(platform="Instagram", url=f"https://www.instagram.com/{social.instagram}"))
    if social.twitter:
        links.append(SocialLink(platform="Twitter", url=f"https://twitter.com/{social.twitter}"))
    return links


class FoursquareProvider:
    """Place Search for candidates, then photos and tips for the nearest one."""

    source_name = "Foursquare"

    def __init__(self, api_key: str, client: httpx.AsyncClient):
        self.client = client
        self.headers = {"Authorization": api_key, "Accept": "application/json"}

    async def lookup(
        self, query: str, lat: float, lon: float, radius_m: float
    ) -> PlaceRecord | None:
        try:
            resp = await self.client.get(
                f"{_BASE}/places/search",
                headers=self.headers,
                params={
                    "query": query,
                    "ll": f"{lat},{lon}",
                    "radius": int(radius_m),
                    "limit": _CANDIDATES,
                    "fields": _SEARCH_FIELDS,
                },
            )
            resp.raise_for_status()
            results = _SearchResponse.model_validate(resp.json()).results
            place = nearest(
                results, lat, lon, lambda p: (p.geocodes.main.latitude, p.geocodes.main.longitude)
            )
            if place is None:
                logger.info("Foursquare: no results for %r", query)
                return None

            photos, tips = await asyncio.gather(
                self._photos(place.fsq_id), self._tips(place.fsq_id)
            )
            return self._to_record(place, photos, tips)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Foursquare lookup failed for %r: %s", query, describe_error(exc))
            return None

    async def _photos(self, fsq_id: str) -> list[str]:
        try:
            resp = await self.client.get(
                f"{_BASE}/places/{fsq_id}/photos",
                headers=self.headers,
                params={"limit": 5, "sort": "POPULAR"},
            )
            resp.raise_for_status()
            photos = _photos.validate_python(resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Foursquare photos failed for %s: %s", fsq_id, describe_error(exc))
            return []
        return [f"{p.prefix}original{p.suffix}" for p in photos[:5]]

    async def _tips(self, fsq_id: str) -> list[str]:
        try:
            resp = await self.client.get(
                f"{_BASE}/places/{fsq_id}/tips",
                headers=self.headers,
                params={"limit": 3, "sort": "POPULAR"},
            )
            resp.raise_for_status()
            tips = _tips.validate_python(resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Foursquare tips failed for %s: %s", fsq_id, describe_error(exc))
            return []
        return [truncate_review(t.text) for t in tips if t.text.strip()][:3]

    def _to_record(self, p: _Place, photos: list[str], tips: list[str]) -> PlaceRecord:
        cats = [c.name for c in p.categories if c.name]
        return PlaceRecord(
            provider_id=p.fsq_id,
            source_name=self.source_name,
            name=p.name,
            description=p.description or ", ".join(cats) or f"Popular Foursquare venue: {p.name}",
            latitude=p.geocodes.main.latitude,
            longitude=p.geocodes.main.longitude,
            category=cats[0] if cats else "Place",
            image_urls=photos,
            rating=scaled_rating(p.rating, 10, 2),
            price_level=price_symbols(p.price),
            review_snippets=tips,
            tags=cats[:4],
            website_url=p.website,
            phone_number=p.tel,
            menu_url=p.menu,
            social_links=_social_links(p.social_media),
        )
