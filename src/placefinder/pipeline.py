import base64
import binascii
import ipaddress
import logging
import urllib.parse
from typing import Any, Sequence

import httpx
from pydantic import ValidationError

from .aggregator import aggregate
from .config import Settings
from .expander import QueryExpander
from .foursquare import FoursquareProvider
from .google_places import GooglePlacesProvider
from .models import SearchRequest, SearchResult
from .providers import PlaceProvider, describe_error
from .ranking import rank
from .reconcile import reconcile

logger = logging.getLogger(__name__)

_MAX_REDIRECTS = 3


def active_providers(settings: Settings, client: httpx.AsyncClient) -> list[PlaceProvider]:
    """Adapters for every provider that has a key, in source-priority order."""
    providers: list[PlaceProvider] = []
    if settings.google_api_key:
        providers.append(GooglePlacesProvider(settings.google_api_key, client))
    else:
        logger.info("Google Places: GOOGLE_PLACES_API_KEY not set, skipping")
    if settings.foursquare_api_key:
        providers.append(FoursquareProvider(settings.foursquare_api_key, client))
    else:
        logger.info("Foursquare: FOURSQUARE_API_KEY not set, skipping")
    return providers


def decode_data_uri(ref: str, max_bytes: int) -> tuple[bytes, str] | None:
    """Decode a `data:[<mime>][;base64],<payload>` image reference."""
    header, sep, payload = ref[len("data:"):].partition(",")
    if not sep:
        return None
    params = [p.strip() for p in header.split(";")]
    mime_type = params[0] or "image/jpeg"
    try:
        if "base64" in params[1:]:
            data = base64.b64decode("".join(payload.split()), validate=True)
        else:
            data = urllib.parse.unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as exc:
        logger.warning("Image data URI could not be decoded: %s", exc)
        return None
    if not data or len(data) > max_bytes:
        logger.warning("Image data URI is empty or larger than %d bytes", max_bytes)
        return None
    return data, mime_type


def _public_http(url: httpx.URL) -> bool:
    if url.scheme not in ("http", "https") or not url.host:
        return False
    host = url.host.lower()
    if host == "localhost" or host.endswith(".localhost"):
        return False
    try:
        return ipaddress.ip_address(host).is_global
    except ValueError:
        return True


async def fetch_image(
    client: httpx.AsyncClient,
    ref: str,
    timeout: float,
    max_bytes: int = Settings.image_max_bytes,
) -> tuple[bytes, str] | None:
    """Load image bytes from a data: URI or a public http(s) URL.

    Redirects are followed by hand so every hop is checked, and the body is
    read in chunks so an oversized image is abandoned early.
    """
    if ref.lower().startswith("data:"):
        return decode_data_uri(ref, max_bytes)
    try:
        target = httpx.URL(ref)
        for _ in range(_MAX_REDIRECTS + 1):
            if not _public_http(target):
                logger.warning("Refusing to fetch image from %r", target.host or target.scheme)
                return None
            async with client.stream("GET", target, timeout=timeout, follow_redirects=False) as resp:
                if resp.is_redirect and resp.next_request is not None:
                    target = resp.next_request.url
                    continue
                resp.raise_for_status()
                declared = resp.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > max_bytes:
                    logger.warning("Image too large: %s bytes", declared)
                    return None
                body = bytearray()
                async for chunk in resp.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > max_bytes:
                        logger.warning("Image larger than %d bytes, giving up", max_bytes)
                        return None
                mime_type = resp.headers.get("content-type", "image/jpeg").split(";")[0].strip()
                return bytes(body), mime_type
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning("Image fetch failed: %s", describe_error(exc))
        return None
    logger.warning("Image fetch gave up after %d redirects", _MAX_REDIRECTS)
    return None


def parse_request(payload: SearchRequest | dict[str, Any]) -> SearchRequest | None:
    if isinstance(payload, SearchRequest):
        return payload
    try:
        return SearchRequest.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Invalid search request: %s", exc.errors(include_url=False))
        return None


async def search_places(
    payload: SearchRequest | dict[str, Any],
    settings: Settings,
    *,
    expander: QueryExpander | None = None,
    providers: Sequence[PlaceProvider] | None = None,
    client: httpx.AsyncClient | None = None,
) -> SearchResult:
    """Expand, fetch, reconcile and rank places for one request.

    Bad input yields an empty result rather than an exception. Collaborators
    can be passed in; anything left out is built from `settings`.
    """
    request = parse_request(payload)
    if request is None:
        return SearchResult()

    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(timeout=settings.provider_timeout)
    try:
        if expander is None:
            expander = QueryExpander(settings)
        if providers is None:
            providers = active_providers(settings, client)

        image, mime_type = None, "image/jpeg"
        if request.input_kind == "image":
            fetched = await fetch_image(
                client, request.image_ref, settings.image_fetch_timeout, settings.image_max_bytes
            )
            if fetched:
                image, mime_type = fetched

        suggestions = await expander.expand(request, image, mime_type)
        records = await aggregate(
            suggestions,
            request.latitude,
            request.longitude,
            request.radius_meters,
            providers,
            timeout=settings.provider_timeout,
        )
    finally:
        if own_client:
            await client.aclose()

    locations = rank(reconcile(records), request.latitude, request.longitude)
    if not locations:
        logger.info("No locations found")
    return SearchResult(locations=locations)
