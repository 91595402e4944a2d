import logging
from functools import lru_cache
from typing import Any

import httpx
from dotenv import load_dotenv
from fastapi import Body, Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

load_dotenv()

from .config import Settings  # noqa: E402
from .expander import QueryExpander  # noqa: E402
from .google_places import photo_url  # noqa: E402
from .models import SearchResult  # noqa: E402
from .pipeline import search_places  # noqa: E402
from .providers import describe_error  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Placefinder")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_expander(settings: Settings = Depends(get_settings)) -> QueryExpander:
    return QueryExpander(settings)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/api/search", response_model=SearchResult, response_model_exclude_none=True)
async def search(
    payload: dict[str, Any] = Body(...),
    settings: Settings = Depends(get_settings),
    expander: QueryExpander = Depends(get_expander),
) -> SearchResult:
    """Suggest nearby places for a text or image input, nearest first."""
    return await search_places(payload, settings, expander=expander)


@app.get("/api/photo")
async def place_photo(
    photo_reference: str = Query("", alias="photoReference"),
    max_width: int = Query(800, alias="maxWidth", gt=0, le=1600),
    max_height: int = Query(600, alias="maxHeight", gt=0, le=1600),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Proxy a Google Places photo so the browser never needs the API key."""
    if not photo_reference:
        raise HTTPException(status_code=400, detail="Missing photoReference parameter")
    if not settings.google_api_key:
        raise HTTPException(status_code=503, detail="Google Places is not configured")

    url = photo_url(settings.google_api_key, photo_reference, max_width, max_height)
    try:
        async with httpx.AsyncClient(timeout=settings.image_fetch_timeout) as client:
            resp = await client.get(url, follow_redirects=True)
    except httpx.HTTPError as exc:
        logger.warning("Photo proxy failed: %s", describe_error(exc))
        raise HTTPException(status_code=502, detail="Failed to proxy photo")

    if resp.is_error:
        raise HTTPException(status_code=resp.status_code, detail="Failed to fetch photo")
    return Response(
        content=resp.content,
        media_type=resp.headers.get("content-type", "image/jpeg"),
        headers={"Cache-Control": "public, max-age=86400"},
    )
