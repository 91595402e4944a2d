"""Turn a text or image request into a handful of place search queries.

The suggestions come from Gemini. Whenever Gemini is not configured or its
answer cannot be used, a fixed set of three queries built from the input is
returned instead, so the rest of the pipeline always has work to do.
"""

import asyncio
import logging

from google import genai
from google.genai import types
from pydantic import BaseModel, Field

from .config import Settings
from .models import QuerySuggestion, SearchRequest

logger = logging.getLogger(__name__)

IMAGE_FALLBACK_TERM = "interesting places"

_SYSTEM = (
    "You are a local guide that suggests 3-5 diverse search queries for "
    "finding real places near the user. Vary the kind of place and the likely "
    "intent. Each query must work as-is with Google Places or Foursquare search."
)

_TEXT_PROMPT = (
    'User\'s text input: "{text}"\n'
    "User's current location: Latitude {lat}, Longitude {lon}\n\n"
    "Provide 3-5 suggestions. For each give a conceptual placeName and a "
    "searchQuery suitable for place search APIs."
)

_IMAGE_PROMPT = (
    "Look at the attached image.\n"
    "User's current location: Latitude {lat}, Longitude {lon}\n\n"
    "Provide 3-5 suggestions for nearby places related to what the image shows. "
    "For each give a conceptual placeName and a searchQuery suitable for place "
    "search APIs."
)

_SCHEMA = {
    "type": "object",
    "properties": {
        "suggestions": {
            "type": "array",
            "minItems": 3,
            "maxItems": 5,
            "items": {
                "type": "object",
                "properties": {
                    "placeName": {"type": "string"},
                    "searchQuery": {"type": "string"},
                },
                "required": ["placeName", "searchQuery"],
            },
        }
    },
    "required": ["suggestions"],
}


class _SuggestionsOut(BaseModel):
    suggestions: list[QuerySuggestion] = Field(min_length=3, max_length=5)


def fallback_suggestions(term: str, lat: float, lon: float) -> list[QuerySuggestion]:
    return [
        QuerySuggestion(place_name=term, search_query=f"{term} near {lat},{lon}"),
        QuerySuggestion(place_name=term, search_query=f"best {term}"),
        QuerySuggestion(place_name=term, search_query=f"top rated {term} near {lat},{lon}"),
    ]


class QueryExpander:
    def __init__(self, settings: Settings, client: genai.Client | None = None):
        self.settings = settings
        if client is None and settings.gemini_api_key:
            client = genai.Client(api_key=settings.gemini_api_key)
        self.client = client

    async def expand(
        self,
        request: SearchRequest,
        image: bytes | None = None,
        mime_type: str = "image/jpeg",
    ) -> list[QuerySuggestion]:
        term = request.text_input if request.input_kind == "text" else IMAGE_FALLBACK_TERM
        lat, lon = request.latitude, request.longitude

        if self.client is None:
            logger.info("Gemini not configured, using fallback queries")
            return fallback_suggestions(term, lat, lon)
        if request.input_kind == "image" and not image:
            logger.warning("No image bytes for image request, using fallback queries")
            return fallback_suggestions(term, lat, lon)

        try:
            text = await asyncio.wait_for(
                self._generate(request, image, mime_type), timeout=self.settings.llm_timeout
            )
            suggestions = _SuggestionsOut.model_validate_json(text).suggestions
        except Exception as exc:
            logger.warning("Query expansion failed, using fallback queries: %s", exc)
            return fallback_suggestions(term, lat, lon)

        logger.info("Gemini suggested %d queries", len(suggestions))
        return suggestions

    async def _generate(self, request: SearchRequest, image: bytes | None, mime_type: str) -> str:
        lat, lon = request.latitude, request.longitude
        if request.input_kind == "text":
            parts = [types.Part(text=_TEXT_PROMPT.format(text=request.text_input, lat=lat, lon=lon))]
        else:
            parts = [
                types.Part.from_bytes(data=image, mime_type=mime_type),
                types.Part(text=_IMAGE_PROMPT.format(lat=lat, lon=lon)),
            ]
        resp = await self.client.aio.models.generate_content(
            model=self.settings.gemini_model,
            contents=[types.Content(role="user", parts=parts)],
            config={
                "system_instruction": _SYSTEM,
                "response_mime_type": "application/json",
                "response_json_schema": _SCHEMA,
            },
        )
        if not resp.text:
            raise ValueError("empty response from Gemini")
        return resp.text
