from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SocialLink(_CamelModel):
    platform: str
    url: str


class PlaceRecord(_CamelModel):
    """A place as every stage of the pipeline sees it.

    Optional fields are either set to a real value or left as None; empty
    strings and empty lists are folded into None so that `to_json` never
    emits them.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    provider_id: str | None = None
    source_name: str
    name: str
    description: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    category: str
    image_urls: list[str] | None = Field(default=None, max_length=5)
    rating: float | None = Field(default=None, ge=0, le=5)
    price_level: str | None = None
    review_snippets: list[str] | None = Field(default=None, max_length=3)
    tags: list[str] | None = Field(default=None, max_length=4)
    website_url: str | None = None
    phone_number: str | None = None
    menu_url: str | None = None
    social_links: list[SocialLink] | None = None
    distance_from_query_km: float | None = None

    @field_validator(
        "provider_id",
        "price_level",
        "website_url",
        "phone_number",
        "menu_url",
        "image_urls",
        "review_snippets",
        "tags",
        "social_links",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, (list, tuple)) and not value:
            return None
        return value

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        seen: set[str] = set()
        return [t for t in value if not (t in seen or seen.add(t))]  # type: ignore[func-returns-value]

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class QuerySuggestion(_CamelModel):
    place_name: str = Field(min_length=1)
    search_query: str = Field(min_length=1)


class SearchRequest(_CamelModel):
    input_kind: Literal["text", "image"]
    text_input: str | None = None
    image_ref: str | None = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    radius_meters: float = Field(default=20000, gt=0)

    @field_validator("text_input", "image_ref", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("image_ref")
    @classmethod
    def _fetchable_ref(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if value.lower().startswith("data:"):
            if "," not in value:
                raise ValueError("data URI has no payload")
            return value
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as exc:
            raise ValueError(f"invalid image URL: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError("imageRef must be an http(s) URL or a data: URI")
        return value

    @model_validator(mode="after")
    def _payload_matches_kind(self) -> "SearchRequest":
        if self.input_kind == "text":
            if not self.text_input or self.image_ref:
                raise ValueError("text input requires textInput and no imageRef")
        elif not self.image_ref or self.text_input:
            raise ValueError("image input requires imageRef and no textInput")
        return self


class SearchResult(_CamelModel):
    locations: list[PlaceRecord] = []

    def to_json(self) -> dict[str, Any]:
        return {"locations": [loc.to_json() for loc in self.locations]}
