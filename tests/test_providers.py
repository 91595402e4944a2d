import asyncio

import httpx

from placefinder.foursquare import FoursquareProvider
from placefinder.google_places import GooglePlacesProvider, photo_url
from placefinder.providers import nearest, price_symbols, scaled_rating, truncate_review

LAT, LON = 25.2, 55.3


def _run(coro):
    return asyncio.run(coro)


def _lookup(provider_cls, key, handler, query="coffee"):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await provider_cls(key, client).lookup(query, LAT, LON, 20000)

    return _run(go())


# --- shared helpers ---

def test_truncate_review_short_text_untouched():
    assert truncate_review("Great coffee") == "Great coffee"


def test_truncate_review_long_text():
    text = "x" * 200
    out = truncate_review(text)
    assert out == "x" * 150 + "..."


def test_truncate_review_exact_limit():
    assert truncate_review("y" * 150) == "y" * 150


def test_price_symbols():
    assert price_symbols(1) == "$"
    assert price_symbols(4) == "$$$$"
    assert price_symbols(None) is None
    assert price_symbols(0) is None


def test_scaled_rating():
    assert scaled_rating(9.1, 10, 2) == 4.55
    assert scaled_rating(4.46, 5, 1) == 4.5
    assert scaled_rating(10, 10, 2) == 5.0
    assert scaled_rating(12, 10, 2) is None
    assert scaled_rating(0, 5, 1) is None
    assert scaled_rating(None, 5, 1) is None


def test_nearest_picks_closest_and_keeps_first_on_tie():
    points = [("far", 25.3, 55.3), ("near", 25.201, 55.3), ("near-dup", 25.201, 55.3)]
    best = nearest(points, LAT, LON, lambda p: (p[1], p[2]))
    assert best[0] == "near"
    assert nearest([], LAT, LON, lambda p: p) is None


# --- Google ---

def _google_handler(search_body=None, details_body=None, search_status=200):
    search_body = search_body or {
        "status": "OK",
        "results": [
            {
                "place_id": "far",
                "name": "Far Coffee",
                "formatted_address": "1 Far St",
                "geometry": {"location": {"lat": 25.4, "lng": 55.5}},
            },
            {
                "place_id": "g1",
                "name": "Blue Bottle Coffee",
                "formatted_address": "2 Near St",
                "geometry": {"location": {"lat": 25.201, "lng": 55.301}},
            },
        ],
    }
    details_body = details_body or {
        "status": "OK",
        "result": {
            "place_id": "g1",
            "name": "Blue Bottle Coffee",
            "geometry": {"location": {"lat": 25.201, "lng": 55.301}},
            "types": ["cafe", "point_of_interest", "food", "establishment", "store", "bakery", "bar"],
            "rating": 4.46,
            "price_level": 1,
            "reviews": [{"text": "r" * 180}, {"text": "ok"}, {"text": "fine"}, {"text": "extra"}],
            "photos": [{"photo_reference": f"ref{i}"} for i in range(7)],
            "website": "https://bluebottle.example",
            "formatted_phone_number": "+971 4 000 0000",
        },
    }
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/textsearch/json"):
            return httpx.Response(search_status, json=search_body)
        if request.url.path.endswith("/details/json"):
            return httpx.Response(200, json=details_body)
        return httpx.Response(404)

    handler.seen = seen
    return handler


def test_google_lookup_normalizes_nearest_candidate():
    handler = _google_handler()
    rec = _lookup(GooglePlacesProvider, "gkey", handler)

    assert rec is not None
    assert rec.provider_id == "g1"
    assert rec.source_name == "Google"
    assert rec.name == "Blue Bottle Coffee"
    assert rec.description == "2 Near St"
    assert rec.category == "cafe"
    assert rec.rating == 4.5
    assert rec.price_level == "$$"
    assert rec.tags == ["cafe", "food", "store", "bakery"]
    assert len(rec.image_urls) == 5
    assert rec.image_urls[0] == photo_url("gkey", "ref0")
    assert "key=gkey" in rec.image_urls[0]
    assert rec.review_snippets == ["r" * 150 + "...", "ok", "fine"]
    assert rec.website_url == "https://bluebottle.example"
    assert rec.menu_url is None

    details_req = handler.seen[1]
    assert details_req.url.params["place_id"] == "g1"
    search_req = handler.seen[0]
    assert search_req.url.params["location"] == f"{LAT},{LON}"
    assert search_req.url.params["radius"] == "20000"


def test_google_zero_results_returns_none():
    handler = _google_handler(search_body={"status": "ZERO_RESULTS", "results": []})
    assert _lookup(GooglePlacesProvider, "gkey", handler) is None


def test_google_denied_returns_none():
    handler = _google_handler(search_body={"status": "REQUEST_DENIED", "error_message": "bad key"})
    assert _lookup(GooglePlacesProvider, "gkey", handler) is None


def test_google_http_error_returns_none():
    handler = _google_handler(search_status=500)
    assert _lookup(GooglePlacesProvider, "gkey", handler) is None


def test_google_malformed_body_returns_none():
    handler = _google_handler(search_body={"status": "OK", "results": [{"place_id": "x"}]})
    assert _lookup(GooglePlacesProvider, "gkey", handler) is None


def test_google_network_error_returns_none():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    assert _lookup(GooglePlacesProvider, "gkey", handler) is None


def test_google_minimal_details_omit_optionals():
    handler = _google_handler(
        details_body={
            "status": "OK",
            "result": {"place_id": "g1", "geometry": {"location": {"lat": 25.201, "lng": 55.301}}},
        }
    )
    body = _lookup(GooglePlacesProvider, "gkey", handler).to_json()
    assert body["name"] == "Blue Bottle Coffee"
    assert body["category"] == "Place"
    for key in ("imageUrls", "rating", "priceLevel", "reviewSnippets", "tags", "websiteUrl", "phoneNumber"):
        assert key not in body


# --- Foursquare ---

def _fsq_handler(search_status=200, photos_status=200, tips_status=200, results=None):
    results = results if results is not None else [
        {
            "fsq_id": "far",
            "name": "Far Cafe",
            "geocodes": {"main": {"latitude": 25.3, "longitude": 55.4}},
            "categories": [{"name": "Coffee Shop"}],
        },
        {
            "fsq_id": "f1",
            "name": "blue bottle coffee",
            "geocodes": {"main": {"latitude": 25.2011, "longitude": 55.3009}},
            "categories": [{"name": "Coffee Shop"}, {"name": "Café"}],
            "rating": 9.1,
            "price": 2,
            "tel": "+971 4 111 1111",
            "menu": "https://bluebottle.example/menu",
            "social_media": {"instagram": "bluebottle", "twitter": "bluebottle"},
        },
    ]
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        path = request.url.path
        if path.endswith("/places/search"):
            return httpx.Response(search_status, json={"results": results})
        if path.endswith("/photos"):
            return httpx.Response(
                photos_status,
                json=[{"prefix": "https://fastly.4sqi.net/img/general/", "suffix": f"/p{i}.jpg"} for i in range(3)],
            )
        if path.endswith("/tips"):
            return httpx.Response(tips_status, json=[{"text": "t" * 151}, {"text": "Nice flat white"}])
        return httpx.Response(404)

    handler.seen = seen
    return handler


def test_foursquare_lookup_normalizes_nearest_candidate():
    handler = _fsq_handler()
    rec = _lookup(FoursquareProvider, "fkey", handler)

    assert rec.provider_id == "f1"
    assert rec.source_name == "Foursquare"
    assert abs(rec.rating - 4.55) < 1e-9
    assert rec.price_level == "$$"
    assert rec.category == "Coffee Shop"
    assert rec.description == "Coffee Shop, Café"
    assert rec.tags == ["Coffee Shop", "Café"]
    assert rec.image_urls[0] == "https://fastly.4sqi.net/img/general/original/p0.jpg"
    assert rec.review_snippets == ["t" * 150 + "...", "Nice flat white"]
    assert rec.menu_url == "https://bluebottle.example/menu"
    assert [link.platform for link in rec.social_links] == ["Instagram", "Twitter"]

    assert handler.seen[0].headers["Authorization"] == "fkey"
    assert handler.seen[0].url.params["ll"] == f"{LAT},{LON}"
    assert any("/places/f1/photos" in r.url.path for r in handler.seen)


def test_foursquare_enrichment_failure_keeps_place():
    handler = _fsq_handler(photos_status=500, tips_status=403)
    body = _lookup(FoursquareProvider, "fkey", handler).to_json()
    assert body["providerId"] == "f1"
    assert "imageUrls" not in body
    assert "reviewSnippets" not in body


def test_foursquare_no_results_returns_none():
    assert _lookup(FoursquareProvider, "fkey", _fsq_handler(results=[])) is None


def test_foursquare_search_error_returns_none():
    assert _lookup(FoursquareProvider, "fkey", _fsq_handler(search_status=401)) is None


def test_foursquare_description_fallback():
    handler = _fsq_handler(
        results=[
            {
                "fsq_id": "f2",
                "name": "Mystery Spot",
                "geocodes": {"main": {"latitude": 25.2, "longitude": 55.3}},
            }
        ]
    )
    rec = _lookup(FoursquareProvider, "fkey", handler)
    assert rec.description == "Popular Foursquare venue: Mystery Spot"
    assert rec.category == "Place"
    assert rec.rating is None
    assert rec.social_links is None


def test_foursquare_out_of_scale_rating_dropped_but_place_kept():
    handler = _fsq_handler(
        results=[
            {
                "fsq_id": "f3",
                "name": "Overrated Bistro",
                "geocodes": {"main": {"latitude": 25.2, "longitude": 55.3}},
                "categories": [{"name": "Bistro"}],
                "rating": 12,
            }
        ]
    )
    rec = _lookup(FoursquareProvider, "fkey", handler)
    assert rec is not None
    assert rec.provider_id == "f3"
    assert rec.rating is None
