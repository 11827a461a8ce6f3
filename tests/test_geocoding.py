import httpx
import pytest

from rodovar.config import settings
from rodovar.errors import GeocodeMiss
from rodovar.models.domain import Coordinates
from rodovar.services.geocoding import NominatimClient


def _client(handler, **kwargs) -> NominatimClient:
    return NominatimClient(
        base_url="http://geo.test",
        country="Brazil",
        max_retries=kwargs.pop("max_retries", 1),
        backoff_seconds=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_geocode_returns_first_hit() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.params["q"])
        return httpx.Response(200, json=[{"lat": "-22.9068", "lon": "-43.1729"}])

    point = _client(handler).geocode("Rio de Janeiro, Brazil")

    assert point == Coordinates(-22.9068, -43.1729)
    assert seen == ["Rio de Janeiro, Brazil"]


def test_geocode_miss_raises() -> None:
    client = _client(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(GeocodeMiss):
        client.geocode("Nowhere")


def test_city_falls_back_to_country_centroid() -> None:
    client = _client(lambda request: httpx.Response(200, json=[]))

    assert client.coordinates_for_city("Nowhere", "XX") == Coordinates(*settings.country_centroid)


def test_location_prefers_detailed_address_then_place() -> None:
    queries: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        query = request.url.params["q"]
        queries.append(query)
        if query.startswith("Rua Augusta"):
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=[{"lat": "-23.55", "lon": "-46.63"}])

    point = _client(handler).coordinates_for_location("Sao Paulo", "Rua Augusta 100")

    assert point == Coordinates(-23.55, -46.63)
    assert queries == ["Rua Augusta 100, Sao Paulo, Brazil", "Sao Paulo, Brazil"]


def test_short_address_is_ignored() -> None:
    queries: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        queries.append(request.url.params["q"])
        return httpx.Response(200, json=[])

    point = _client(handler).coordinates_for_location("Sao Paulo", "n/a")

    assert point == Coordinates(0.0, 0.0)
    assert queries == ["Sao Paulo, Brazil"]


def test_network_errors_are_retried() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("boom", request=request)
        return httpx.Response(200, json=[{"lat": "1.5", "lon": "2.5"}])

    assert _client(handler).geocode("Somewhere") == Coordinates(1.5, 2.5)
    assert calls["count"] == 2


def test_location_gives_sentinel_when_service_down() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    assert _client(handler, max_retries=0).coordinates_for_location("Sao Paulo") == Coordinates(0.0, 0.0)


def test_reverse_uses_address_fallbacks() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/reverse"
        return httpx.Response(
            200,
            json={
                "display_name": "Rua X, Centro, Campinas",
                "address": {"road": "Rua X", "neighbourhood": "Centro", "town": "Campinas", "state": "SP", "country": "Brasil"},
            },
        )

    address = _client(handler).reverse(Coordinates(-22.9, -47.06))

    assert address is not None
    assert (address.road, address.neighborhood, address.city, address.state) == ("Rua X", "Centro", "Campinas", "SP")
    assert address.formatted == "Rua X, Centro, Campinas"


def test_reverse_without_address_is_none() -> None:
    client = _client(lambda request: httpx.Response(200, json={"error": "Unable to geocode"}))

    assert client.reverse(Coordinates(1.0, 1.0)) is None
