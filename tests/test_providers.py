"""Tests for Google provider clients, the request geocoder and the in-memory stores."""

import json

import httpx
import pytest

from src.config import ProviderConfig
from src.errors import DirectionsError, GeocodingError
from src.providers.directions import (
    GoogleDistanceMatrixProvider,
    HaversineDirectionsProvider,
    haversine_km,
)
from src.providers.geocoding import GoogleGeocodingProvider, RequestGeocoder
from src.providers.store import InMemoryBookingStore, load_snapshot
from src.schemas.scheduling_schema import Coordinate, Location
from tests.conftest import CASE_POINT, MONDAY, TZ, FakeGeocoder, at, make_booking, point

STOCKHOLM = Coordinate(lat=59.3293, lng=18.0686)
UPPSALA = Coordinate(lat=59.8586, lng=17.6389)


def provider_config() -> ProviderConfig:
    return ProviderConfig(
        google_maps_api_key="test-key",
        google_maps_base_url="https://maps.test/api",
        http_timeout_sec=1.0,
        directions_backend="google",
        haversine_speed_kmh=50.0,
        snapshot_path="",
    )


def mock_client(payload=None, status_code=200, captured=None) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        return httpx.Response(status_code, json=payload if payload is not None else {})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def matrix_payload(element: dict, status: str = "OK") -> dict:
    return {"status": status, "rows": [{"elements": [element]}]}


class TestDistanceMatrix:
    @pytest.mark.asyncio
    async def test_returns_minutes_and_sends_coordinates(self):
        captured = []
        payload = matrix_payload({"status": "OK", "duration": {"value": 750, "text": "13 min"}})
        async with mock_client(payload, captured=captured) as client:
            minutes = await GoogleDistanceMatrixProvider(client, provider_config()).travel_time(
                STOCKHOLM, UPPSALA
            )
        assert minutes == pytest.approx(12.5)
        request = captured[0]
        assert request.url.path == "/api/distancematrix/json"
        assert request.url.params["origins"] == "59.3293,18.0686"
        assert request.url.params["destinations"] == "59.8586,17.6389"
        assert request.url.params["key"] == "test-key"
        assert "departure_time" not in request.url.params

    @pytest.mark.asyncio
    async def test_uses_free_flow_duration(self):
        captured = []
        payload = matrix_payload({
            "status": "OK",
            "duration": {"value": 600},
            "duration_in_traffic": {"value": 900},
        })
        async with mock_client(payload, captured=captured) as client:
            minutes = await GoogleDistanceMatrixProvider(client, provider_config()).travel_time(
                STOCKHOLM, UPPSALA
            )
        assert minutes == 10
        assert "departure_time" not in captured[0].url.params

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"status": "REQUEST_DENIED"},
        {"status": "OK", "rows": []},
        matrix_payload({"status": "ZERO_RESULTS"}),
    ])
    async def test_bad_responses_raise(self, payload):
        async with mock_client(payload) as client:
            with pytest.raises(DirectionsError):
                await GoogleDistanceMatrixProvider(client, provider_config()).travel_time(
                    STOCKHOLM, UPPSALA
                )

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        async with mock_client({}, status_code=500) as client:
            with pytest.raises(DirectionsError):
                await GoogleDistanceMatrixProvider(client, provider_config()).travel_time(
                    STOCKHOLM, UPPSALA
                )


class TestHaversine:
    def test_distance_stockholm_uppsala(self):
        assert haversine_km(STOCKHOLM, UPPSALA) == pytest.approx(64, abs=2)

    @pytest.mark.asyncio
    async def test_minutes_at_fixed_speed(self):
        provider = HaversineDirectionsProvider(speed_kmh=60)
        minutes = await provider.travel_time(STOCKHOLM, UPPSALA)
        assert minutes == pytest.approx(haversine_km(STOCKHOLM, UPPSALA))

    def test_rejects_non_positive_speed(self):
        with pytest.raises(ValueError):
            HaversineDirectionsProvider(speed_kmh=0)


class TestGoogleGeocoding:
    @pytest.mark.asyncio
    async def test_returns_first_result(self):
        captured = []
        payload = {
            "status": "OK",
            "results": [{"geometry": {"location": {"lat": 59.33, "lng": 18.07}}}],
        }
        async with mock_client(payload, captured=captured) as client:
            coord = await GoogleGeocodingProvider(client, provider_config()).geocode("Götgatan 50")
        assert coord == Coordinate(lat=59.33, lng=18.07)
        assert captured[0].url.params["address"] == "Götgatan 50"
        assert captured[0].url.params["language"] == "sv"

    @pytest.mark.asyncio
    async def test_zero_results_raise(self):
        async with mock_client({"status": "ZERO_RESULTS", "results": []}) as client:
            with pytest.raises(GeocodingError):
                await GoogleGeocodingProvider(client, provider_config()).geocode("Nowhere 1")

    @pytest.mark.asyncio
    async def test_blank_address_raises_without_request(self):
        captured = []
        async with mock_client({}, captured=captured) as client:
            with pytest.raises(GeocodingError):
                await GoogleGeocodingProvider(client, provider_config()).geocode("   ")
        assert captured == []


class TestRequestGeocoder:
    @pytest.mark.asyncio
    async def test_coordinate_is_used_directly(self):
        provider = FakeGeocoder()
        geocoder = RequestGeocoder(provider)
        assert await geocoder.resolve(Location(address="X", coordinate=CASE_POINT)) == CASE_POINT
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_addresses_cached_case_insensitively(self):
        provider = FakeGeocoder({"Storgatan 1": point(1)})
        geocoder = RequestGeocoder(provider)
        await geocoder.resolve(Location(address="Storgatan 1"))
        await geocoder.resolve(Location(address="  STORGATAN   1 "))
        assert provider.calls == ["Storgatan 1"]
        assert geocoder.lookups == 1

    @pytest.mark.asyncio
    async def test_failure_resolves_to_none(self):
        geocoder = RequestGeocoder(FakeGeocoder())
        assert await geocoder.resolve(Location(address="Okänd väg 1")) is None

    @pytest.mark.asyncio
    async def test_without_provider_addresses_are_unresolved(self):
        geocoder = RequestGeocoder(None)
        assert await geocoder.resolve(Location(address="Storgatan 1")) is None


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_returns_sorted_overlapping_bookings(self):
        store = InMemoryBookingStore(tz=TZ)
        store.add_booking(make_booking(start=at(MONDAY, 13), end=at(MONDAY, 14), title="Late"))
        store.add_booking(make_booking(start=at(MONDAY, 8), end=at(MONDAY, 9), title="Early"))
        store.add_booking(make_booking(start=at(MONDAY, 20), end=at(MONDAY, 21), title="Evening"))
        found = await store.get_bookings("tech-1", at(MONDAY, 0), at(MONDAY, 18))
        assert [b.title for b in found] == ["Early", "Late"]

    @pytest.mark.asyncio
    async def test_naive_datetimes_are_localized(self):
        store = InMemoryBookingStore(tz=TZ)
        store.add_booking(make_booking(
            start=at(MONDAY, 8).replace(tzinfo=None), end=at(MONDAY, 9).replace(tzinfo=None),
        ))
        [booking] = await store.get_bookings("tech-1", at(MONDAY, 0), at(MONDAY, 23))
        assert booking.start == at(MONDAY, 8)
        assert booking.start.tzinfo is not None


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_load_snapshot(self, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps({
            "technicians": [
                {
                    "id": "tech-1",
                    "name": "Anna",
                    "home": {"address": {"formatted_address": "Götgatan 50, Stockholm"}},
                    "work_schedule": {"monday": {"start": "08:00", "end": "17:00"}},
                },
                {"id": "tech-2", "name": "Erik", "active": False},
            ],
            "bookings": [{
                "technician_id": "tech-1",
                "start": "2025-03-17T10:00:00",
                "end": "2025-03-17T11:00:00",
                "title": "Råttor",
            }],
            "vehicle_positions": {"tech-1": {"lat": 59.3, "lng": 18.0}},
        }), encoding="utf-8")

        directory, store, vehicles = load_snapshot(path, tz=TZ)

        [tech] = await directory.list_active_technicians()
        assert tech.home.address == "Götgatan 50, Stockholm"
        [booking] = await store.get_bookings("tech-1", at(MONDAY, 0), at(MONDAY, 23))
        assert booking.start == at(MONDAY, 10)
        assert await vehicles.get_position("tech-1") == Coordinate(lat=59.3, lng=18.0)
        assert await vehicles.get_position("tech-2") is None
