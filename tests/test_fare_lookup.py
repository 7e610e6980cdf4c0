"""Tests for the ranked fare lookup."""
import httpx
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from droptracker.config import Settings
from droptracker.services.fare_lookup import (
    FareLookupClient,
    FareQuery,
    FareResult,
    FlightLabsSource,
    SerpAPISource,
    parse_price,
)


QUERY = FareQuery(
    airline="delta",
    flight_number="DL1234",
    origin="ATL",
    destination="LAX",
    departure_date=date(2026, 12, 1),
)


def _response(status: int = 200, json=None) -> httpx.Response:
    return httpx.Response(status, json=json, request=httpx.Request("GET", "https://fares.test"))


def _client(*responses, side_effect=None) -> MagicMock:
    client = MagicMock()
    if side_effect is not None:
        client.get = AsyncMock(side_effect=side_effect)
    else:
        client.get = AsyncMock(side_effect=list(responses))
    client.aclose = AsyncMock()
    return client


class TestParsePrice:
    def test_numbers(self):
        assert parse_price(412) == Decimal("412")
        assert parse_price(412.5) == Decimal("412.5")

    def test_strings(self):
        assert parse_price("412.50") == Decimal("412.50")
        assert parse_price("$1,412") == Decimal("1412")

    def test_rejects_garbage(self):
        assert parse_price(None) is None
        assert parse_price("") is None
        assert parse_price("n/a") is None
        assert parse_price(True) is None
        assert parse_price(0) is None

    def test_rejects_non_finite(self):
        assert parse_price(float("inf")) is None
        assert parse_price(float("nan")) is None
        assert parse_price(Decimal("Infinity")) is None
        assert parse_price("Infinity") is None
        assert parse_price("NaN") is None

    def test_rejects_signed_and_exponent_strings(self):
        assert parse_price("-412.00") is None
        assert parse_price("+412.00") is None
        assert parse_price("4.12e2") is None
        assert parse_price(-412) is None


class TestFlightLabsSource:
    async def test_success(self):
        client = _client(_response(json={"success": True, "data": {"price": 389.0}}))
        source = FlightLabsSource(api_key="k", base_url="https://api.flightlabs.io/", client=client)

        result = await source.fetch_price(QUERY)

        assert result.success
        assert result.price == Decimal("389.0")
        url = client.get.call_args.args[0]
        params = client.get.call_args.kwargs["params"]
        assert url == "https://api.flightlabs.io/prices"
        assert params["flight_number"] == "DL1234"
        assert params["departure"] == "ATL"
        assert params["arrival"] == "LAX"
        assert params["date"] == "2026-12-01"

    async def test_unsuccessful_payload(self):
        client = _client(_response(json={"success": False}))
        result = await FlightLabsSource("k", "https://x", client=client).fetch_price(QUERY)

        assert not result.success

    async def test_infinite_price_is_not_a_fare(self):
        response = httpx.Response(
            200,
            content=b'{"success": true, "data": {"price": Infinity}}',
            headers={"content-type": "application/json"},
            request=httpx.Request("GET", "https://fares.test"),
        )
        client = _client(response)
        result = await FlightLabsSource("k", "https://x", client=client).fetch_price(QUERY)

        assert not result.success
        assert result.error == "No price in response"

    async def test_missing_price(self):
        client = _client(_response(json={"success": True, "data": {}}))
        result = await FlightLabsSource("k", "https://x", client=client).fetch_price(QUERY)

        assert result.error == "No price in response"

    async def test_timeout(self):
        client = _client(side_effect=httpx.ReadTimeout("slow"))
        result = await FlightLabsSource("k", "https://x", timeout=5.0, client=client).fetch_price(QUERY)

        assert not result.success
        assert result.error == "Timed out after 5.0s"

    async def test_http_error(self):
        client = _client(_response(status=503))
        result = await FlightLabsSource("k", "https://x", client=client).fetch_price(QUERY)

        assert result.error == "HTTP 503"

    async def test_no_key(self):
        source = FlightLabsSource(api_key="", base_url="https://x")
        assert not source.is_available()
        assert (await source.fetch_price(QUERY)).error == "API key not configured"


class TestSerpAPISource:
    async def test_picks_matching_flight(self):
        data = {
            "best_flights": [
                {"price": 250, "flights": [{"airline": "Delta", "flight_number": "DL 999"}]},
            ],
            "other_flights": [
                {"price": 330, "flights": [{"airline": "Delta", "flight_number": "DL 1234"}]},
            ],
        }
        client = _client(_response(json=data))
        result = await SerpAPISource(api_key="k", client=client).fetch_price(QUERY)

        assert result.success
        assert result.price == Decimal("330")
        params = client.get.call_args.kwargs["params"]
        assert params["engine"] == "google_flights"
        assert params["outbound_date"] == "2026-12-01"
        assert params["type"] == "2"

    async def test_flight_not_found(self):
        data = {"best_flights": [{"price": 250, "airline": "United", "flight_number": "UA1"}]}
        client = _client(_response(json=data))
        result = await SerpAPISource(api_key="k", client=client).fetch_price(QUERY)

        assert not result.success
        assert result.error == "Flight not found in results"

    def test_matches_top_level_fields(self):
        option = {"airline": "delta", "flight_number": "dl1234"}
        assert SerpAPISource.matches(option, QUERY)

    def test_does_not_match_other_number(self):
        option = {"flights": [{"airline": "Delta", "flight_number": "DL 12345"}]}
        assert not SerpAPISource.matches(option, QUERY)


class StubSource:
    def __init__(self, name, result=None, available=True, error=None):
        self.name = name
        self.timeout = 1.0
        self.result = result
        self.available = available
        self.error = error
        self.calls = 0

    def is_available(self):
        return self.available

    async def fetch_price(self, query):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result

    async def close(self):
        pass


class TestFareLookupClient:
    async def test_primary_wins(self):
        primary = StubSource("flightlabs", FareResult(success=True, price=Decimal("410"), source="flightlabs"))
        secondary = StubSource("serpapi", FareResult(success=True, price=Decimal("400"), source="serpapi"))

        price = await FareLookupClient([primary, secondary]).get_price(QUERY)

        assert price == Decimal("410")
        assert secondary.calls == 0

    async def test_falls_back_to_secondary(self):
        primary = StubSource("flightlabs", FareResult(success=False, source="flightlabs", error="Timed out after 5.0s"))
        secondary = StubSource("serpapi", FareResult(success=True, price=Decimal("400"), source="serpapi"))

        result = await FareLookupClient([primary, secondary]).lookup(QUERY)

        assert result.success
        assert result.source == "serpapi"

    async def test_malformed_primary_falls_through(self):
        response = httpx.Response(
            200,
            content=b'{"success": true, "data": {"price": Infinity}}',
            headers={"content-type": "application/json"},
            request=httpx.Request("GET", "https://fares.test"),
        )
        primary = FlightLabsSource("k", "https://x", client=_client(response))
        secondary = StubSource("serpapi", FareResult(success=True, price=Decimal("405"), source="serpapi"))

        price = await FareLookupClient([primary, secondary]).get_price(QUERY)

        assert price == Decimal("405")
        assert secondary.calls == 1

    async def test_unconfigured_source_skipped(self):
        primary = StubSource("flightlabs", available=False)
        secondary = StubSource("serpapi", FareResult(success=True, price=Decimal("400"), source="serpapi"))

        assert await FareLookupClient([primary, secondary]).get_price(QUERY) == Decimal("400")
        assert primary.calls == 0

    async def test_all_failed(self):
        primary = StubSource("flightlabs", FareResult(success=False, source="flightlabs", error="HTTP 500"))
        secondary = StubSource("serpapi", FareResult(success=False, source="serpapi", error="Flight not found in results"))

        client = FareLookupClient([primary, secondary])
        result = await client.lookup(QUERY)

        assert not result.success
        assert result.error == "All sources failed. Last: serpapi: Flight not found in results"
        assert await client.get_price(QUERY) is None

    async def test_source_exception_never_escapes(self):
        primary = StubSource("flightlabs", error=RuntimeError("kaboom"))

        assert await FareLookupClient([primary]).get_price(QUERY) is None

    async def test_no_sources_configured(self):
        client = FareLookupClient.from_settings(Settings(flightlabs_api_key="", serpapi_key=""))

        assert client.get_status()["total_available"] == 0
        assert await client.get_price(QUERY) is None

    def test_status(self):
        client = FareLookupClient.from_settings(Settings(flightlabs_api_key="a", serpapi_key=""))
        status = client.get_status()

        assert status["sources"]["flightlabs"] == {"available": True, "timeout": 5.0}
        assert status["sources"]["serpapi"]["available"] is False
        assert status["total_available"] == 1

    def test_query_from_flight(self, flight):
        query = FareQuery.for_flight(flight)
        assert query.flight_number == "DL1234"
        assert query.origin == "ATL"
