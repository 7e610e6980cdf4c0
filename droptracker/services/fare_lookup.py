import httpx
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from droptracker.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FareQuery:
    airline: str
    flight_number: str
    origin: str
    destination: str
    departure_date: date

    @classmethod
    def for_flight(cls, flight) -> "FareQuery":
        return cls(
            airline=flight.airline,
            flight_number=flight.flight_number,
            origin=flight.origin,
            destination=flight.destination,
            departure_date=flight.departure_date,
        )

    @property
    def label(self) -> str:
        return f"{self.airline} {self.flight_number} {self.origin}-{self.destination} {self.departure_date}"


@dataclass
class FareResult:
    success: bool
    price: Optional[Decimal] = None
    source: str = "unknown"
    error: Optional[str] = None


PLAIN_AMOUNT = re.compile(r"^\d+(\.\d+)?$")


def parse_price(value) -> Optional[Decimal]:
    """
    Turn 412, 412.5, "412.50" or "$1,412" into a Decimal.

    Anything else (signs, exponents, Infinity, NaN, zero) is not a fare.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            price = Decimal(str(value))
        except InvalidOperation:
            return None
    else:
        cleaned = re.sub(r"[\s,$€£¥]", "", str(value))
        if not PLAIN_AMOUNT.match(cleaned):
            return None
        price = Decimal(cleaned)

    if not price.is_finite() or price <= 0:
        return None
    return price


def _normalize(value) -> str:
    return re.sub(r"\s+", "", str(value or "")).upper()


class FareSource(ABC):
    name: str = "base"
    timeout: float = 10.0

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    async def fetch_price(self, query: FareQuery) -> FareResult:
        pass

    async def _get(self, url: str, params: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, params=params, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, params=params)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class FlightLabsSource(FareSource):
    """Primary source: exact price for a flight number, short timeout."""
    name = "flightlabs"

    def __init__(self, api_key: str, base_url: str, timeout: float = 5.0, client=None):
        super().__init__(client)
        self.api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def fetch_price(self, query: FareQuery) -> FareResult:
        if not self.is_available():
            return FareResult(success=False, source=self.name, error="API key not configured")

        try:
            response = await self._get(
                f"{self.base_url}/prices",
                params={
                    "api_key": self.api_key,
                    "airline": query.airline,
                    "flight_number": query.flight_number,
                    "departure": query.origin,
                    "arrival": query.destination,
                    "date": query.departure_date.isoformat(),
                },
            )
            response.raise_for_status()
            data = response.json()

            if not isinstance(data, dict) or not data.get("success"):
                return FareResult(success=False, source=self.name, error="Unsuccessful response")

            payload = data.get("data") or {}
            price = parse_price(payload.get("price")) if isinstance(payload, dict) else None
            if price is None:
                return FareResult(success=False, source=self.name, error="No price in response")

            return FareResult(success=True, price=price, source=self.name)

        except httpx.TimeoutException:
            return FareResult(success=False, source=self.name, error=f"Timed out after {self.timeout}s")
        except httpx.HTTPStatusError as e:
            return FareResult(success=False, source=self.name, error=f"HTTP {e.response.status_code}")
        except Exception as e:
            return FareResult(success=False, source=self.name, error=str(e))


class SerpAPISource(FareSource):
    """
    Secondary source: Google Flights results via SerpAPI.

    The search returns every itinerary on the route, so the tracked flight has
    to be picked out by airline and flight number.
    """
    name = "serpapi"

    def __init__(self, api_key: str, timeout: float = 10.0, currency: str = "USD", client=None):
        super().__init__(client)
        self.api_key = api_key or ""
        self.timeout = timeout
        self.currency = currency

    def is_available(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def matches(option: dict, query: FareQuery) -> bool:
        want_airline = _normalize(query.airline)
        want_number = _normalize(query.flight_number)

        candidates = [option]
        legs = option.get("flights") or []
        if legs and isinstance(legs[0], dict):
            candidates.append(legs[0])

        for candidate in candidates:
            airline = _normalize(candidate.get("airline"))
            number = _normalize(candidate.get("flight_number"))
            if airline and number and airline == want_airline and number == want_number:
                return True
        return False

    async def fetch_price(self, query: FareQuery) -> FareResult:
        if not self.is_available():
            return FareResult(success=False, source=self.name, error="API key not configured")

        try:
            response = await self._get(
                "https://serpapi.com/search",
                params={
                    "engine": "google_flights",
                    "departure_id": query.origin,
                    "arrival_id": query.destination,
                    "outbound_date": query.departure_date.isoformat(),
                    "type": "2",  # one-way
                    "travel_class": "1",  # economy
                    "adults": 1,
                    "currency": self.currency,
                    "hl": "en",
                    "api_key": self.api_key,
                },
            )
            response.raise_for_status()
            data = response.json()

            options: List[dict] = []
            if isinstance(data, dict):
                options = (data.get("best_flights") or []) + (data.get("other_flights") or [])

            for option in options:
                if not isinstance(option, dict) or not self.matches(option, query):
                    continue
                price = parse_price(option.get("price"))
                if price is not None:
                    return FareResult(success=True, price=price, source=self.name)

            return FareResult(success=False, source=self.name, error="Flight not found in results")

        except httpx.TimeoutException:
            return FareResult(success=False, source=self.name, error=f"Timed out after {self.timeout}s")
        except httpx.HTTPStatusError as e:
            return FareResult(success=False, source=self.name, error=f"HTTP {e.response.status_code}")
        except Exception as e:
            return FareResult(success=False, source=self.name, error=str(e))


class FareLookupClient:
    """
    Ranked fare sources behind one call.

    ``get_price`` never raises: a source that times out, errors, or can't
    find the flight just hands over to the next one, and ``None`` means no
    source could price the flight this cycle.
    """

    def __init__(self, sources: List[FareSource]):
        self.sources = sources

    @classmethod
    def from_settings(cls, settings: Settings) -> "FareLookupClient":
        return cls([
            FlightLabsSource(
                api_key=settings.flightlabs_api_key,
                base_url=settings.flightlabs_base_url,
                timeout=settings.primary_fare_timeout_seconds,
            ),
            SerpAPISource(
                api_key=settings.serpapi_key,
                timeout=settings.secondary_fare_timeout_seconds,
                currency=settings.fare_currency,
            ),
        ])

    def get_status(self) -> dict:
        return {
            "sources": {s.name: {"available": s.is_available(), "timeout": s.timeout} for s in self.sources},
            "total_available": sum(1 for s in self.sources if s.is_available()),
        }

    async def lookup(self, query: FareQuery) -> FareResult:
        last_error = "No sources available"

        for source in self.sources:
            if not source.is_available():
                logger.debug(f"Skipping {source.name} - not configured")
                continue

            try:
                result = await source.fetch_price(query)
            except Exception as e:
                result = FareResult(success=False, source=source.name, error=str(e))

            if result.success:
                logger.info(f"{source.name} priced {query.label} at ${result.price}")
                return result

            logger.info(f"{source.name} could not price {query.label}: {result.error}")
            last_error = f"{source.name}: {result.error}"

        return FareResult(success=False, source="all_failed", error=f"All sources failed. Last: {last_error}")

    async def get_price(self, query: FareQuery) -> Optional[Decimal]:
        try:
            result = await self.lookup(query)
        except Exception as e:
            logger.error(f"Fare lookup crashed for {query.label}: {e}")
            return None
        return result.price if result.success else None

    async def close(self):
        for source in self.sources:
            await source.close()
