"""
Price check pass.

For every active flight: look up the current fare, append it to the ledger,
run the drop detector, and open an ecredit request when the fare is under
the booked price. Flights are handled one at a time and a failure on one is
logged and skipped; it never stops the pass.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from droptracker.models import EcreditRequest, Flight
from droptracker.services.drop_detector import evaluate
from droptracker.services.ecredit_requests import EcreditRequestManager
from droptracker.services.events import RequestEventBus
from droptracker.services.fare_lookup import FareLookupClient, FareQuery
from droptracker.services.flights import FlightService
from droptracker.services.price_ledger import PriceLedger

logger = logging.getLogger(__name__)


@dataclass
class FlightCheck:
    flight_id: int
    status: str  # unavailable, no_drop, drop
    price: Optional[Decimal] = None
    request: Optional[EcreditRequest] = None
    request_created: bool = False

    @property
    def is_drop(self) -> bool:
        return self.status == "drop"


class PriceMonitor:
    def __init__(
        self,
        db: Session,
        fare_client: FareLookupClient,
        events: Optional[RequestEventBus] = None,
    ):
        self.db = db
        self.fare_client = fare_client
        self.events = events
        self.ledger = PriceLedger(db)
        self.flights = FlightService(db, ledger=self.ledger)
        self.requests = EcreditRequestManager(db, events=events)

    def backfill_baselines(self) -> int:
        """Write the missing first observation for flights whose baseline insert failed."""
        missing = self.ledger.flights_missing_baseline()
        for flight in missing:
            logger.warning(f"Ledger gap: flight {flight.id} has no baseline, backfilling ${flight.original_price}")
            self.ledger.append(flight.id, flight.original_price)
        return len(missing)

    async def check_flight(self, flight: Flight) -> FlightCheck:
        price = await self.fare_client.get_price(FareQuery.for_flight(flight))
        if price is None:
            return FlightCheck(flight_id=flight.id, status="unavailable")

        observation = self.ledger.append(flight.id, price)
        evaluation = evaluate(flight, observation)

        if not evaluation.is_drop:
            return FlightCheck(flight_id=flight.id, status="no_drop", price=observation.price)

        candidate = evaluation.candidate
        logger.info(
            f"Price drop on flight {flight.id}: ${candidate.original_price} → ${candidate.new_price} "
            f"(${candidate.price_difference})"
        )
        request, created = self.requests.ensure_request(
            candidate.flight_id,
            candidate.original_price,
            candidate.new_price,
        )
        return FlightCheck(
            flight_id=flight.id,
            status="drop",
            price=observation.price,
            request=request,
            request_created=created,
        )

    async def check_all(self) -> dict:
        """
        Check every active flight.

        Returns summary: {checked, unavailable, drops, requests_created, backfilled, errors}
        """
        summary = {"checked": 0, "unavailable": 0, "drops": 0, "requests_created": 0, "backfilled": 0, "errors": 0}

        try:
            summary["backfilled"] = self.backfill_baselines()
            flights = self.flights.list_active_flights()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not load active flights, skipping price check: {e}")
            summary["errors"] += 1
            return summary

        if not flights:
            logger.info("No active flights to check")
            return summary

        logger.info(f"Checking prices for {len(flights)} active flights")

        for flight in flights:
            flight_id = flight.id
            try:
                result = await self.check_flight(flight)
                summary["checked"] += 1

                if result.status == "unavailable":
                    summary["unavailable"] += 1
                    logger.warning(f"No price available for flight {flight_id}")
                elif result.is_drop:
                    summary["drops"] += 1
                    if result.request_created:
                        summary["requests_created"] += 1

            except SQLAlchemyError as e:
                self.db.rollback()
                summary["errors"] += 1
                logger.error(f"Database error checking flight {flight_id}: {e}")
            except Exception as e:
                self.db.rollback()
                summary["errors"] += 1
                logger.error(f"Error checking flight {flight_id}: {e}")

            if self.events is not None:
                await self.events.dispatch()

        logger.info(f"Price check complete: {summary}")
        return summary
