"""
Append-only price history per flight.

Observations are inserted and read, never updated or deleted, so any drop
decision can be replayed from the ledger.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from droptracker.models import Flight, PriceObservation

logger = logging.getLogger(__name__)


class PriceLedger:
    def __init__(self, db: Session):
        self.db = db

    def append(self, flight_id: int, price) -> PriceObservation:
        """Insert one observation and commit it."""
        observation = PriceObservation(flight_id=flight_id, price=Decimal(str(price)))
        self.db.add(observation)
        self.db.commit()
        self.db.refresh(observation)
        logger.debug(f"Recorded ${observation.price} for flight {flight_id}")
        return observation

    def latest(self, flight_id: int) -> Optional[PriceObservation]:
        return (
            self.db.query(PriceObservation)
            .filter(PriceObservation.flight_id == flight_id)
            .order_by(PriceObservation.observed_at.desc(), PriceObservation.id.desc())
            .first()
        )

    def latest_price(self, flight_id: int) -> Optional[Decimal]:
        observation = self.latest(flight_id)
        return observation.price if observation else None

    def all(self, flight_id: int) -> List[PriceObservation]:
        """Full history, oldest first."""
        return (
            self.db.query(PriceObservation)
            .filter(PriceObservation.flight_id == flight_id)
            .order_by(PriceObservation.observed_at.asc(), PriceObservation.id.asc())
            .all()
        )

    def record_baseline(self, flight: Flight) -> Optional[PriceObservation]:
        """
        Write the flight's original price as its first observation.

        A failure here leaves a gap in the ledger but doesn't invalidate the
        flight; the next price check backfills it.
        """
        try:
            return self.append(flight.id, flight.original_price)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Ledger gap: no baseline recorded for flight {flight.id}: {e}")
            return None

    def flights_missing_baseline(self) -> List[Flight]:
        """Active flights with no observations at all."""
        has_history = self.db.query(PriceObservation.flight_id).distinct()
        return (
            self.db.query(Flight)
            .filter(Flight.is_active == True)  # noqa: E712
            .filter(~Flight.id.in_(has_history))
            .all()
        )
