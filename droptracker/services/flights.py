import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from droptracker.models import Flight
from droptracker.services.price_ledger import PriceLedger

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "airline",
    "flight_number",
    "origin",
    "destination",
    "departure_date",
    "original_price",
    "confirmation_code",
    "booking_date",
}


class FlightService:
    def __init__(self, db: Session, ledger: Optional[PriceLedger] = None):
        self.db = db
        self.ledger = ledger or PriceLedger(db)

    def get(self, flight_id: int) -> Optional[Flight]:
        return self.db.query(Flight).filter(Flight.id == flight_id).first()

    def list_active_flights(self) -> List[Flight]:
        return (
            self.db.query(Flight)
            .filter(Flight.is_active == True)  # noqa: E712
            .order_by(Flight.id.asc())
            .all()
        )

    def list_for_user(self, user_id: int, active_only: bool = True) -> List[Flight]:
        query = self.db.query(Flight).filter(Flight.user_id == user_id)
        if active_only:
            query = query.filter(Flight.is_active == True)  # noqa: E712
        return query.order_by(Flight.departure_date.asc(), Flight.id.asc()).all()

    def create_flight(self, user_id: int, airline: str, flight_number: str, origin: str,
                      destination: str, departure_date, original_price,
                      confirmation_code: Optional[str] = None, booking_date=None) -> Flight:
        """Store the booking, then its original price as the first observation."""
        flight = Flight(
            user_id=user_id,
            airline=airline.strip().lower(),
            flight_number=flight_number.strip().upper(),
            origin=origin.strip().upper(),
            destination=destination.strip().upper(),
            departure_date=departure_date,
            original_price=Decimal(str(original_price)),
            confirmation_code=confirmation_code,
            booking_date=booking_date,
        )
        self.db.add(flight)
        self.db.commit()
        self.db.refresh(flight)
        logger.info(f"Tracking flight {flight.id}: {flight.display_name} at ${flight.original_price}")

        self.ledger.record_baseline(flight)
        return flight

    def update_flight(self, flight_id: int, **changes) -> Optional[Flight]:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit flight fields: {sorted(unknown)}")

        flight = self.get(flight_id)
        if flight is None:
            return None

        new_price = changes.pop("original_price", None)
        for name, value in changes.items():
            if value is None:
                continue
            if name == "airline":
                value = value.strip().lower()
            elif name in ("flight_number", "origin", "destination"):
                value = value.strip().upper()
            setattr(flight, name, value)

        if new_price is not None:
            flight.original_price = Decimal(str(new_price))

        self.db.commit()
        self.db.refresh(flight)

        if new_price is not None:
            # A re-priced booking is also a price point in its history
            self.ledger.append(flight.id, flight.original_price)
            logger.info(f"Flight {flight.id} baseline changed to ${flight.original_price}")

        return flight

    def deactivate_flight(self, flight_id: int) -> bool:
        flight = self.get(flight_id)
        if flight is None:
            return False
        flight.is_active = False
        self.db.commit()
        logger.info(f"Stopped tracking flight {flight_id}")
        return True
