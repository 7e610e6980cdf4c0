from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from droptracker.database import Base
from droptracker.utils import utcnow


class Flight(Base):
    """
    A booked flight the owner wants watched for fare drops.

    ``original_price`` is the baseline every drop is measured against. It only
    changes when the owner edits the booking, and each edit is also written
    to the price history. Flights are deactivated, never deleted, so their
    history and ecredit requests stay auditable.
    """
    __tablename__ = "flights"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    airline = Column(String(30), nullable=False)  # lower-case airline code
    flight_number = Column(String(10), nullable=False)
    origin = Column(String(3), nullable=False)  # IATA code
    destination = Column(String(3), nullable=False)  # IATA code
    departure_date = Column(Date, nullable=False)

    original_price = Column(Numeric(10, 2), nullable=False)
    confirmation_code = Column(String(20), nullable=True)
    booking_date = Column(Date, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="flights")
    prices = relationship(
        "PriceObservation",
        back_populates="flight",
        order_by="PriceObservation.observed_at",
    )
    ecredit_requests = relationship(
        "EcreditRequest",
        back_populates="flight",
        order_by="desc(EcreditRequest.requested_at)",
    )

    @property
    def display_name(self) -> str:
        return f"{self.airline.title()} {self.flight_number} {self.origin}→{self.destination}"

    def __repr__(self) -> str:
        return f"<Flight {self.id}: {self.airline} {self.flight_number} on {self.departure_date}>"
