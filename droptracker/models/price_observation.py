from sqlalchemy import Column, Integer, DateTime, Numeric, ForeignKey, Index
from sqlalchemy.orm import relationship
from droptracker.database import Base
from droptracker.utils import utcnow


class PriceObservation(Base):
    """
    One fare seen for a flight at a point in time.

    Rows are only ever inserted. The newest row is the flight's current price
    and the full series is the audit trail every drop decision comes from.
    """
    __tablename__ = "price_history"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    flight_id = Column(Integer, ForeignKey("flights.id"), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    observed_at = Column(DateTime, default=utcnow, nullable=False)

    flight = relationship("Flight", back_populates="prices")

    __table_args__ = (
        Index("ix_price_history_flight_time", "flight_id", "observed_at"),
    )

    def __repr__(self) -> str:
        return f"<PriceObservation {self.id}: ${self.price} on {self.observed_at}>"
