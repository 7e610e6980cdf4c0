from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, ForeignKey, Text, Index, text
from sqlalchemy.orm import relationship
from droptracker.database import Base
from droptracker.utils import utcnow
import enum


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


OPEN_STATUSES = (RequestStatus.PENDING.value, RequestStatus.IN_PROGRESS.value)

_OPEN_STATUS_CLAUSE = text("status IN ('pending', 'in_progress')")


class EcreditRequest(Base):
    """
    A refund-as-credit request raised after a fare drop.

    ``original_price`` is a snapshot of the baseline the drop was measured
    against, so later edits to the flight don't rewrite history. The partial
    unique index keeps a flight to one pending/in-progress request even when
    two passes race each other.
    """
    __tablename__ = "ecredit_requests"

    id = Column(Integer, primary_key=True, index=True)
    flight_id = Column(Integer, ForeignKey("flights.id"), nullable=False, index=True)

    original_price = Column(Numeric(10, 2), nullable=False)
    new_price = Column(Numeric(10, 2), nullable=False)
    price_difference = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), default=RequestStatus.PENDING.value, nullable=False, index=True)

    requested_at = Column(DateTime, default=utcnow, nullable=False)
    submission_started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    ecredit_amount = Column(Numeric(10, 2), nullable=True)
    ecredit_code = Column(String(32), nullable=True)
    ecredit_expiration_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    flight = relationship("Flight", back_populates="ecredit_requests")

    __table_args__ = (
        Index(
            "uq_ecredit_requests_open_per_flight",
            "flight_id",
            unique=True,
            sqlite_where=_OPEN_STATUS_CLAUSE,
            postgresql_where=_OPEN_STATUS_CLAUSE,
        ),
    )

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def __repr__(self) -> str:
        return f"<EcreditRequest {self.id}: flight {self.flight_id} ${self.price_difference} {self.status}>"
