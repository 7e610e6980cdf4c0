"""
Ecredit request lifecycle.

    pending -> in_progress -> completed
       |            |
       +-> failed <-+

This manager is the only writer of ``EcreditRequest.status``. It guarantees
at most one pending/in-progress request per flight: ``create`` hands back the
open request instead of inserting a second one, and the partial unique index
on the table catches the case where two overlapping passes both try.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from droptracker.models import EcreditRequest, Flight, RequestStatus, OPEN_STATUSES
from droptracker.services.events import RequestEvent, RequestEventBus, RequestEventType
from droptracker.utils import utcnow

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

ALLOWED_TRANSITIONS: Dict[RequestStatus, Set[RequestStatus]] = {
    RequestStatus.PENDING: {RequestStatus.IN_PROGRESS, RequestStatus.FAILED},
    RequestStatus.IN_PROGRESS: {RequestStatus.COMPLETED, RequestStatus.FAILED},
    RequestStatus.COMPLETED: set(),
    RequestStatus.FAILED: set(),
}

UPDATABLE_FIELDS = {
    "completed_at",
    "ecredit_amount",
    "ecredit_code",
    "ecredit_expiration_date",
    "notes",
}


class InvalidStatusTransition(Exception):
    def __init__(self, request_id: int, current: str, target: str):
        self.request_id = request_id
        self.current = current
        self.target = target
        super().__init__(f"Ecredit request {request_id} cannot move from {current} to {target}")


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS)


class EcreditRequestManager:
    def __init__(self, db: Session, events: Optional[RequestEventBus] = None):
        self.db = db
        self.events = events

    # Queries

    def get(self, request_id: int) -> Optional[EcreditRequest]:
        return self.db.query(EcreditRequest).filter(EcreditRequest.id == request_id).first()

    def open_request_for_flight(self, flight_id: int) -> Optional[EcreditRequest]:
        return (
            self.db.query(EcreditRequest)
            .filter(
                EcreditRequest.flight_id == flight_id,
                EcreditRequest.status.in_(OPEN_STATUSES),
            )
            .order_by(EcreditRequest.requested_at.asc())
            .first()
        )

    def list_pending(self) -> List[EcreditRequest]:
        return (
            self.db.query(EcreditRequest)
            .filter(EcreditRequest.status == RequestStatus.PENDING.value)
            .order_by(EcreditRequest.requested_at.asc(), EcreditRequest.id.asc())
            .all()
        )

    def list_stale_in_progress(self, older_than: datetime) -> List[EcreditRequest]:
        return (
            self.db.query(EcreditRequest)
            .filter(
                EcreditRequest.status == RequestStatus.IN_PROGRESS.value,
                EcreditRequest.submission_started_at < older_than,
            )
            .order_by(EcreditRequest.submission_started_at.asc())
            .all()
        )

    def for_flight(self, flight_id: int) -> List[EcreditRequest]:
        return (
            self.db.query(EcreditRequest)
            .filter(EcreditRequest.flight_id == flight_id)
            .order_by(EcreditRequest.requested_at.desc(), EcreditRequest.id.desc())
            .all()
        )

    def for_user(self, user_id: int) -> List[EcreditRequest]:
        return (
            self.db.query(EcreditRequest)
            .join(Flight, EcreditRequest.flight_id == Flight.id)
            .filter(Flight.user_id == user_id)
            .order_by(EcreditRequest.requested_at.desc(), EcreditRequest.id.desc())
            .all()
        )

    # Creation

    def ensure_request(self, flight_id: int, original_price, new_price) -> Tuple[Optional[EcreditRequest], bool]:
        """
        Create a pending request unless one is already open for the flight.

        Returns ``(request, created)``. ``request`` is None when the price
        difference isn't positive; no row is written in that case.
        """
        original = _money(original_price)
        new = _money(new_price)
        difference = original - new

        if difference <= 0:
            logger.debug(f"No ecredit for flight {flight_id}: difference ${difference} is not positive")
            return None, False

        existing = self.open_request_for_flight(flight_id)
        if existing:
            logger.info(f"Flight {flight_id} already has open ecredit request {existing.id} ({existing.status})")
            return existing, False

        request = EcreditRequest(
            flight_id=flight_id,
            original_price=original,
            new_price=new,
            price_difference=difference,
            status=RequestStatus.PENDING.value,
        )
        self.db.add(request)
        try:
            self.db.commit()
        except IntegrityError:
            # Another pass opened one between our check and insert
            self.db.rollback()
            existing = self.open_request_for_flight(flight_id)
            if existing:
                logger.info(f"Lost creation race for flight {flight_id}; using request {existing.id}")
                return existing, False
            raise

        self.db.refresh(request)
        logger.info(f"Created ecredit request {request.id} for flight {flight_id}: ${difference}")
        self._publish(RequestEventType.CREATED, request)
        return request, True

    def create(self, flight_id: int, original_price, new_price) -> Optional[EcreditRequest]:
        request, _ = self.ensure_request(flight_id, original_price, new_price)
        return request

    # Transitions

    def update_status(self, request_id: int, status: RequestStatus, **fields) -> Optional[EcreditRequest]:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update ecredit request fields: {sorted(unknown)}")

        request = self.get(request_id)
        if request is None:
            return None

        target = RequestStatus(status)
        current = RequestStatus(request.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransition(request.id, current.value, target.value)

        now = utcnow()
        request.status = target.value
        if target == RequestStatus.IN_PROGRESS:
            request.submission_started_at = now
        if target == RequestStatus.COMPLETED:
            request.completed_at = fields.pop("completed_at", None) or now
        for name, value in fields.items():
            setattr(request, name, value)

        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Ecredit request {request.id}: {current.value} -> {target.value}")

        if target == RequestStatus.IN_PROGRESS:
            self._publish(RequestEventType.STARTED, request)
        elif target == RequestStatus.COMPLETED:
            self._publish(RequestEventType.COMPLETED, request)
        elif target == RequestStatus.FAILED:
            self._publish(RequestEventType.FAILED, request)
        return request

    def start_submission(self, request: EcreditRequest) -> Optional[EcreditRequest]:
        """
        Claim a pending request for submission.

        Compare-and-set on the status column, so if two passes overlap only
        one of them gets the request. Returns None for the loser.
        """
        claimed = (
            self.db.query(EcreditRequest)
            .filter(
                EcreditRequest.id == request.id,
                EcreditRequest.status == RequestStatus.PENDING.value,
            )
            .update(
                {
                    EcreditRequest.status: RequestStatus.IN_PROGRESS.value,
                    EcreditRequest.submission_started_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        self.db.refresh(request)

        if not claimed:
            logger.info(f"Ecredit request {request.id} already claimed ({request.status})")
            return None

        logger.info(f"Ecredit request {request.id}: pending -> in_progress")
        self._publish(RequestEventType.STARTED, request)
        return request

    def complete(self, request: EcreditRequest, amount, code: str, expiration: Optional[date]) -> EcreditRequest:
        return self.update_status(
            request.id,
            RequestStatus.COMPLETED,
            ecredit_amount=_money(amount),
            ecredit_code=code,
            ecredit_expiration_date=expiration,
        )

    def fail(self, request: EcreditRequest, notes: str) -> EcreditRequest:
        return self.update_status(request.id, RequestStatus.FAILED, notes=notes)

    def _publish(self, event_type: RequestEventType, request: EcreditRequest):
        if self.events is not None:
            self.events.publish(RequestEvent(type=event_type, request_id=request.id, flight_id=request.flight_id))
