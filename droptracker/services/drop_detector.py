"""
Decides whether a fresh fare is a refund-eligible drop.

Drops are measured against the flight's original (booked) price, not the
previous observation. A fare still under the baseline counts as a drop on
every check, even if it crept up since yesterday; the request manager's
one-open-request rule keeps that from spawning duplicates.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class CandidateRequest:
    flight_id: int
    original_price: Decimal
    new_price: Decimal

    @property
    def price_difference(self) -> Decimal:
        return self.original_price - self.new_price


@dataclass(frozen=True)
class DropEvaluation:
    is_drop: bool
    candidate: Optional[CandidateRequest] = None

    @property
    def savings(self) -> Decimal:
        return self.candidate.price_difference if self.candidate else Decimal("0")


def evaluate(flight, observation) -> DropEvaluation:
    """Compare ``observation.price`` to ``flight.original_price``. Never persists."""
    original = Decimal(str(flight.original_price))
    new_price = Decimal(str(observation.price))

    if new_price >= original:
        return DropEvaluation(is_drop=False)

    return DropEvaluation(
        is_drop=True,
        candidate=CandidateRequest(
            flight_id=flight.id,
            original_price=original,
            new_price=new_price,
        ),
    )
