from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Dict, List

from droptracker.database import get_db
from droptracker.models import Flight, User
from droptracker.schemas import (
    EcreditRequestResponse,
    FlightCreate,
    FlightResponse,
    FlightUpdate,
    PriceObservationResponse,
)
from droptracker.services.ecredit_requests import EcreditRequestManager
from droptracker.services.flights import FlightService
from droptracker.services.price_ledger import PriceLedger

router = APIRouter()


def _to_response(flight: Flight, ledger: PriceLedger) -> FlightResponse:
    response = FlightResponse.model_validate(flight)
    response.current_price = ledger.latest_price(flight.id)
    return response


def _get_flight_or_404(service: FlightService, flight_id: int) -> Flight:
    flight = service.get(flight_id)
    if not flight:
        raise HTTPException(status_code=404, detail="Flight not found")
    return flight


@router.post("", response_model=FlightResponse, status_code=201)
async def create_flight(payload: FlightCreate, db: Session = Depends(get_db)):
    if not db.query(User).filter(User.id == payload.user_id).first():
        raise HTTPException(status_code=404, detail="User not found")

    service = FlightService(db)
    flight = service.create_flight(**payload.model_dump())
    return _to_response(flight, service.ledger)


@router.get("", response_model=List[FlightResponse])
async def list_flights(
    user_id: int = Query(...),
    active_only: bool = Query(True),
    db: Session = Depends(get_db),
):
    service = FlightService(db)
    return [_to_response(f, service.ledger) for f in service.list_for_user(user_id, active_only=active_only)]


@router.get("/{flight_id}", response_model=FlightResponse)
async def get_flight(flight_id: int, db: Session = Depends(get_db)):
    service = FlightService(db)
    return _to_response(_get_flight_or_404(service, flight_id), service.ledger)


@router.patch("/{flight_id}", response_model=FlightResponse)
async def update_flight(flight_id: int, payload: FlightUpdate, db: Session = Depends(get_db)):
    service = FlightService(db)
    flight = service.update_flight(flight_id, **payload.model_dump(exclude_unset=True))
    if not flight:
        raise HTTPException(status_code=404, detail="Flight not found")
    return _to_response(flight, service.ledger)


@router.delete("/{flight_id}")
async def deactivate_flight(flight_id: int, db: Session = Depends(get_db)) -> Dict:
    if not FlightService(db).deactivate_flight(flight_id):
        raise HTTPException(status_code=404, detail="Flight not found")
    return {"status": "deactivated", "flight_id": flight_id}


@router.get("/{flight_id}/prices", response_model=List[PriceObservationResponse])
async def price_history(flight_id: int, db: Session = Depends(get_db)):
    service = FlightService(db)
    _get_flight_or_404(service, flight_id)
    return service.ledger.all(flight_id)


@router.get("/{flight_id}/ecredits", response_model=List[EcreditRequestResponse])
async def flight_ecredits(flight_id: int, db: Session = Depends(get_db)):
    _get_flight_or_404(FlightService(db), flight_id)
    return EcreditRequestManager(db).for_flight(flight_id)
