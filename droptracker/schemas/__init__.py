from droptracker.schemas.flight import (
    FlightCreate,
    FlightUpdate,
    FlightResponse,
    PriceObservationResponse,
)
from droptracker.schemas.ecredit import EcreditRequestResponse
from droptracker.schemas.user import UserCreate, UserResponse, AirlineAccountLink, AirlineAccountResponse
from droptracker.schemas.notification import NotificationResponse

__all__ = [
    "FlightCreate",
    "FlightUpdate",
    "FlightResponse",
    "PriceObservationResponse",
    "EcreditRequestResponse",
    "UserCreate",
    "UserResponse",
    "AirlineAccountLink",
    "AirlineAccountResponse",
    "NotificationResponse",
]
