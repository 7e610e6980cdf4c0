from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional


class FlightCreate(BaseModel):
    user_id: int
    airline: str = Field(..., min_length=2, max_length=30)
    flight_number: str = Field(..., min_length=1, max_length=10)
    origin: str = Field(..., min_length=3, max_length=3)
    destination: str = Field(..., min_length=3, max_length=3)
    departure_date: date
    original_price: Decimal = Field(..., gt=0)
    confirmation_code: Optional[str] = None
    booking_date: Optional[date] = None


class FlightUpdate(BaseModel):
    airline: Optional[str] = None
    flight_number: Optional[str] = None
    origin: Optional[str] = Field(None, min_length=3, max_length=3)
    destination: Optional[str] = Field(None, min_length=3, max_length=3)
    departure_date: Optional[date] = None
    original_price: Optional[Decimal] = Field(None, gt=0)
    confirmation_code: Optional[str] = None
    booking_date: Optional[date] = None


class FlightResponse(BaseModel):
    id: int
    user_id: int
    airline: str
    flight_number: str
    origin: str
    destination: str
    departure_date: date
    original_price: Decimal
    confirmation_code: Optional[str] = None
    booking_date: Optional[date] = None
    is_active: bool
    created_at: Optional[datetime] = None
    current_price: Optional[Decimal] = None

    class Config:
        from_attributes = True


class PriceObservationResponse(BaseModel):
    id: int
    flight_id: int
    price: Decimal
    observed_at: datetime

    class Config:
        from_attributes = True
