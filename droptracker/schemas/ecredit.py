from pydantic import BaseModel
from datetime import date, datetime
from decimal import Decimal
from typing import Optional


class EcreditRequestResponse(BaseModel):
    id: int
    flight_id: int
    original_price: Decimal
    new_price: Decimal
    price_difference: Decimal
    status: str
    is_open: bool
    requested_at: datetime
    submission_started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    ecredit_amount: Optional[Decimal] = None
    ecredit_code: Optional[str] = None
    ecredit_expiration_date: Optional[date] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True
