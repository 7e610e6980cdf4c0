from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Literal, Optional


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    notification_preference: Literal["email", "sms", "both"] = "email"


class AirlineAccountLink(BaseModel):
    airline: str = Field(..., min_length=2, max_length=30)
    username: str = Field(..., min_length=1, max_length=255)
    secret_ref: Optional[str] = None


class AirlineAccountResponse(BaseModel):
    airline: str
    username: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    notification_preference: str
    airline_accounts: List[AirlineAccountResponse] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
