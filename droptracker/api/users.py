from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Dict

from droptracker.database import get_db
from droptracker.models import AirlineAccount, User
from droptracker.schemas import AirlineAccountLink, UserCreate, UserResponse

router = APIRouter()


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        email=email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone_number=payload.phone_number,
        notification_preference=payload.notification_preference,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: Session = Depends(get_db)):
    return _get_user_or_404(db, user_id)


@router.put("/{user_id}/airline-accounts", response_model=UserResponse)
async def link_airline_account(user_id: int, payload: AirlineAccountLink, db: Session = Depends(get_db)):
    """Link (or replace) the user's credentials for one airline."""
    user = _get_user_or_404(db, user_id)
    airline = payload.airline.strip().lower()

    account = db.query(AirlineAccount).filter(
        AirlineAccount.user_id == user.id,
        AirlineAccount.airline == airline,
    ).first()
    if account is None:
        account = AirlineAccount(user_id=user.id, airline=airline)
        db.add(account)

    account.username = payload.username.strip()
    account.secret_ref = payload.secret_ref
    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}/airline-accounts/{airline}")
async def unlink_airline_account(user_id: int, airline: str, db: Session = Depends(get_db)) -> Dict:
    _get_user_or_404(db, user_id)
    removed = db.query(AirlineAccount).filter(
        AirlineAccount.user_id == user_id,
        AirlineAccount.airline == airline.lower(),
    ).delete(synchronize_session=False)
    db.commit()
    if not removed:
        raise HTTPException(status_code=404, detail="No linked account for that airline")
    return {"status": "unlinked", "airline": airline.lower()}
