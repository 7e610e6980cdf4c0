from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from droptracker.database import get_db
from droptracker.schemas import EcreditRequestResponse
from droptracker.services.ecredit_requests import EcreditRequestManager

router = APIRouter()


@router.get("", response_model=List[EcreditRequestResponse])
async def list_ecredits(user_id: int = Query(...), db: Session = Depends(get_db)):
    return EcreditRequestManager(db).for_user(user_id)


@router.get("/{request_id}", response_model=EcreditRequestResponse)
async def get_ecredit(request_id: int, db: Session = Depends(get_db)):
    request = EcreditRequestManager(db).get(request_id)
    if not request:
        raise HTTPException(status_code=404, detail="Ecredit request not found")
    return request
