"""Externally triggered batch passes (cron, ops tooling)."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Dict

from droptracker.database import get_db
from droptracker.scheduler import check_prices, process_ecredit_requests, get_scheduler_status

router = APIRouter()


@router.post("/check-prices")
async def trigger_price_check(db: Session = Depends(get_db)) -> Dict:
    return await check_prices(db)


@router.post("/process-ecredits")
async def trigger_ecredit_processing(db: Session = Depends(get_db)) -> Dict:
    return await process_ecredit_requests(db)


@router.get("/scheduler")
async def scheduler_status() -> Dict:
    return get_scheduler_status()
