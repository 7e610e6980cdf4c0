from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Dict, List

from droptracker.database import get_db
from droptracker.schemas import NotificationResponse
from droptracker.services.notification import list_notifications, mark_all_read, mark_read

router = APIRouter()


@router.get("", response_model=List[NotificationResponse])
async def get_notifications(
    user_id: int = Query(...),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return list_notifications(db, user_id, unread_only=unread_only, limit=limit, offset=offset)


@router.post("/read-all")
async def read_all_notifications(user_id: int = Query(...), db: Session = Depends(get_db)) -> Dict:
    return {"updated": mark_all_read(db, user_id)}


@router.post("/{notification_id}/read")
async def read_notification(notification_id: int, db: Session = Depends(get_db)) -> Dict:
    if not mark_read(db, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"status": "read", "id": notification_id}
