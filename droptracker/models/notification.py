from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from droptracker.database import Base
from droptracker.utils import utcnow
import enum


class NotificationType(str, enum.Enum):
    PRICE_DROP = "price_drop"
    ECREDIT_SUCCESS = "ecredit_success"
    SYSTEM = "system"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
