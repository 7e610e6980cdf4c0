from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, List
import logging
import httpx
from sqlalchemy.orm import Session

from droptracker.config import Settings, get_settings
from droptracker.models import EcreditRequest, Notification, NotificationType
from droptracker.services.events import RequestEvent, RequestEventType

logger = logging.getLogger(__name__)


@dataclass
class PriceDropSummary:
    airline: str
    flight_number: str
    origin: str
    destination: str
    original_price: Decimal
    new_price: Decimal

    @property
    def price_difference(self) -> Decimal:
        return Decimal(str(self.original_price)) - Decimal(str(self.new_price))


@dataclass
class EcreditSummary:
    airline: str
    flight_number: str
    ecredit_amount: Decimal
    ecredit_code: str
    ecredit_expiration_date: Optional[date] = None


@dataclass
class EcreditFailureSummary:
    airline: str
    flight_number: str
    price_difference: Decimal
    reason: str
    flight_active: bool = True


class NotificationDispatcher:
    """
    Tells users about drops and ecredit outcomes.

    Every notification is stored for the in-app list; when ntfy is enabled it
    is also pushed. Nothing here raises to the caller: a failed write or push
    is logged and the pipeline carries on.
    """

    # Priority mapping to ntfy priorities (1=min, 5=max)
    PRIORITY_MAP = {
        "min": "1",
        "low": "2",
        "default": "3",
        "high": "4",
        "urgent": "5",
    }

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=10.0)
        return self._http_client

    async def close(self):
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _send_to_ntfy(
        self,
        title: str,
        message: str,
        priority: str = "default",
        tags: Optional[List[str]] = None,
        click_url: Optional[str] = None,
    ) -> bool:
        """Send notification to ntfy server."""
        if not self.settings.ntfy_enabled:
            return False

        try:
            client = await self._get_client()
            url = f"{self.settings.ntfy_url}/{self.settings.ntfy_topic}"

            headers = {
                "Title": title,
                "Priority": self.PRIORITY_MAP.get(priority, "3"),
            }
            if tags:
                headers["Tags"] = ",".join(tags)
            if click_url:
                headers["Click"] = click_url

            response = await client.post(url, content=message.encode("utf-8"), headers=headers)

            if response.status_code == 200:
                logger.info(f"Notification pushed: {title}")
                return True
            logger.error(f"ntfy returned {response.status_code}: {response.text}")
            return False

        except httpx.ConnectError as e:
            logger.warning(f"Could not connect to ntfy server at {self.settings.ntfy_url}: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to push notification: {e}")
            return False

    def _record(self, user_id: int, type_: NotificationType, title: str, message: str) -> Optional[Notification]:
        try:
            notification = Notification(user_id=user_id, type=type_.value, title=title, message=message)
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
            return notification
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to store {type_.value} notification for user {user_id}: {e}")
            return None

    async def _deliver(self, user_id: int, type_: NotificationType, title: str, message: str,
                       priority: str, tags: List[str]) -> Optional[Notification]:
        notification = self._record(user_id, type_, title, message)
        await self._send_to_ntfy(
            title=title,
            message=message,
            priority=priority,
            tags=tags,
            click_url=f"{self.settings.base_url}/api/notifications?user_id={user_id}",
        )
        return notification

    async def notify_price_drop(self, user_id: int, summary: PriceDropSummary) -> Optional[Notification]:
        title = f"Price Drop: {summary.airline.title()} {summary.flight_number}"
        message = (
            f"Good news! The price for your flight from {summary.origin} to {summary.destination} "
            f"has dropped by ${summary.price_difference:.2f} (${summary.original_price:.2f} → "
            f"${summary.new_price:.2f}). We're automatically requesting an ecredit for the difference."
        )
        return await self._deliver(user_id, NotificationType.PRICE_DROP, title, message,
                                   priority="high", tags=["airplane", "chart_with_downwards_trend"])

    async def notify_ecredit_success(self, user_id: int, summary: EcreditSummary) -> Optional[Notification]:
        title = f"Ecredit Received: {summary.airline.title()} {summary.flight_number}"
        message = (
            f"Great news! We've received an ecredit of ${summary.ecredit_amount:.2f} for your "
            f"{summary.airline.title()} {summary.flight_number} flight. Your ecredit code is {summary.ecredit_code}."
        )
        if summary.ecredit_expiration_date:
            message += f" This ecredit expires on {summary.ecredit_expiration_date.isoformat()}."
        return await self._deliver(user_id, NotificationType.ECREDIT_SUCCESS, title, message,
                                   priority="high", tags=["moneybag", "white_check_mark"])

    async def notify_ecredit_failure(self, user_id: int, summary: EcreditFailureSummary) -> Optional[Notification]:
        title = f"Ecredit Request Failed: {summary.airline.title()} {summary.flight_number}"
        message = (
            f"We couldn't get an ecredit of ${summary.price_difference:.2f} for your "
            f"{summary.airline.title()} {summary.flight_number} flight.\nReason: {summary.reason}\n"
        )
        if summary.flight_active:
            message += "We'll try again if the price drops again."
        else:
            message += "This flight is no longer being tracked, so no further requests will be made."
        return await self._deliver(user_id, NotificationType.SYSTEM, title, message,
                                   priority="default", tags=["warning"])

    async def handle_event(self, event: RequestEvent):
        """RequestEventBus subscriber."""
        if event.type == RequestEventType.STARTED:
            # Nothing to tell the user until the airline answers
            return

        request = self.db.query(EcreditRequest).filter(EcreditRequest.id == event.request_id).first()
        if request is None or request.flight is None:
            logger.warning(f"Event {event.type.value} for unknown ecredit request {event.request_id}")
            return
        flight = request.flight

        if event.type == RequestEventType.CREATED:
            await self.notify_price_drop(flight.user_id, PriceDropSummary(
                airline=flight.airline,
                flight_number=flight.flight_number,
                origin=flight.origin,
                destination=flight.destination,
                original_price=request.original_price,
                new_price=request.new_price,
            ))
        elif event.type == RequestEventType.COMPLETED:
            await self.notify_ecredit_success(flight.user_id, EcreditSummary(
                airline=flight.airline,
                flight_number=flight.flight_number,
                ecredit_amount=request.ecredit_amount,
                ecredit_code=request.ecredit_code,
                ecredit_expiration_date=request.ecredit_expiration_date,
            ))
        elif event.type == RequestEventType.FAILED:
            await self.notify_ecredit_failure(flight.user_id, EcreditFailureSummary(
                airline=flight.airline,
                flight_number=flight.flight_number,
                price_difference=request.price_difference,
                reason=request.notes or "Unknown error",
                flight_active=bool(flight.is_active),
            ))


def list_notifications(db: Session, user_id: int, unread_only: bool = False,
                       limit: int = 50, offset: int = 0) -> List[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read == False)  # noqa: E712
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


def mark_read(db: Session, notification_id: int) -> bool:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if notification is None:
        return False
    notification.read = True
    db.commit()
    return True


def mark_all_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return updated
