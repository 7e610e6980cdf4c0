# SQLAlchemy models
from droptracker.models.user import User, AirlineAccount
from droptracker.models.flight import Flight
from droptracker.models.price_observation import PriceObservation
from droptracker.models.ecredit_request import EcreditRequest, RequestStatus, OPEN_STATUSES
from droptracker.models.notification import Notification, NotificationType

__all__ = [
    "User",
    "AirlineAccount",
    "Flight",
    "PriceObservation",
    "EcreditRequest",
    "Notification",
    # Enums
    "RequestStatus",
    "NotificationType",
    "OPEN_STATUSES",
]
