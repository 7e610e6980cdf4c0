from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from droptracker.database import Base
from droptracker.utils import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone_number = Column(String(32), nullable=True)
    notification_preference = Column(String(20), default="email", nullable=False)  # email, sms, both

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    flights = relationship("Flight", back_populates="user")
    airline_accounts = relationship(
        "AirlineAccount",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def linked_username(self, airline: str):
        """Username of the linked account for ``airline``, or None."""
        airline = (airline or "").lower()
        for account in self.airline_accounts:
            if account.airline == airline and account.username and account.username.strip():
                return account.username.strip()
        return None

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email}>"


class AirlineAccount(Base):
    """
    Credentials a user has linked for an airline's consumer site.

    Only the username is needed to decide whether the automation channel can
    run; the secret itself is an opaque reference owned by whatever vault the
    deployment uses.
    """
    __tablename__ = "airline_accounts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    airline = Column(String(30), nullable=False)  # lower-case airline code, e.g. "delta"
    username = Column(String(255), nullable=False)
    secret_ref = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="airline_accounts")

    __table_args__ = (
        UniqueConstraint("user_id", "airline", name="uq_airline_account_user_airline"),
    )
