"""
Submitting ecredit requests to airlines.

Each airline gets an ``AirlineHandler`` holding its channels in priority
order. The handler stops at the first channel that succeeds; when all of
them fail, the last channel's error is what the request records.

Neither airline exposes a usable refund API today, so the channels shipped
here are simulations with configurable success rates and the same failure
vocabulary a real integration reports. Replacing one means writing a new
``SubmissionChannel``; nothing upstream changes.
"""
import asyncio
import enum
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from droptracker.config import Settings

logger = logging.getLogger(__name__)


class AutomationFailure(str, enum.Enum):
    """Failure reasons the consumer-site automation can report."""
    LOGIN_FAILED = "Unable to log in to airline account"
    FLIGHT_NOT_IN_ACCOUNT = "Flight not found in user account"
    INELIGIBLE_DIFFERENCE = "Price difference not eligible for ecredit"
    ALREADY_CREDITED = "Ecredit already issued for this flight"
    MODIFICATION_CLOSED = "Flight modification not available at this time"


@dataclass
class SubmissionResult:
    success: bool
    amount: Optional[Decimal] = None
    code: Optional[str] = None
    expiration: Optional[date] = None
    error: Optional[str] = None
    channel: Optional[str] = None

    @classmethod
    def failure(cls, error: str, channel: Optional[str] = None) -> "SubmissionResult":
        return cls(success=False, error=error, channel=channel)


@dataclass
class SubmissionContext:
    user: object
    flight: object
    request: object
    account_username: Optional[str] = None


def issue_credit(request, rng: random.Random, validity_days: int, channel: str) -> SubmissionResult:
    """Successful result for ``request``: full difference, fresh code, fixed validity."""
    return SubmissionResult(
        success=True,
        amount=Decimal(str(request.price_difference)),
        code=f"EC{rng.randint(0, 999999):06d}",
        expiration=date.today() + timedelta(days=validity_days),
        channel=channel,
    )


class SubmissionChannel(ABC):
    name: str = "base"
    timeout: float = 30.0
    requires_credentials: bool = False

    @abstractmethod
    async def request_credit(self, context: SubmissionContext) -> SubmissionResult:
        pass


class SimulatedApiChannel(SubmissionChannel):
    """Direct call to the airline's service. Authoritative, rarely available."""
    name = "api"

    def __init__(self, success_rate: float, validity_days: int, timeout: float = 15.0,
                 rng: Optional[random.Random] = None):
        self.success_rate = success_rate
        self.validity_days = validity_days
        self.timeout = timeout
        self.rng = rng or random.Random()

    async def request_credit(self, context: SubmissionContext) -> SubmissionResult:
        if self.rng.random() < self.success_rate:
            return issue_credit(context.request, self.rng, self.validity_days, self.name)
        return SubmissionResult.failure("Airline API not available or request failed", self.name)


class SimulatedAutomationChannel(SubmissionChannel):
    """Scripted session against the airline's consumer site, logged in as the user."""
    name = "automation"
    requires_credentials = True

    def __init__(self, success_rate: float, validity_days: int, timeout: float = 120.0,
                 rng: Optional[random.Random] = None, latency: float = 0.0):
        self.success_rate = success_rate
        self.validity_days = validity_days
        self.timeout = timeout
        self.rng = rng or random.Random()
        self.latency = latency

    async def request_credit(self, context: SubmissionContext) -> SubmissionResult:
        if self.latency:
            await asyncio.sleep(self.latency)

        if self.rng.random() < self.success_rate:
            return issue_credit(context.request, self.rng, self.validity_days, self.name)

        reason = self.rng.choice(list(AutomationFailure))
        return SubmissionResult.failure(reason.value, self.name)


class AirlineHandler:
    def __init__(self, airline: str, channels: List[SubmissionChannel]):
        self.airline = airline.lower()
        self.channels = channels

    async def _run_channel(self, channel: SubmissionChannel, context: SubmissionContext) -> SubmissionResult:
        try:
            result = await asyncio.wait_for(channel.request_credit(context), timeout=channel.timeout)
        except asyncio.TimeoutError:
            return SubmissionResult.failure(f"{channel.name} channel timed out after {channel.timeout}s", channel.name)
        except Exception as e:
            return SubmissionResult.failure(str(e) or f"{channel.name} channel error", channel.name)

        if result.channel is None:
            result.channel = channel.name
        return result

    async def submit(self, user, flight, request) -> SubmissionResult:
        username = user.linked_username(self.airline) if user is not None else None
        context = SubmissionContext(user=user, flight=flight, request=request, account_username=username)

        last = SubmissionResult.failure(f"No submission channels configured for {self.airline}")
        for channel in self.channels:
            if channel.requires_credentials and not username:
                logger.info(f"Request {request.id}: no linked {self.airline} account, cannot use {channel.name}")
                return SubmissionResult.failure(
                    f"Missing credentials: no linked {self.airline.title()} account on file",
                    channel.name,
                )

            logger.info(f"Request {request.id}: trying {self.airline} {channel.name} channel")
            last = await self._run_channel(channel, context)

            if last.success:
                logger.info(f"Request {request.id}: {channel.name} channel issued {last.code}")
                return last

            logger.info(f"Request {request.id}: {channel.name} channel failed: {last.error}")

        return last


class AirlineSubmissionProtocol:
    """Routes a request to the handler registered for the flight's airline."""

    def __init__(self, handlers: Dict[str, AirlineHandler]):
        self.handlers = {code.lower(): handler for code, handler in handlers.items()}

    @classmethod
    def from_settings(cls, settings: Settings, rng: Optional[random.Random] = None) -> "AirlineSubmissionProtocol":
        rng = rng or random.Random()
        delta = AirlineHandler("delta", [
            SimulatedApiChannel(
                success_rate=settings.api_channel_success_rate,
                validity_days=settings.ecredit_validity_days,
                timeout=settings.api_channel_timeout_seconds,
                rng=rng,
            ),
            SimulatedAutomationChannel(
                success_rate=settings.automation_channel_success_rate,
                validity_days=settings.ecredit_validity_days,
                timeout=settings.automation_channel_timeout_seconds,
                rng=rng,
            ),
        ])
        return cls({"delta": delta})

    def register(self, handler: AirlineHandler):
        self.handlers[handler.airline] = handler

    async def submit(self, user, flight, request) -> SubmissionResult:
        handler = self.handlers.get((flight.airline or "").lower())
        if handler is None:
            return SubmissionResult.failure(f"Airline {flight.airline} not supported")

        try:
            return await handler.submit(user, flight, request)
        except Exception as e:
            logger.error(f"Submission for request {request.id} crashed: {e}")
            return SubmissionResult.failure(str(e) or "Unknown error occurred")
