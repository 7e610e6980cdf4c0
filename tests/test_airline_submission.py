"""Tests for airline submission channels and routing."""
import asyncio
import pytest
from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

from droptracker.config import Settings
from droptracker.models import AirlineAccount, User
from droptracker.services.airline_submission import (
    AirlineHandler,
    AirlineSubmissionProtocol,
    AutomationFailure,
    SimulatedApiChannel,
    SimulatedAutomationChannel,
    SubmissionChannel,
    SubmissionResult,
)


def _rng(roll: float, code: int = 123456, choice_index: int = 0):
    rng = MagicMock()
    rng.random.return_value = roll
    rng.randint.return_value = code
    rng.choice.side_effect = lambda seq: seq[choice_index]
    return rng


def _user(username="srivera"):
    accounts = [AirlineAccount(airline="delta", username=username)] if username else []
    return User(email="t@example.com", airline_accounts=accounts)


def _flight(airline="delta"):
    return SimpleNamespace(id=1, airline=airline, flight_number="DL1234")


def _request(difference="50.00"):
    return SimpleNamespace(id=9, price_difference=Decimal(difference))


class RecordingChannel(SubmissionChannel):
    def __init__(self, name, result=None, requires_credentials=False, delay=0.0, timeout=1.0, error=None):
        self.name = name
        self.result = result
        self.requires_credentials = requires_credentials
        self.delay = delay
        self.timeout = timeout
        self.error = error
        self.calls = 0

    async def request_credit(self, context):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result


class TestSimulatedChannels:
    async def test_api_success_issues_full_difference(self):
        channel = SimulatedApiChannel(success_rate=0.1, validity_days=365, rng=_rng(0.05, code=42))
        result = await channel.request_credit(SimpleNamespace(request=_request("77.54")))

        assert result.success
        assert result.amount == Decimal("77.54")
        assert result.code == "EC000042"
        assert result.expiration == date.today() + timedelta(days=365)
        assert result.channel == "api"

    async def test_api_failure_message(self):
        channel = SimulatedApiChannel(success_rate=0.1, validity_days=365, rng=_rng(0.5))
        result = await channel.request_credit(SimpleNamespace(request=_request()))

        assert not result.success
        assert result.error == "Airline API not available or request failed"

    async def test_automation_failures_use_fixed_vocabulary(self):
        for index, reason in enumerate(AutomationFailure):
            channel = SimulatedAutomationChannel(
                success_rate=0.7, validity_days=365, rng=_rng(0.95, choice_index=index)
            )
            result = await channel.request_credit(SimpleNamespace(request=_request()))
            assert not result.success
            assert result.error == reason.value

    async def test_automation_success(self):
        channel = SimulatedAutomationChannel(success_rate=0.7, validity_days=365, rng=_rng(0.2, code=7))
        result = await channel.request_credit(SimpleNamespace(request=_request()))

        assert result.success
        assert result.code == "EC000007"
        assert result.channel == "automation"

    async def test_zero_rate_never_succeeds(self):
        channel = SimulatedApiChannel(success_rate=0.0, validity_days=365, rng=_rng(0.0))
        assert not (await channel.request_credit(SimpleNamespace(request=_request()))).success


class TestAirlineHandler:
    async def test_api_success_skips_automation(self):
        ok = SubmissionResult(success=True, amount=Decimal("50.00"), code="EC1", expiration=date.today())
        api = RecordingChannel("api", result=ok)
        automation = RecordingChannel("automation", result=ok, requires_credentials=True)

        result = await AirlineHandler("delta", [api, automation]).submit(_user(), _flight(), _request())

        assert result.success
        assert result.channel == "api"
        assert api.calls == 1
        assert automation.calls == 0

    async def test_falls_back_to_automation(self):
        api = RecordingChannel("api", result=SubmissionResult.failure("Airline API not available or request failed"))
        ok = SubmissionResult(success=True, amount=Decimal("50.00"), code="EC2", expiration=date.today())
        automation = RecordingChannel("automation", result=ok, requires_credentials=True)

        result = await AirlineHandler("delta", [api, automation]).submit(_user(), _flight(), _request())

        assert result.success
        assert result.code == "EC2"
        assert result.channel == "automation"

    async def test_missing_credentials_fails_without_attempt(self):
        api = RecordingChannel("api", result=SubmissionResult.failure("Airline API not available or request failed"))
        automation = RecordingChannel("automation", requires_credentials=True)

        result = await AirlineHandler("delta", [api, automation]).submit(_user(None), _flight(), _request())

        assert not result.success
        assert result.error == "Missing credentials: no linked Delta account on file"
        assert automation.calls == 0

    async def test_blank_username_counts_as_missing(self):
        automation = RecordingChannel("automation", requires_credentials=True)
        result = await AirlineHandler("delta", [automation]).submit(_user("   "), _flight(), _request())

        assert result.error.startswith("Missing credentials")

    async def test_last_failure_is_reported(self):
        api = RecordingChannel("api", result=SubmissionResult.failure("Airline API not available or request failed"))
        automation = RecordingChannel(
            "automation",
            result=SubmissionResult.failure(AutomationFailure.MODIFICATION_CLOSED.value),
            requires_credentials=True,
        )

        result = await AirlineHandler("delta", [api, automation]).submit(_user(), _flight(), _request())

        assert result.error == "Flight modification not available at this time"

    async def test_channel_timeout(self):
        slow = RecordingChannel("api", result=SubmissionResult(success=True), delay=0.5, timeout=0.01)

        result = await AirlineHandler("delta", [slow]).submit(_user(), _flight(), _request())

        assert not result.success
        assert result.error == "api channel timed out after 0.01s"

    async def test_channel_exception_becomes_failure(self):
        broken = RecordingChannel("api", error=RuntimeError("socket closed"))

        result = await AirlineHandler("delta", [broken]).submit(_user(), _flight(), _request())

        assert not result.success
        assert result.error == "socket closed"


class TestAirlineSubmissionProtocol:
    async def test_unsupported_airline(self):
        protocol = AirlineSubmissionProtocol.from_settings(Settings(), rng=_rng(0.0))
        result = await protocol.submit(_user(), _flight("united"), _request())

        assert not result.success
        assert result.error == "Airline united not supported"

    async def test_routes_by_airline_case_insensitively(self):
        protocol = AirlineSubmissionProtocol.from_settings(Settings(), rng=_rng(0.0, code=5))
        result = await protocol.submit(_user(), _flight("DELTA"), _request())

        assert result.success
        assert result.code == "EC000005"

    async def test_register_adds_airline(self):
        protocol = AirlineSubmissionProtocol({})
        before = await protocol.submit(_user(), _flight("american"), _request())
        assert before.error == "Airline american not supported"

        ok = SubmissionResult(success=True, amount=Decimal("50.00"), code="EC3", expiration=date.today())
        protocol.register(AirlineHandler("American", [RecordingChannel("api", result=ok)]))

        after = await protocol.submit(_user(), _flight("american"), _request())
        assert after.success
        assert after.code == "EC3"

    async def test_handler_crash_is_contained(self):
        handler = MagicMock()
        handler.submit.side_effect = RuntimeError("boom")
        protocol = AirlineSubmissionProtocol({"delta": handler})

        result = await protocol.submit(_user(), _flight(), _request())

        assert not result.success
        assert result.error == "boom"

    async def test_empty_handler_reports_no_channels(self):
        protocol = AirlineSubmissionProtocol({"delta": AirlineHandler("delta", [])})
        result = await protocol.submit(_user(), _flight(), _request())

        assert result.error == "No submission channels configured for delta"
