"""
Ecredit reconciliation pass.

Claims each pending request, submits it through the airline protocol, and
records the outcome. Requests left in progress by a pass that died midway
are failed once they are older than the stale window, which frees the flight
for the next drop.
"""
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from droptracker.config import Settings, get_settings
from droptracker.models import EcreditRequest
from droptracker.services.airline_submission import AirlineSubmissionProtocol
from droptracker.services.ecredit_requests import EcreditRequestManager
from droptracker.services.events import RequestEventBus
from droptracker.utils import utcnow

logger = logging.getLogger(__name__)

INACTIVE_FLIGHT_NOTE = "Flight is no longer tracked"
INTERRUPTED_NOTE = "Submission interrupted before the airline responded"


class EcreditProcessor:
    def __init__(
        self,
        db: Session,
        protocol: AirlineSubmissionProtocol,
        events: Optional[RequestEventBus] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.protocol = protocol
        self.events = events
        self.settings = settings or get_settings()
        self.requests = EcreditRequestManager(db, events=events)

    async def process_request(self, request: EcreditRequest) -> str:
        """
        Drive one pending request to a terminal state.

        Returns the outcome: completed, failed or skipped (claimed elsewhere).
        """
        claimed = self.requests.start_submission(request)
        if claimed is None:
            return "skipped"

        # Only the pass holding the claim may fail the request
        flight = claimed.flight
        if flight is None or not flight.is_active:
            self.requests.fail(claimed, INACTIVE_FLIGHT_NOTE)
            return "failed"

        result = await self.protocol.submit(flight.user, flight, claimed)

        if result.success:
            self.requests.complete(claimed, result.amount, result.code, result.expiration)
            logger.info(f"Ecredit request {claimed.id} completed via {result.channel}: {result.code}")
            return "completed"

        self.requests.fail(claimed, result.error or "Submission failed")
        logger.warning(f"Ecredit request {claimed.id} failed: {result.error}")
        return "failed"

    def fail_stale_submissions(self) -> int:
        cutoff = utcnow() - timedelta(minutes=self.settings.stale_submission_minutes)
        stale = self.requests.list_stale_in_progress(cutoff)
        for request in stale:
            logger.warning(f"Ecredit request {request.id} stuck in progress since {request.submission_started_at}")
            self.requests.fail(request, INTERRUPTED_NOTE)
        return len(stale)

    async def process_pending(self) -> dict:
        """
        Process every pending request.

        Returns summary: {processed, completed, failed, skipped, stale_failed, errors}
        """
        summary = {"processed": 0, "completed": 0, "failed": 0, "skipped": 0, "stale_failed": 0, "errors": 0}

        try:
            summary["stale_failed"] = self.fail_stale_submissions()
            pending = self.requests.list_pending()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not load ecredit requests, skipping pass: {e}")
            summary["errors"] += 1
            return summary

        if self.events is not None:
            await self.events.dispatch()

        if not pending:
            logger.info("No pending ecredit requests")
            return summary

        logger.info(f"Processing {len(pending)} pending ecredit requests")

        for request in pending:
            request_id = request.id
            try:
                outcome = await self.process_request(request)
                summary["processed"] += 1
                summary[outcome] += 1
            except SQLAlchemyError as e:
                self.db.rollback()
                summary["errors"] += 1
                logger.error(f"Database error processing ecredit request {request_id}: {e}")
            except Exception as e:
                self.db.rollback()
                summary["errors"] += 1
                logger.error(f"Error processing ecredit request {request_id}: {e}")

            if self.events is not None:
                await self.events.dispatch()

        logger.info(f"Ecredit processing complete: {summary}")
        return summary
