import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from app.core.mailer import DispatchError, DispatchResult, Transport
from app.core.settings import Settings
from app.lib.notifications import NotificationRenderer
from app.lib.validation import Submission, ValidationError, validate_submission

log = logging.getLogger("uvicorn.error")

SUCCESS_MESSAGE = "Message received! I'll get back to you soon."
FAILURE_MESSAGE = "Failed to send message. Please try again later."
VALIDATION_MESSAGE = "Validation failed"


class IntakeState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    NOTIFYING_ADMIN = "notifying_admin"
    NOTIFYING_SENDER = "notifying_sender"
    FAILED = "failed"
    RESPONDED = "responded"


@dataclass
class BestEffortOutcome:
    result: Optional[DispatchResult] = None
    error: Optional[DispatchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class IntakeOutcome:
    status_code: int
    body: Dict[str, Any]
    trail: List[IntakeState] = field(default_factory=list)
    acknowledgment: Optional[BestEffortOutcome] = None


class ContactIntake:
    """Validates a contact submission and relays it through the active transport."""

    def __init__(self, settings: Settings, transport: Transport, renderer: Optional[NotificationRenderer] = None):
        self.notification_email = settings.notification_email
        self.transport = transport
        self.renderer = renderer or NotificationRenderer(settings)

    async def handle_submission(self, raw: Mapping[str, Any]) -> IntakeOutcome:
        trail = [IntakeState.RECEIVED]

        try:
            submission = validate_submission(raw)
        except ValidationError as exc:
            trail += [IntakeState.FAILED, IntakeState.RESPONDED]
            return IntakeOutcome(
                status_code=400,
                body={
                    "success": False,
                    "message": VALIDATION_MESSAGE,
                    "errors": [e.as_dict() for e in exc.errors],
                },
                trail=trail,
            )
        trail.append(IntakeState.VALIDATED)

        admin_html, ack_html = self.renderer.render_both(submission, datetime.now(timezone.utc))

        trail.append(IntakeState.NOTIFYING_ADMIN)
        try:
            result = await self.transport.send(
                self.notification_email,
                f"Portfolio Contact: {submission.subject}",
                admin_html,
                reply_to=submission.email,
            )
        except DispatchError as exc:
            log.error(f"[contact] Admin notification failed via {exc.transport}: {exc.detail}")
            trail += [IntakeState.FAILED, IntakeState.RESPONDED]
            return IntakeOutcome(
                status_code=200,
                body={"success": False, "message": FAILURE_MESSAGE},
                trail=trail,
            )

        if not result.delivered:
            log.info(
                "[contact] Message received but not sent via email. "
                f"Name: {submission.name}, Email: {submission.email}, "
                f"Subject: {submission.subject}, Message: {submission.message}"
            )

        acknowledgment = None
        if self.transport.sends_acknowledgment:
            trail.append(IntakeState.NOTIFYING_SENDER)
            acknowledgment = await self._acknowledge(submission, ack_html)
        elif result.delivered:
            log.info(f"[contact] Auto-reply not sent to sender ({self.transport.name} is a third-party relay)")

        trail.append(IntakeState.RESPONDED)
        return IntakeOutcome(
            status_code=200,
            body={"success": True, "message": SUCCESS_MESSAGE},
            trail=trail,
            acknowledgment=acknowledgment,
        )

    async def _acknowledge(self, submission: Submission, html: str) -> BestEffortOutcome:
        # Best-effort: a transport failure is recorded on the outcome and never
        # changes the response. Anything that is not a DispatchError is a bug
        # and propagates.
        try:
            result = await self.transport.send(
                submission.email,
                f"Thank you for contacting me - {submission.subject}",
                html,
                reply_to=self.notification_email,
            )
        except DispatchError as exc:
            log.warning(f"[contact] Auto-reply failed ({exc.transport}): {exc.detail}")
            return BestEffortOutcome(error=exc)
        return BestEffortOutcome(result=result)
