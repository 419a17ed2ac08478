"""
Notification Service

Turns booking events into emails. `notify` returns immediately: delivery
runs on a background worker and its failures are only logged, so a booking
that already committed is never unwound by a mail problem.
"""

import asyncio
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from mockbook.config import Config
from mockbook.schemas.common import NotificationEvent
from mockbook.services.email_service import EmailService, format_when
from mockbook.utils.logger import get_logger
from mockbook.utils.metrics import NOTIFICATIONS_FAILED

logger = get_logger(__name__)


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    heading: str
    name: str
    paragraphs: List[str]
    details: Dict[str, str]
    cc: Sequence[str] = field(default_factory=tuple)
    color: str = "#002cf2"


def _wants_email(user: Optional[Dict[str, Any]]) -> bool:
    return bool(user and user.get("email")) and user.get("email_notifications", True) is not False


def _interview_details(interview: Dict[str, Any], other_label: str, other: Optional[Dict[str, Any]]) -> Dict[str, str]:
    details = {
        "Interview Type": interview.get("interview_type", ""),
        "Date": format_when(interview.get("scheduled_date")),
        "Duration": f"{interview.get('duration')} minutes",
        "Price": f"{interview.get('currency', '')} {interview.get('price', '')}".strip(),
        "Meeting Link": interview.get("meeting_link") or "",
    }
    if other:
        details[other_label] = f"{other.get('name', '')} ({other.get('email', '')})"
    return details


class NotificationService:
    """Fire-and-forget notifier backed by EmailService"""

    def __init__(self, config: Config, email_service: EmailService, executor: Optional[Executor] = None):
        self.config = config
        self.email_service = email_service
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="notify")

    def notify(self, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        """Queue delivery of `event`; never raises."""
        try:
            self._executor.submit(self._deliver_safely, NotificationEvent(event), payload)
        except Exception as e:
            NOTIFICATIONS_FAILED.labels(event=getattr(event, "value", str(event))).inc()
            logger.error(f"[NotificationService] Could not queue {event}: {e}")

    def _deliver_safely(self, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        try:
            asyncio.run(self.deliver(event, payload))
        except Exception as e:
            NOTIFICATIONS_FAILED.labels(event=event.value).inc()
            logger.error(f"[NotificationService] Delivery of {event.value} failed: {e}", exc_info=True)

    async def deliver(self, event: NotificationEvent, payload: Dict[str, Any]) -> int:
        """Send every email the event calls for; returns how many were sent."""
        sent = 0
        for mail in self.build_emails(event, payload):
            ok, error = await self.email_service.send_email(
                to_email=mail.to,
                subject=mail.subject,
                html_content=self.email_service.render(mail.heading, mail.name, mail.paragraphs, mail.details, mail.color),
                text_content=EmailService.render_text(mail.name, mail.paragraphs, mail.details),
                cc=mail.cc,
            )
            if ok:
                sent += 1
            else:
                NOTIFICATIONS_FAILED.labels(event=event.value).inc()
                logger.warning(f"[NotificationService] {event.value} email to {mail.to} not sent: {error}")
        return sent

    def build_emails(self, event: NotificationEvent, payload: Dict[str, Any]) -> List[OutgoingEmail]:
        builder = {
            NotificationEvent.BOOKING_CONFIRMED: self._booking_confirmed,
            NotificationEvent.BOOKING_CANCELLED: self._booking_cancelled,
            NotificationEvent.PAYMENT_SUBMITTED: self._payment_submitted,
            NotificationEvent.PAYMENT_VERIFIED: self._payment_verified,
            NotificationEvent.INTERVIEW_REMINDER: self._reminder,
            NotificationEvent.FEEDBACK_SUBMITTED: self._feedback_submitted,
            NotificationEvent.RATING_SUBMITTED: self._rating_submitted,
        }[NotificationEvent(event)]
        return builder(payload)

    # ------------------------------------------------------------------ per event

    def _admin_cc(self, payload: Dict[str, Any]) -> List[str]:
        admin_email = payload.get("admin_email") or self.config.booking.admin_email
        return [admin_email] if admin_email else []

    def _booking_confirmed(self, payload: Dict[str, Any]) -> List[OutgoingEmail]:
        interview, candidate, interviewer = payload["interview"], payload.get("candidate"), payload.get("interviewer")
        mails = []
        if _wants_email(candidate):
            mails.append(OutgoingEmail(
                to=candidate["email"],
                subject="Your mock interview is booked",
                heading="🎯 Your Interview is Scheduled!",
                name=candidate.get("name", ""),
                paragraphs=["Your mock interview has been booked. The details are below."],
                details=_interview_details(interview, "Interviewer", interviewer),
                cc=self._admin_cc(payload),
            ))
        if _wants_email(interviewer):
            mails.append(OutgoingEmail(
                to=interviewer["email"],
                subject=f"New interview booked: {candidate.get('name', 'a candidate') if candidate else 'a candidate'}",
                heading="New Interview Booking",
                name=interviewer.get("name", ""),
                paragraphs=["A candidate has booked a mock interview with you."],
                details=_interview_details(interview, "Candidate", candidate),
            ))
        return mails

    def _booking_cancelled(self, payload: Dict[str, Any]) -> List[OutgoingEmail]:
        interview, candidate, interviewer = payload["interview"], payload.get("candidate"), payload.get("interviewer")
        cancelled_by = payload.get("cancelled_by") or "candidate"
        mails = []
        if _wants_email(interviewer):
            mails.append(OutgoingEmail(
                to=interviewer["email"],
                subject="Interview cancelled",
                heading="Interview Cancellation",
                name=interviewer.get("name", ""),
                paragraphs=[f"An interview you were scheduled to conduct was cancelled by the {cancelled_by}."],
                details=_interview_details(interview, "Candidate", candidate),
                color="#e74c3c",
            ))
        if _wants_email(candidate):
            mails.append(OutgoingEmail(
                to=candidate["email"],
                subject="Your mock interview was cancelled",
                heading="Interview Cancelled",
                name=candidate.get("name", ""),
                paragraphs=[
                    f"Your mock interview was cancelled by the {cancelled_by}.",
                    "If you already paid, our team will get in touch about the refund.",
                ],
                details=_interview_details(interview, "Interviewer", interviewer),
                color="#e74c3c",
            ))
        for admin_email in self._admin_cc(payload):
            if interviewer and admin_email == interviewer.get("email"):
                continue
            mails.append(OutgoingEmail(
                to=admin_email,
                subject="[ADMIN] Interview cancellation",
                heading="Interview Cancellation (Admin Notification)",
                name="Admin",
                paragraphs=[f"An interview has been cancelled by the {cancelled_by}."],
                details={
                    **_interview_details(interview, "Candidate", candidate),
                    "Interviewer": f"{interviewer.get('name', '')} ({interviewer.get('email', '')})" if interviewer else "",
                },
                color="#e74c3c",
            ))
        return mails

    def _payment_submitted(self, payload: Dict[str, Any]) -> List[OutgoingEmail]:
        interview, candidate, interviewer = payload["interview"], payload.get("candidate"), payload.get("interviewer")
        payment = payload.get("payment") or {}
        if not _wants_email(interviewer):
            return []
        details = _interview_details(interview, "Candidate", candidate)
        details.update({
            "Amount": f"{payment.get('currency', '')} {payment.get('amount', '')}".strip(),
            "UPI Reference (last 4)": payment.get("transaction_id") or "",
            "Screenshot": payment.get("screenshot_url") or "",
        })
        return [OutgoingEmail(
            to=interviewer["email"],
            subject="Payment verification required",
            heading="Payment Proof Submitted",
            name=interviewer.get("name", ""),
            paragraphs=["A candidate submitted UPI payment proof. Please verify it from your dashboard."],
            details=details,
            cc=self._admin_cc(payload),
        )]

    def _payment_verified(self, payload: Dict[str, Any]) -> List[OutgoingEmail]:
        interview, candidate, interviewer = payload["interview"], payload.get("candidate"), payload.get("interviewer")
        payment = payload.get("payment") or {}
        if not _wants_email(candidate):
            return []
        details = _interview_details(interview, "Interviewer", interviewer)
        details["Amount"] = f"{payment.get('currency', '')} {payment.get('amount', '')}".strip()
        return [OutgoingEmail(
            to=candidate["email"],
            subject="Payment verified",
            heading="✅ Payment Verified",
            name=candidate.get("name", ""),
            paragraphs=["Your payment has been verified. See you at the interview!"],
            details=details,
            cc=self._admin_cc(payload),
            color="#27ae60",
        )]

    def _reminder(self, payload: Dict[str, Any]) -> List[OutgoingEmail]:
        interview, candidate, interviewer = payload["interview"], payload.get("candidate"), payload.get("interviewer")
        lead = self.config.booking.reminder_lead_minutes
        mails = []
        if _wants_email(candidate):
            mails.append(OutgoingEmail(
                to=candidate["email"],
                subject=f"Reminder: Your mock interview is in {lead} minutes",
                heading="⏰ Interview Reminder",
                name=candidate.get("name", ""),
                paragraphs=[
                    f"Your mock interview begins in {lead} minutes.",
                    "Please be on time and check your camera and microphone.",
                ],
                details=_interview_details(interview, "Interviewer", interviewer),
            ))
        if _wants_email(interviewer):
            mails.append(OutgoingEmail(
                to=interviewer["email"],
                subject=f"Reminder: You have an interview to conduct in {lead} minutes",
                heading="⏰ Interview Reminder",
                name=interviewer.get("name", ""),
                paragraphs=[f"You are scheduled to conduct a mock interview in {lead} minutes."],
                details=_interview_details(interview, "Candidate", candidate),
            ))
        return mails

    def _feedback_submitted(self, payload: Dict[str, Any]) -> List[OutgoingEmail]:
        interview, candidate, interviewer = payload["interview"], payload.get("candidate"), payload.get("interviewer")
        feedback = payload.get("feedback") or {}
        if not _wants_email(candidate):
            return []
        details = _interview_details(interview, "Interviewer", interviewer)
        details.update({
            "Coding": str(feedback.get("coding_score", "")),
            "Communication": str(feedback.get("communication_score", "")),
            "Problem Solving": str(feedback.get("problem_solving_score", "")),
        })
        return [OutgoingEmail(
            to=candidate["email"],
            subject="Your interview feedback is ready",
            heading="Interview Feedback",
            name=candidate.get("name", ""),
            paragraphs=["Your interviewer has shared feedback on your mock interview."],
            details=details,
            cc=self._admin_cc(payload),
        )]

    def _rating_submitted(self, payload: Dict[str, Any]) -> List[OutgoingEmail]:
        interview, candidate, interviewer = payload["interview"], payload.get("candidate"), payload.get("interviewer")
        rating = payload.get("rating") or {}
        details = {
            **_interview_details(interview, "Candidate", candidate),
            "Interviewer": f"{interviewer.get('name', '')} ({interviewer.get('email', '')})" if interviewer else "",
            "Rating": f"{rating.get('rating', '')} / 5",
        }
        if rating.get("feedback"):
            details["Feedback"] = rating["feedback"]
        return [
            OutgoingEmail(
                to=admin_email,
                subject="[ADMIN] New interviewer rating",
                heading="New Rating (Admin Notification)",
                name="Admin",
                paragraphs=["A candidate has rated their interviewer."],
                details=details,
            )
            for admin_email in self._admin_cc(payload)
        ]
