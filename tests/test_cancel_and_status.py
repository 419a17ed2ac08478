import pytest

from mockbook.schemas.common import NotificationEvent
from mockbook.utils.exceptions import InvalidStateError, UnauthorizedError, ValidationError

SCREENSHOT = "https://files.test/payment-screenshots/1.png"

FEEDBACK = {
    "coding_score": 4,
    "communication_score": 5,
    "problem_solving_score": 3,
    "strengths": "Clear reasoning",
    "areas_of_improvement": "Edge cases",
}


@pytest.fixture
def booked(services, candidate, slot):
    """Interview booked through a slot, payment submitted."""
    instructions = services.booking.initiate_prebooking_payment(candidate, slot["id"])
    result = services.booking.complete_prebooking_payment(
        candidate, instructions["payment_id"], "1234", SCREENSHOT, slot["id"]
    )
    return result["interview"]


def test_cancel_releases_slot_and_keeps_payment(services, notifier, candidate, booked, slot):
    cancelled = services.booking.cancel(candidate, booked["id"])

    assert cancelled["status"] == "cancelled"
    assert cancelled["cancelled_by"] == "candidate"
    stored_slot = services.slots.get_slot(slot["id"])
    assert stored_slot["is_booked"] is False
    assert stored_slot["interview_id"] is None
    assert services.reminders.get(booked["id"])["status"] == "cancelled"
    assert services.payments.require_payment(booked["payment_id"])["status"] == "submitted"

    event, payload = notifier.calls[-1]
    assert event == NotificationEvent.BOOKING_CANCELLED
    assert payload["cancelled_by"] == "candidate"
    assert payload["interview"]["status"] == "cancelled"


def test_released_slot_is_bookable_again(services, candidate, other_candidate, booked, slot):
    services.booking.cancel(candidate, booked["id"])
    assert [s["id"] for s in services.slots.list_available()] == [slot["id"]]

    instructions = services.booking.initiate_prebooking_payment(other_candidate, slot["id"])
    services.booking.complete_prebooking_payment(
        other_candidate, instructions["payment_id"], "9876", SCREENSHOT, slot["id"]
    )
    assert services.slots.get_slot(slot["id"])["is_booked"] is True


def test_interviewer_and_admin_may_cancel(services, interviewer, admin, booked):
    assert services.booking.cancel(interviewer, booked["id"])["cancelled_by"] == "interviewer"


def test_cancel_twice_is_invalid(services, candidate, booked):
    services.booking.cancel(candidate, booked["id"])
    with pytest.raises(InvalidStateError):
        services.booking.cancel(candidate, booked["id"])


def test_cancel_completed_is_invalid(services, candidate, interviewer, booked):
    services.booking.submit_feedback(interviewer, booked["id"], FEEDBACK)
    with pytest.raises(InvalidStateError):
        services.booking.cancel(candidate, booked["id"])


def test_cancel_in_progress_is_invalid(services, candidate, interviewer, booked):
    services.booking.update_status(interviewer, booked["id"], "in-progress")
    with pytest.raises(InvalidStateError):
        services.booking.cancel(candidate, booked["id"])


def test_stranger_cannot_cancel(services, other_candidate, other_interviewer, booked):
    with pytest.raises(UnauthorizedError):
        services.booking.cancel(other_candidate, booked["id"])
    with pytest.raises(UnauthorizedError):
        services.booking.cancel(other_interviewer, booked["id"])


def test_status_update_to_in_progress(services, interviewer, booked):
    updated = services.booking.update_status(interviewer, booked["id"], "in-progress")
    assert updated["status"] == "in-progress"
    assert services.reminders.get(booked["id"])["status"] == "cancelled"


def test_candidate_cannot_update_status(services, candidate, booked):
    with pytest.raises(UnauthorizedError):
        services.booking.update_status(candidate, booked["id"], "in-progress")


def test_admin_cancels_in_progress_interview(services, interviewer, admin, booked, slot, notifier):
    services.booking.update_status(interviewer, booked["id"], "in-progress")
    updated = services.booking.update_status(admin, booked["id"], "cancelled")

    assert updated["status"] == "cancelled"
    assert updated["cancelled_by"] == "admin"
    assert services.slots.get_slot(slot["id"])["is_booked"] is False
    assert notifier.events()[-1] == NotificationEvent.BOOKING_CANCELLED


def test_invalid_status_changes(services, interviewer, booked):
    with pytest.raises(InvalidStateError):
        services.booking.update_status(interviewer, booked["id"], "scheduled")
    with pytest.raises(ValidationError):
        services.booking.update_status(interviewer, booked["id"], "paused")
    services.booking.update_status(interviewer, booked["id"], "cancelled")
    with pytest.raises(InvalidStateError):
        services.booking.update_status(interviewer, booked["id"], "in-progress")


def test_feedback_completes_interview(services, notifier, interviewer, booked):
    result = services.booking.submit_feedback(interviewer, booked["id"], FEEDBACK)

    assert result["interview"]["status"] == "completed"
    assert result["feedback"]["coding_score"] == 4
    assert services.interviews.get_feedback(booked["id"])["strengths"] == "Clear reasoning"
    assert notifier.events()[-1] == NotificationEvent.FEEDBACK_SUBMITTED


def test_feedback_after_in_progress(services, interviewer, booked):
    services.booking.update_status(interviewer, booked["id"], "in-progress")
    assert services.booking.submit_feedback(interviewer, booked["id"], FEEDBACK)["interview"]["status"] == "completed"


def test_feedback_only_once(services, interviewer, booked):
    services.booking.submit_feedback(interviewer, booked["id"], FEEDBACK)
    with pytest.raises(InvalidStateError):
        services.booking.submit_feedback(interviewer, booked["id"], FEEDBACK)


def test_feedback_rules(services, candidate, admin, interviewer, booked):
    with pytest.raises(UnauthorizedError):
        services.booking.submit_feedback(candidate, booked["id"], FEEDBACK)
    with pytest.raises(UnauthorizedError):
        services.booking.submit_feedback(admin, booked["id"], FEEDBACK)
    with pytest.raises(ValidationError):
        services.booking.submit_feedback(interviewer, booked["id"], dict(FEEDBACK, coding_score=6))
    with pytest.raises(ValidationError):
        services.booking.submit_feedback(interviewer, booked["id"], dict(FEEDBACK, coding_score=True))
    assert services.interviews.get_feedback(booked["id"]) is None


def test_feedback_on_cancelled_interview(services, candidate, interviewer, booked):
    services.booking.cancel(candidate, booked["id"])
    with pytest.raises(InvalidStateError):
        services.booking.submit_feedback(interviewer, booked["id"], FEEDBACK)


def test_feedback_removed_when_completion_fails(services, monkeypatch, interviewer, booked):
    def lost_race(*args, **kwargs):
        raise InvalidStateError("Interview was modified concurrently, please retry", "InterviewService")

    monkeypatch.setattr(services.interviews, "transition", lost_race)
    with pytest.raises(InvalidStateError):
        services.booking.submit_feedback(interviewer, booked["id"], FEEDBACK)
    assert services.interviews.get_feedback(booked["id"]) is None


def test_recording_completes_in_progress_interview(services, interviewer, booked):
    services.booking.update_status(interviewer, booked["id"], "in-progress")
    updated = services.booking.add_recording(interviewer, booked["id"], "https://rec.example.com/1.mp4")

    assert updated["status"] == "completed"
    assert updated["recording_url"] == "https://rec.example.com/1.mp4"


def test_recording_rules(services, interviewer, booked):
    with pytest.raises(InvalidStateError):
        services.booking.add_recording(interviewer, booked["id"], "https://rec.example.com/1.mp4")
    services.booking.submit_feedback(interviewer, booked["id"], FEEDBACK)
    with pytest.raises(ValidationError):
        services.booking.add_recording(interviewer, booked["id"], "  ")
    assert services.booking.add_recording(interviewer, booked["id"], "https://rec.example.com/2.mp4")["status"] == "completed"


def test_read_access(services, candidate, other_candidate, interviewer, admin, booked):
    assert services.booking.get_interview(candidate, booked["id"])["id"] == booked["id"]
    assert services.booking.get_interview(interviewer, booked["id"])["id"] == booked["id"]
    assert services.booking.get_interview(admin, booked["id"])["id"] == booked["id"]
    with pytest.raises(UnauthorizedError):
        services.booking.get_interview(other_candidate, booked["id"])

    assert [i["id"] for i in services.booking.list_my_interviews(candidate)] == [booked["id"]]
    assert [i["id"] for i in services.booking.list_my_interviews(interviewer)] == [booked["id"]]
    assert services.booking.list_my_interviews(other_candidate) == []
    assert [i["id"] for i in services.booking.list_my_interviews(admin)] == [booked["id"]]
