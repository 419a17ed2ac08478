from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
import threading

import pytest

from conftest import AtomicDatabase, tomorrow_at, window
from mockbook.services.slot_service import SlotService
from mockbook.utils.datetime_utils import format_iso_ist, get_now_ist
from mockbook.utils.exceptions import (
    AlreadyBookedError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


def test_create_dsa_slot(services):
    start, end = window(9)
    slot = services.slots.create_slot("int-1", start, end, "DSA")

    assert slot["interviewer_id"] == "int-1"
    assert slot["is_booked"] is False
    assert slot["interview_id"] is None
    assert slot["start_time"] == start
    assert services.slots.get_slot(slot["id"])["end_time"] == end


@pytest.mark.parametrize("interview_type,length", [("DSA", 41), ("DSA", 39), ("SystemDesign", 50)])
def test_duration_within_tolerance_is_accepted(services, interview_type, length):
    start, end = window(10, length=length)
    assert services.slots.create_slot("int-1", start, end, interview_type)["interview_type"] == interview_type


@pytest.mark.parametrize("interview_type,length", [("DSA", 45), ("DSA", 50), ("SystemDesign", 40)])
def test_wrong_duration_is_rejected(services, interview_type, length):
    start, end = window(10, length=length)
    with pytest.raises(ValidationError):
        services.slots.create_slot("int-1", start, end, interview_type)


def test_end_before_start_is_rejected(services):
    start, end = window(10)
    with pytest.raises(ValidationError):
        services.slots.create_slot("int-1", end, start, "DSA")


def test_past_slot_is_rejected(services):
    start = get_now_ist() - timedelta(hours=2)
    with pytest.raises(ValidationError):
        services.slots.create_slot("int-1", start, start + timedelta(minutes=40), "DSA")


def test_unknown_type_is_rejected(services):
    start, end = window(10)
    with pytest.raises(ValidationError):
        services.slots.create_slot("int-1", start, end, "Behavioral")


def test_overlapping_slot_conflicts(services, slot):
    start, end = window(9, 20)
    with pytest.raises(ConflictError):
        services.slots.create_slot("int-1", start, end, "DSA")
    assert services.db["slots"].count_documents({"interviewer_id": "int-1"}) == 1


def test_adjacent_and_other_interviewer_slots_do_not_conflict(services, slot):
    start, end = window(9, 40)
    services.slots.create_slot("int-1", start, end, "DSA")
    start, end = window(9)
    services.slots.create_slot("int-2", start, end, "DSA")
    assert services.db["slots"].count_documents({}) == 3


def test_only_one_reservation_wins(services, slot):
    services.slots.reserve(slot["id"], "interview-a")
    with pytest.raises(AlreadyBookedError):
        services.slots.reserve(slot["id"], "interview-b")

    stored = services.slots.get_slot(slot["id"])
    assert stored["is_booked"] is True
    assert stored["interview_id"] == "interview-a"


def test_concurrent_reservations_have_one_winner(config, services, slot):
    slots = SlotService(config, services.prices, services.users, db=AtomicDatabase(services.db))
    attempts = 8
    barrier = threading.Barrier(attempts)

    def attempt(n):
        barrier.wait(timeout=5)
        try:
            slots.reserve(slot["id"], f"interview-{n}")
            return "won"
        except AlreadyBookedError:
            return "lost"

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        outcomes = list(pool.map(attempt, range(attempts)))

    assert outcomes.count("won") == 1
    assert outcomes.count("lost") == attempts - 1
    stored = services.slots.get_slot(slot["id"])
    assert stored["interview_id"] == f"interview-{outcomes.index('won')}"


def test_already_booked_is_a_conflict(services, slot):
    services.slots.reserve(slot["id"], "interview-a")
    with pytest.raises(ConflictError):
        services.slots.reserve(slot["id"], "interview-b")


def test_reserve_missing_slot(services):
    with pytest.raises(NotFoundError):
        services.slots.reserve("nope", "interview-a")


def test_release_is_idempotent(services, slot):
    services.slots.reserve(slot["id"], "interview-a")
    services.slots.release(slot["id"])
    services.slots.release(slot["id"])

    stored = services.slots.get_slot(slot["id"])
    assert stored["is_booked"] is False
    assert stored["interview_id"] is None


def test_release_for_another_interview_keeps_booking(services, slot):
    services.slots.reserve(slot["id"], "interview-a")
    assert services.slots.release(slot["id"], "interview-b") is False
    assert services.slots.get_slot(slot["id"])["interview_id"] == "interview-a"


def test_list_available_excludes_booked_and_adds_price(services, slot):
    start, end = window(11, length=50)
    design = services.slots.create_slot("int-1", start, end, "SystemDesign")
    services.slots.reserve(slot["id"], "interview-a")

    available = services.slots.list_available()
    assert [s["id"] for s in available] == [design["id"]]
    assert available[0]["price"] == 1500
    assert available[0]["currency"] == "INR"


def test_list_available_filters(services, slot):
    start, end = window(11, length=50)
    services.slots.create_slot("int-1", start, end, "SystemDesign")
    start, end = window(9)
    services.slots.create_slot("int-2", start, end, "DSA")

    assert len(services.slots.list_available(interview_type="DSA")) == 2
    assert len(services.slots.list_available(interviewer_id="int-2")) == 1
    late = format_iso_ist(tomorrow_at(10, 30))
    assert len(services.slots.list_available(start_date=late)) == 1
    with pytest.raises(ValidationError):
        services.slots.list_available(interview_type="Behavioral")


def test_delete_slot(services, slot):
    services.slots.delete_slot(slot["id"])
    with pytest.raises(NotFoundError):
        services.slots.delete_slot(slot["id"])


def test_delete_booked_slot_fails(services, slot):
    services.slots.reserve(slot["id"], "interview-a")
    with pytest.raises(InvalidStateError):
        services.slots.delete_slot(slot["id"])


def test_batch_with_internal_overlap_creates_nothing(services):
    with pytest.raises(ConflictError):
        services.slots.create_batch("int-1", "DSA", [window(9), window(9, 30)])
    assert services.db["slots"].count_documents({}) == 0


def test_batch_failure_removes_created_slots(services):
    start, end = window(12)
    services.slots.create_slot("int-1", start, end, "DSA")

    with pytest.raises(ConflictError):
        services.slots.create_batch("int-1", "DSA", [window(9), window(10), window(12, 10)])
    assert services.db["slots"].count_documents({}) == 1


def test_batch_creates_all(services):
    created = services.slots.create_batch("int-1", "DSA", [window(9), window(10), window(11)])
    assert len(created) == 3
    assert len(services.slots.list_for_interviewer("int-1")) == 3


def test_import_csv_collects_row_errors(services):
    ok_start, ok_end = window(9)
    bad_start, bad_end = window(11, length=45)
    content = (
        "interviewer_email,start_time,end_time,interview_type\n"
        f"meera@example.com,{ok_start},{ok_end},DSA\n"
        f"nobody@example.com,{ok_start},{ok_end},DSA\n"
        f"meera@example.com,{bad_start},{bad_end},DSA\n"
    ).encode()

    result = services.slots.import_csv(content, created_by="admin-1")

    assert len(result["created"]) == 1
    assert result["created"][0]["interviewer_id"] == "int-1"
    assert len(result["errors"]) == 2
    assert result["errors"][0].startswith("Line 3")
    assert result["errors"][1].startswith("Line 4")


def test_import_csv_requires_columns(services):
    with pytest.raises(ValidationError):
        services.slots.import_csv(b"email,start\nx,y\n", created_by="admin-1")
