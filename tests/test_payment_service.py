from concurrent.futures import ThreadPoolExecutor
import threading

import pytest

from conftest import AtomicDatabase
from mockbook.services.payment_service import PaymentService, redact_transaction_id
from mockbook.utils.exceptions import (
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

SCREENSHOT = "https://files.test/payment-screenshots/1.png"


@pytest.fixture
def ledger(services):
    return services.payments


def _submitted(ledger, interview_id="iv-1", payer="cand-1"):
    payment = ledger.create_pending(payer, 1000, "INR", interview_id=interview_id)
    return ledger.submit_proof(payment["id"], payer, "UPI123456789", SCREENSHOT)


def test_create_pending_requires_exactly_one_target(ledger):
    with pytest.raises(ValidationError):
        ledger.create_pending("cand-1", 1000, "INR")
    with pytest.raises(ValidationError):
        ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1", slot_id="slot-1")


def test_create_pending_for_slot_is_pre_booking(ledger):
    payment = ledger.create_pending("cand-1", 1000, "INR", slot_id="slot-1", upi_id="meera@upi")
    assert payment["status"] == "pending"
    assert payment["is_pre_booking"] is True
    assert payment["interview_id"] is None
    assert payment["upi_id"] == "meera@upi"


def test_second_active_payment_is_duplicate(ledger):
    first = ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1")
    with pytest.raises(DuplicateError):
        ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1")

    assert ledger.col.count_documents({"interview_id": "iv-1"}) == 1
    assert ledger.get_for_interview("iv-1")["id"] == first["id"]


def test_concurrent_payments_have_one_winner(config, services):
    ledger = PaymentService(config, db=AtomicDatabase(services.db))
    attempts = 8
    barrier = threading.Barrier(attempts)

    def attempt(n):
        barrier.wait(timeout=5)
        try:
            return ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1")["id"]
        except DuplicateError:
            return None

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        outcomes = list(pool.map(attempt, range(attempts)))

    winners = [payment_id for payment_id in outcomes if payment_id]
    assert len(winners) == 1
    assert outcomes.count(None) == attempts - 1
    assert services.db["payments"].count_documents({"interview_id": "iv-1"}) == 1
    assert services.payments.get_for_interview("iv-1")["id"] == winners[0]


def test_submitted_payment_still_blocks_duplicate(ledger):
    _submitted(ledger)
    with pytest.raises(DuplicateError):
        ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1")


def test_new_payment_allowed_after_rejection(ledger):
    first = _submitted(ledger)
    ledger.verify(first["id"], "int-1", approved=False)

    second = ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1")
    assert ledger.get_for_interview("iv-1")["id"] == second["id"]


def test_submit_proof_keeps_last_four_characters(ledger):
    submitted = _submitted(ledger)
    assert submitted["status"] == "submitted"
    assert submitted["transaction_id"] == "6789"
    assert submitted["screenshot_url"] == SCREENSHOT
    assert submitted["submitted_at"]


def test_redaction_trims_whitespace():
    assert redact_transaction_id("  ab1234 ") == "1234"
    assert redact_transaction_id("12") == "12"


def test_submit_proof_checks_payer(ledger):
    payment = ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1")
    with pytest.raises(UnauthorizedError):
        ledger.submit_proof(payment["id"], "cand-2", "UPI1234", SCREENSHOT)


def test_submit_proof_requires_transaction_and_screenshot(ledger):
    payment = ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1")
    with pytest.raises(ValidationError):
        ledger.submit_proof(payment["id"], "cand-1", "   ", SCREENSHOT)
    with pytest.raises(ValidationError):
        ledger.submit_proof(payment["id"], "cand-1", "UPI1234", "")


def test_submit_proof_on_missing_payment(ledger):
    with pytest.raises(NotFoundError):
        ledger.submit_proof("missing", "cand-1", "UPI1234", SCREENSHOT)


def test_submit_proof_twice_is_invalid(ledger):
    submitted = _submitted(ledger)
    with pytest.raises(InvalidStateError):
        ledger.submit_proof(submitted["id"], "cand-1", "UPI9999", SCREENSHOT)


def test_verify_records_reviewer(ledger):
    submitted = _submitted(ledger)
    verified = ledger.verify(submitted["id"], "int-1", approved=True)

    assert verified["status"] == "verified"
    assert verified["verified_by"] == "int-1"
    assert verified["verified_at"]


def test_verify_requires_submitted(ledger):
    payment = ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1")
    with pytest.raises(InvalidStateError):
        ledger.verify(payment["id"], "int-1", approved=True)


def test_verified_payment_cannot_be_resubmitted(ledger):
    submitted = _submitted(ledger)
    ledger.verify(submitted["id"], "int-1", approved=True)
    with pytest.raises(InvalidStateError):
        ledger.submit_proof(submitted["id"], "cand-1", "UPI1111", SCREENSHOT)


def test_rejected_payment_can_be_resubmitted_in_place(ledger):
    submitted = _submitted(ledger)
    ledger.verify(submitted["id"], "int-1", approved=False)

    resubmitted = ledger.submit_proof(submitted["id"], "cand-1", "UPI5555", SCREENSHOT)
    assert resubmitted["id"] == submitted["id"]
    assert resubmitted["status"] == "submitted"
    assert resubmitted["transaction_id"] == "5555"
    assert resubmitted["verified_by"] is None


def test_resubmission_loses_to_newer_payment(ledger):
    first = _submitted(ledger)
    ledger.verify(first["id"], "int-1", approved=False)
    ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1")

    with pytest.raises(DuplicateError):
        ledger.submit_proof(first["id"], "cand-1", "UPI5555", SCREENSHOT)
    assert ledger.require_payment(first["id"])["status"] == "rejected"


def test_refund(ledger):
    submitted = _submitted(ledger)
    ledger.verify(submitted["id"], "int-1", approved=True)

    refunded = ledger.refund(submitted["id"], "admin-1")
    assert refunded["status"] == "refunded"
    assert refunded["refunded_by"] == "admin-1"


def test_refund_requires_money_received(ledger):
    payment = ledger.create_pending("cand-1", 1000, "INR", interview_id="iv-1")
    with pytest.raises(InvalidStateError):
        ledger.refund(payment["id"], "admin-1")


def test_link_to_interview(ledger):
    payment = ledger.create_pending("cand-1", 1000, "INR", slot_id="slot-1")
    linked = ledger.link_to_interview(payment["id"], "iv-9")

    assert linked["interview_id"] == "iv-9"
    assert linked["is_pre_booking"] is False
    assert linked["slot_id"] is None
    assert ledger.get_for_interview("iv-9")["id"] == payment["id"]


def test_get_for_interview_without_payment(ledger):
    assert ledger.get_for_interview("iv-none") is None
