import pytest
from fastapi.testclient import TestClient

from conftest import tomorrow_at, window
from mockbook.api.main import app, status_for
from mockbook.config import get_config
from mockbook.schemas.common import Role
from mockbook.services.container import get_container
from mockbook.utils.auth_dependencies import create_token
from mockbook.utils.datetime_utils import format_iso_ist
from mockbook.utils.exceptions import (
    AlreadyBookedError,
    DuplicateError,
    PendingPaymentExistsError,
    StorageError,
    ValidationError,
)


@pytest.fixture
def client(services, config):
    app.dependency_overrides[get_container] = lambda: services
    app.dependency_overrides[get_config] = lambda: config
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth(config):
    def headers(user_id, role):
        return {"Authorization": f"Bearer {create_token(user_id, role, config)}"}
    return headers


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_metrics(client):
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "mockbook_bookings_total" in response.text


def test_missing_or_bad_token(client):
    assert client.get("/interviews").status_code in (401, 403)
    response = client.get("/interviews", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_error_status_mapping():
    assert status_for(PendingPaymentExistsError("x")) == 400
    assert status_for(ValidationError("x")) == 400
    assert status_for(AlreadyBookedError("x")) == 409
    assert status_for(DuplicateError("x")) == 409
    assert status_for(StorageError("x")) == 503


def test_slot_creation_and_listing(client, auth):
    start, end = window(9)
    body = {"start_time": start, "end_time": end, "interview_type": "DSA"}

    created = client.post("/slots", json=body, headers=auth("int-1", Role.INTERVIEWER))
    assert created.status_code == 201
    assert created.json()["interviewer_id"] == "int-1"

    overlap = client.post("/slots", json=body, headers=auth("int-1", Role.INTERVIEWER))
    assert overlap.status_code == 409
    assert overlap.json()["error"] == "conflict"

    available = client.get("/slots/available").json()
    assert len(available) == 1
    assert available[0]["price"] == 1000


def test_candidate_cannot_create_slot(client, auth):
    start, end = window(9)
    response = client.post(
        "/slots",
        json={"start_time": start, "end_time": end, "interview_type": "DSA"},
        headers=auth("cand-1", Role.CANDIDATE),
    )
    assert response.status_code == 403


def test_prebooking_over_http(client, auth, slot, blob_store, services):
    candidate = auth("cand-1", Role.CANDIDATE)

    instructions = client.post("/payments/prebooking", json={"slot_id": slot["id"]}, headers=candidate)
    assert instructions.status_code == 200
    payment_id = instructions.json()["payment_id"]

    completed = client.post(
        f"/payments/prebooking/{payment_id}/complete",
        data={"slot_id": slot["id"], "transaction_id": "UPI00001234"},
        files={"screenshot": ("proof.png", b"\x89PNG", "image/png")},
        headers=candidate,
    )
    assert completed.status_code == 200
    interview_id = completed.json()["interview_id"]
    assert blob_store.uploads[0][2] == "payment-screenshots"

    payment = client.get(f"/interviews/{interview_id}/payment", headers=candidate).json()
    assert payment["status"] == "submitted"
    assert payment["transaction_id"] == "1234"

    verified = client.post(
        "/payments/verify",
        json={"payment_id": payment_id, "verified": True},
        headers=auth("int-1", Role.INTERVIEWER),
    )
    assert verified.json()["status"] == "verified"


def test_pending_payment_gate_over_http(client, auth):
    candidate = auth("cand-1", Role.CANDIDATE)
    body = {"interviewer_id": "int-1", "scheduled_date": format_iso_ist(tomorrow_at(15))}

    first = client.post("/interviews", json=body, headers=candidate)
    assert first.status_code == 201

    second = client.post("/interviews", json=dict(body, scheduled_date=format_iso_ist(tomorrow_at(17))), headers=candidate)
    assert second.status_code == 400
    assert second.json()["error"] == "pending_payment_exists"
    assert second.json()["pending_interviews"][0]["id"] == first.json()["id"]


def test_cancel_over_http(client, auth):
    candidate = auth("cand-1", Role.CANDIDATE)
    body = {"interviewer_id": "int-1", "scheduled_date": format_iso_ist(tomorrow_at(15))}
    interview_id = client.post("/interviews", json=body, headers=candidate).json()["id"]

    assert client.post(f"/interviews/{interview_id}/cancel", headers=candidate).json()["status"] == "cancelled"
    again = client.post(f"/interviews/{interview_id}/cancel", headers=candidate)
    assert again.status_code == 409
    assert again.json()["error"] == "invalid_state"


def test_price_update_is_admin_only(client, auth):
    body = {"price": 1200, "currency": "INR"}
    assert client.put("/admin/prices/DSA", json=body, headers=auth("cand-1", Role.CANDIDATE)).status_code == 403

    updated = client.put("/admin/prices/DSA", json=body, headers=auth("admin-1", Role.ADMIN))
    assert updated.status_code == 200
    assert {p["interview_type"]: p["price"] for p in client.get("/prices").json()}["DSA"] == 1200


def test_missing_interview_is_404(client, auth):
    response = client.get("/interviews/nope", headers=auth("cand-1", Role.CANDIDATE))
    assert response.status_code == 404


def test_refused_proof_uploads_nothing(client, auth, services, blob_store, candidate, slot):
    interview = services.booking.book_direct(candidate, "int-1", format_iso_ist(tomorrow_at(15)))
    payment_id = services.booking.create_payment_request(candidate, interview["id"])["payment_id"]
    screenshot = {"screenshot": ("proof.png", b"\x89PNG", "image/png")}

    stranger = client.post(
        f"/payments/{payment_id}/proof",
        data={"transaction_id": "UPI00001234"},
        files=screenshot,
        headers=auth("cand-2", Role.CANDIDATE),
    )
    assert stranger.status_code == 403

    prebooking = services.booking.initiate_prebooking_payment(candidate, slot["id"])
    services.slots.reserve(slot["id"], "someone-else")
    taken = client.post(
        f"/payments/prebooking/{prebooking['payment_id']}/complete",
        data={"slot_id": slot["id"], "transaction_id": "UPI00001234"},
        files=screenshot,
        headers=auth("cand-1", Role.CANDIDATE),
    )
    assert taken.status_code == 409
    assert taken.json()["error"] == "slot_no_longer_available"
    assert blob_store.uploads == []


def test_rating_over_http(client, auth, services, candidate, interviewer, slot):
    instructions = services.booking.initiate_prebooking_payment(candidate, slot["id"])
    interview = services.booking.complete_prebooking_payment(
        candidate, instructions["payment_id"], "1234", "https://files.test/1.png", slot["id"]
    )["interview"]
    body = {"rating": 5, "feedback": "Great session"}

    early = client.post(f"/interviews/{interview['id']}/rating", json=body, headers=auth("cand-1", Role.CANDIDATE))
    assert early.status_code == 409
    assert early.json()["error"] == "invalid_state"

    services.booking.submit_feedback(interviewer, interview["id"], {
        "coding_score": 4, "communication_score": 4, "problem_solving_score": 4,
    })
    rated = client.post(f"/interviews/{interview['id']}/rating", json=body, headers=auth("cand-1", Role.CANDIDATE))
    assert rated.status_code == 201
    assert rated.json()["rating"] == 5

    again = client.post(f"/interviews/{interview['id']}/rating", json=body, headers=auth("cand-1", Role.CANDIDATE))
    assert again.status_code == 409
    assert again.json()["error"] == "duplicate"

    out_of_range = client.post(
        f"/interviews/{interview['id']}/rating", json={"rating": 6}, headers=auth("cand-1", Role.CANDIDATE)
    )
    assert out_of_range.status_code == 422

    assert client.get("/interviewers/int-1/ratings/summary").json() == {"average_rating": 5, "ratings_count": 1}
    assert len(client.get("/interviewers/int-1/ratings").json()) == 1
    assert client.get("/admin/ratings", headers=auth("cand-1", Role.CANDIDATE)).status_code == 403
    assert len(client.get("/admin/ratings", headers=auth("admin-1", Role.ADMIN)).json()) == 1


def test_admin_lists_every_interview(client, auth):
    body = {"interviewer_id": "int-1", "scheduled_date": format_iso_ist(tomorrow_at(15))}
    client.post("/interviews", json=body, headers=auth("cand-1", Role.CANDIDATE))
    later = dict(body, scheduled_date=format_iso_ist(tomorrow_at(17)))
    client.post("/interviews", json=later, headers=auth("cand-2", Role.CANDIDATE))

    listed = client.get("/interviews", headers=auth("admin-1", Role.ADMIN)).json()
    assert {i["candidate_id"] for i in listed} == {"cand-1", "cand-2"}
