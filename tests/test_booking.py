from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

import services.booking as booking_service
from models import db
from models.audit_log import AuditLog
from models.availability import AvailabilitySlot
from models.booking import Booking
from models.mentor import MENTOR_APPROVED
from utils.errors import SlotAlreadyBooked, SlotOverlap
from utils.timeutil import utcnow


def _book(client, headers, template_id, slot_id, medium="online"):
    return client.post(
        f"/sessions/{template_id}/book",
        json={"availability_id": slot_id, "medium": medium},
        headers=headers,
    )


def _booking_count(slot_id):
    return db.session.execute(
        select(func.count()).select_from(Booking).where(Booking.slot_id == slot_id)
    ).scalar_one()


@pytest.fixture
def setup(factory, login):
    mentor = factory.mentor(status=MENTOR_APPROVED)
    template = factory.template(mentor)
    slot = factory.slot(mentor, online=True, offline=True)
    student = factory.student()
    return {
        "mentor": mentor,
        "template": template,
        "slot": slot,
        "student": student,
        "headers": login(student.user),
    }


def test_book_success(client, setup):
    resp = _book(client, setup["headers"], setup["template"].id, setup["slot"].id)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["success"] is True
    data = body["data"]
    assert data["availability_id"] == setup["slot"].id
    assert data["session_id"] == setup["template"].id
    assert data["medium"] == "online"
    assert data["start"].endswith("Z")

    slot = db.session.get(AvailabilitySlot, setup["slot"].id)
    assert slot.is_booked is True
    assert slot.session_id == setup["template"].id
    booking = db.session.get(Booking, data["booking_id"])
    assert booking.student_id == setup["student"].id


def test_offline_booking_carries_slot_address(client, setup):
    resp = _book(client, setup["headers"], setup["template"].id, setup["slot"].id, medium="offline")
    assert resp.status_code == 201
    booking = db.session.get(Booking, resp.get_json()["data"]["booking_id"])
    assert booking.place == "Library room 2"


def test_invalid_medium(client, setup):
    resp = _book(client, setup["headers"], setup["template"].id, setup["slot"].id, medium="carrier-pigeon")
    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "message": "Medium must be either 'online' or 'offline'"}


def test_medium_is_checked_before_anything_else(client, setup):
    resp = _book(client, setup["headers"], "no-such-session", "no-such-slot", medium="")
    assert resp.status_code == 400
    assert "Medium" in resp.get_json()["message"]


def test_non_student_is_rejected(client, factory, login, setup):
    mentor_headers = login(setup["mentor"].user)
    resp = _book(client, mentor_headers, setup["template"].id, setup["slot"].id)
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "This API is for students only"


def test_unknown_session(client, setup):
    resp = _book(client, setup["headers"], "missing", setup["slot"].id)
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Session not found"


def test_unknown_slot(client, setup):
    resp = _book(client, setup["headers"], setup["template"].id, "missing")
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Availability not found"


def test_already_booked(client, factory, setup):
    other = factory.student()
    factory.booking(setup["slot"], other, template=setup["template"])

    resp = _book(client, setup["headers"], setup["template"].id, setup["slot"].id)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Availability already booked"


def test_mentor_mismatch(client, factory, setup):
    other_mentor = factory.mentor()
    foreign_slot = factory.slot(other_mentor)

    resp = _book(client, setup["headers"], setup["template"].id, foreign_slot.id)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Session and availability belong to different mentors"


def test_medium_not_supported(client, factory, setup):
    online_only = factory.slot(setup["mentor"], start=utcnow() + timedelta(days=5), online=True)
    resp = _book(client, setup["headers"], setup["template"].id, online_only.id, medium="offline")
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Availability is not marked as offline"


def test_started_slot_is_rejected(client, factory, setup):
    started = factory.slot(setup["mentor"], start=utcnow() - timedelta(minutes=10))
    resp = _book(client, setup["headers"], setup["template"].id, started.id)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Cannot book a slot that has already started"


def test_overlap_with_existing_booking(client, factory, setup):
    start = setup["slot"].start_time
    overlapping = factory.slot(setup["mentor"], start=start + timedelta(minutes=30))
    factory.booking(overlapping, factory.student(), template=setup["template"])

    resp = _book(client, setup["headers"], setup["template"].id, setup["slot"].id)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Time slot conflicts with existing booking"
    assert db.session.get(AvailabilitySlot, setup["slot"].id).is_booked is False


def test_adjacent_booking_is_not_an_overlap(client, factory, setup):
    start = setup["slot"].start_time
    adjacent = factory.slot(setup["mentor"], start=start + timedelta(minutes=60))
    factory.booking(adjacent, factory.student(), template=setup["template"])

    resp = _book(client, setup["headers"], setup["template"].id, setup["slot"].id)
    assert resp.status_code == 201


def test_missing_student_profile(client, factory, login, setup):
    from models.student import Student

    db.session.delete(db.session.get(Student, setup["student"].id))
    db.session.commit()

    resp = _book(client, setup["headers"], setup["template"].id, setup["slot"].id)
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Student profile not found"


def test_failed_verification_rolls_back(client, setup, monkeypatch):
    monkeypatch.setattr(booking_service, "_verify_claim", lambda *a, **kw: False)

    resp = _book(client, setup["headers"], setup["template"].id, setup["slot"].id)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["success"] is False
    assert body["message"] == "Failed to update availability"

    slot = db.session.get(AvailabilitySlot, setup["slot"].id)
    assert slot.is_booked is False
    assert _booking_count(slot.id) == 0


def test_concurrent_claim_loses(setup, monkeypatch):
    """Another booker flips the slot between our read and our claim."""
    real_overlap = booking_service.find_overlapping_bookings

    def racing_overlap(session, slot):
        session.execute(
            update(AvailabilitySlot)
            .where(AvailabilitySlot.id == slot.id)
            .values(is_booked=True)
            .execution_options(synchronize_session=False)
        )
        return real_overlap(session, slot)

    monkeypatch.setattr(booking_service, "find_overlapping_bookings", racing_overlap)

    with pytest.raises(SlotAlreadyBooked):
        booking_service.book_slot(
            db.session,
            template_id=setup["template"].id,
            slot_id=setup["slot"].id,
            medium="online",
            user_id=setup["student"].user_id,
        )

    assert _booking_count(setup["slot"].id) == 0
    assert db.session.get(AvailabilitySlot, setup["slot"].id).is_booked is False


def test_concurrent_overlapping_claim_loses(factory, setup, monkeypatch):
    """Another booker takes an overlapping slot of the same mentor just before our claim."""
    rival = factory.slot(setup["mentor"], start=setup["slot"].start_time + timedelta(minutes=30))
    rival_id = rival.id
    real_claim = booking_service._claim_slot

    def racing_claim(session, slot, template_id):
        session.execute(
            update(AvailabilitySlot)
            .where(AvailabilitySlot.id == rival_id)
            .values(is_booked=True)
            .execution_options(synchronize_session=False)
        )
        return real_claim(session, slot, template_id)

    monkeypatch.setattr(booking_service, "_claim_slot", racing_claim)

    with pytest.raises(SlotOverlap):
        booking_service.book_slot(
            db.session,
            template_id=setup["template"].id,
            slot_id=setup["slot"].id,
            medium="online",
            user_id=setup["student"].user_id,
        )

    assert _booking_count(setup["slot"].id) == 0
    assert db.session.get(AvailabilitySlot, setup["slot"].id).is_booked is False


def test_claim_skips_slot_overlapping_a_booked_one(factory, setup):
    factory.slot(setup["mentor"], start=setup["slot"].start_time + timedelta(minutes=30), booked=True)

    slot = db.session.get(AvailabilitySlot, setup["slot"].id)
    assert booking_service._claim_slot(db.session, slot, setup["template"].id) == 0
    db.session.rollback()
    assert db.session.get(AvailabilitySlot, setup["slot"].id).is_booked is False


def test_unique_constraint_backstops_the_claim(setup):
    # a stray booking row on an unflagged slot still blocks a second booking
    db.session.add(Booking(slot_id=setup["slot"].id, student_id=setup["student"].id, medium="online"))
    db.session.commit()

    with pytest.raises(SlotAlreadyBooked):
        booking_service.book_slot(
            db.session,
            template_id=setup["template"].id,
            slot_id=setup["slot"].id,
            medium="online",
            user_id=setup["student"].user_id,
        )

    assert _booking_count(setup["slot"].id) == 1
    assert db.session.get(AvailabilitySlot, setup["slot"].id).is_booked is False


def test_second_booking_of_same_slot_fails(client, factory, login, setup):
    assert _book(client, setup["headers"], setup["template"].id, setup["slot"].id).status_code == 201

    other_headers = login(factory.student().user)
    resp = _book(client, other_headers, setup["template"].id, setup["slot"].id)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Availability already booked"
    assert _booking_count(setup["slot"].id) == 1


def test_slot_status_endpoint(client, setup):
    _book(client, setup["headers"], setup["template"].id, setup["slot"].id)

    resp = client.get(f"/sessions/status/{setup['slot'].id}", headers=setup["headers"])
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["is_booked"] is True
    assert data["status"] == "Upcoming"
    assert data["session"]["title"] == "Algebra help"
    assert data["booked_medium"] == "online"
    assert data["mentor_name"] == setup["mentor"].user.name


def test_student_lists_own_bookings(client, setup):
    _book(client, setup["headers"], setup["template"].id, setup["slot"].id)

    resp = client.get("/bookings/me", headers=setup["headers"])
    assert resp.status_code == 200
    rows = resp.get_json()["data"]
    assert len(rows) == 1
    assert rows[0]["availability_id"] == setup["slot"].id
    assert rows[0]["session"]["id"] == setup["template"].id


def test_booking_detail_visibility(client, factory, login, setup):
    booking_id = _book(client, setup["headers"], setup["template"].id, setup["slot"].id).get_json()["data"]["booking_id"]

    assert client.get(f"/bookings/{booking_id}", headers=setup["headers"]).status_code == 200
    mentor_headers = login(setup["mentor"].user)
    assert client.get(f"/bookings/{booking_id}", headers=mentor_headers).status_code == 200

    stranger = login(factory.student().user)
    assert client.get(f"/bookings/{booking_id}", headers=stranger).status_code == 403


def test_booking_audit_row_commits_with_booking(client, setup):
    resp = _book(client, setup["headers"], setup["template"].id, setup["slot"].id)
    booking_id = resp.get_json()["data"]["booking_id"]

    rows = AuditLog.query.filter_by(action="BOOKING_CREATE").all()
    assert len(rows) == 1
    assert rows[0].entity_id == booking_id
    assert rows[0].user_id == setup["student"].user_id


def test_failing_booked_hook_rolls_back_booking(setup):
    def broken_hook(result):
        db.session.add(AuditLog(action="BOOKING_CREATE", entity="booking", entity_id=result["booking_id"]))
        raise RuntimeError("audit store unavailable")

    with pytest.raises(RuntimeError):
        booking_service.book_slot(
            db.session,
            template_id=setup["template"].id,
            slot_id=setup["slot"].id,
            medium="online",
            user_id=setup["student"].user_id,
            on_booked=broken_hook,
        )

    assert _booking_count(setup["slot"].id) == 0
    assert db.session.get(AvailabilitySlot, setup["slot"].id).is_booked is False
    assert AuditLog.query.filter_by(action="BOOKING_CREATE").count() == 0
