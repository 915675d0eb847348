from datetime import timedelta

from models import db
from models.availability import AvailabilitySlot, STATUS_COMPLETED, STATUS_UPCOMING
from models.booking import Booking
from models.mentor import MENTOR_PENDING
from models.review import Review
from models.session_template import SessionTemplate
from utils.timeutil import utcnow

VALID = {
    "title": "Physics mechanics",
    "type": "Course Topic Tuition",
    "description": "Newton's laws, worked problems",
    "duration_mins": 60,
    "price": 120,
}


# ---------- create / read / update ----------

def test_create_and_list_sessions(client, factory, login):
    mentor = factory.mentor()
    headers = login(mentor.user)

    resp = client.post("/sessions", json=VALID, headers=headers)
    assert resp.status_code == 201
    created = resp.get_json()["data"]
    assert created["title"] == VALID["title"]
    assert created["availability"] == []

    listed = client.get("/sessions/mentor/list", headers=headers).get_json()["data"]
    assert [t["id"] for t in listed] == [created["id"]]


def test_create_session_validation(client, factory, login):
    headers = login(factory.mentor().user)
    cases = [
        {k: v for k, v in VALID.items() if k != "title"},
        dict(VALID, type="Astrology"),
        dict(VALID, duration_mins=0),
        dict(VALID, duration_mins="abc"),
        dict(VALID, price=-5),
        dict(VALID, description="   "),
    ]
    for payload in cases:
        resp = client.post("/sessions", json=payload, headers=headers)
        assert resp.status_code == 400, payload
    assert SessionTemplate.query.count() == 0


def test_pending_mentor_cannot_create_session(client, factory, login):
    headers = login(factory.mentor(status=MENTOR_PENDING).user)
    resp = client.post("/sessions", json=VALID, headers=headers)
    assert resp.status_code == 403


def test_student_cannot_create_session(client, factory, login):
    headers = login(factory.student().user)
    resp = client.post("/sessions", json=VALID, headers=headers)
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "This API is for mentors only"


def test_session_detail_counts_free_future_slots(client, factory, login):
    mentor = factory.mentor()
    template = factory.template(mentor)
    factory.slot(mentor, template=template)
    factory.slot(mentor, template=template, start=utcnow() + timedelta(days=6))
    factory.slot(mentor, template=template, start=utcnow() - timedelta(days=6))

    resp = client.get(f"/sessions/{template.id}", headers=login(factory.student().user))
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["available_slots"] == 2
    assert data["mentor_name"] == mentor.user.name


def test_update_session_fields(client, factory, login):
    mentor = factory.mentor()
    template = factory.template(mentor)

    resp = client.put(f"/sessions/{template.id}", json={"price": 200, "title": "New title"}, headers=login(mentor.user))
    assert resp.status_code == 200
    db.session.expire_all()
    refreshed = db.session.get(SessionTemplate, template.id)
    assert refreshed.price == 200
    assert refreshed.title == "New title"


def test_duration_locked_once_booked(client, factory, login):
    mentor = factory.mentor()
    template = factory.template(mentor)
    headers = login(mentor.user)

    assert client.put(f"/sessions/{template.id}", json={"duration_mins": 90}, headers=headers).status_code == 200

    slot = factory.slot(mentor, template=template)
    factory.booking(slot, factory.student(), template=template)
    resp = client.put(f"/sessions/{template.id}", json={"duration_mins": 30}, headers=headers)
    assert resp.status_code == 400
    assert db.session.get(SessionTemplate, template.id).duration_mins == 90


def test_update_requires_owner(client, factory, login):
    template = factory.template(factory.mentor())
    resp = client.put(f"/sessions/{template.id}", json={"price": 1}, headers=login(factory.mentor().user))
    assert resp.status_code == 403


# ---------- deletion ----------

def test_delete_session_resets_slots_and_removes_bookings(client, factory, login):
    mentor = factory.mentor()
    template = factory.template(mentor)
    other_template = factory.template(mentor, title="Other")

    booked = factory.slot(mentor, template=template)
    free = factory.slot(mentor, template=template, start=utcnow() + timedelta(days=7))
    untouched = factory.slot(mentor, template=other_template, start=utcnow() + timedelta(days=8))
    factory.booking(booked, factory.student(), template=template)
    other_booking = factory.booking(untouched, factory.student(), template=other_template)

    resp = client.delete(f"/sessions/{template.id}", headers=login(mentor.user))
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["slots_reset"] == 2
    assert data["bookings_removed"] == 1

    db.session.expire_all()
    assert db.session.get(SessionTemplate, template.id) is None
    for slot_id in (booked.id, free.id):
        slot = db.session.get(AvailabilitySlot, slot_id)
        assert slot.is_booked is False
        assert slot.status == STATUS_UPCOMING
        assert slot.session_id is None
    assert Booking.query.filter_by(slot_id=booked.id).count() == 0

    # other templates are left alone
    assert db.session.get(AvailabilitySlot, untouched.id).is_booked is True
    assert db.session.get(Booking, other_booking.id) is not None


def test_delete_keeps_reviews_but_unlinks_them(client, factory, login):
    mentor = factory.mentor()
    template = factory.template(mentor)
    student = factory.student()
    slot = factory.slot(mentor, template=template, start=utcnow() - timedelta(days=1), status=STATUS_COMPLETED)
    booking = factory.booking(slot, student, template=template)
    review = Review(booking_id=booking.id, student_id=student.id, mentor_id=mentor.id, rating=5, review_text="Great")
    db.session.add(review)
    db.session.commit()

    assert client.delete(f"/sessions/{template.id}", headers=login(mentor.user)).status_code == 200

    db.session.expire_all()
    kept = db.session.get(Review, review.id)
    assert kept is not None
    assert kept.booking_id is None


def test_delete_requires_owner(client, factory, login):
    template = factory.template(factory.mentor())
    resp = client.delete(f"/sessions/{template.id}", headers=login(factory.mentor().user))
    assert resp.status_code == 403
    assert db.session.get(SessionTemplate, template.id) is not None


def test_delete_unknown_session(client, factory, login):
    resp = client.delete("/sessions/missing", headers=login(factory.mentor().user))
    assert resp.status_code == 404
