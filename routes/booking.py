from flask import Blueprint, request, g

from models import db
from security.rbac import require_roles
from services.booking import (
    book_slot,
    get_booking_for_user,
    list_mentor_bookings,
    list_student_bookings,
    normalize_medium,
    serialize_booking,
    slot_status,
    update_booking_link,
)
from utils.audit import log_event
from utils.auth_context import current_mentor, login_required
from utils.errors import ValidationError
from utils.responses import ok
from utils.roles import ROLE_MENTOR, ROLE_STUDENT
from utils.transaction import transaction

booking_bp = Blueprint("booking", __name__)


# ---------- STUDENTS: book a slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("/sessions/<session_id>/book")
@require_roles(ROLE_STUDENT)
def create_booking(session_id: str):
    data = request.get_json(silent=True) or {}
    medium = normalize_medium(data.get("medium"))
    availability_id = data.get("availability_id")
    if not availability_id or not isinstance(availability_id, str):
        raise ValidationError("availability_id is required")

    user_id = g.user.id

    def audit(booked):
        log_event(
            "BOOKING_CREATE",
            user_id=user_id,
            entity="booking",
            entity_id=booked["booking_id"],
            metadata={"availability_id": availability_id, "session_id": session_id, "medium": medium},
            commit=False,
        )

    result = book_slot(
        db.session,
        template_id=session_id,
        slot_id=availability_id,
        medium=medium,
        user_id=user_id,
        on_booked=audit,
    )
    return ok(result, 201, message="Session booked successfully")


@booking_bp.get("/sessions/status/<availability_id>")
@login_required
def availability_status(availability_id: str):
    return ok(slot_status(db.session, availability_id))


# ---------- booked sessions ----------
@booking_bp.get("/bookings/me")
@require_roles(ROLE_STUDENT)
def my_bookings():
    return ok(list_student_bookings(db.session, g.user.id))


@booking_bp.get("/bookings/mentor")
@require_roles(ROLE_MENTOR)
def mentor_bookings():
    mentor = current_mentor(require_approved=False)
    return ok(list_mentor_bookings(db.session, mentor.id))


@booking_bp.get("/bookings/<booking_id>")
@login_required
def booking_detail(booking_id: str):
    booking = get_booking_for_user(db.session, booking_id, g.user.id)
    return ok(serialize_booking(booking))


@booking_bp.put("/bookings/<booking_id>/link")
@require_roles(ROLE_MENTOR)
def set_booking_link(booking_id: str):
    mentor = current_mentor(require_approved=False)
    data = request.get_json(silent=True) or {}

    with transaction(db.session):
        booking = update_booking_link(db.session, mentor.id, booking_id, data.get("link"))
        log_event(
            "BOOKING_LINK_UPDATE",
            user_id=g.user.id,
            entity="booking",
            entity_id=booking.id,
            metadata={"medium": booking.medium, "cleared": not (data.get("link") or "").strip()},
            commit=False,
        )
        payload = serialize_booking(booking)

    return ok(payload, message="Meeting details updated")
