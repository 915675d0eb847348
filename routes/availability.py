from flask import Blueprint, g

from models import db
from models.mentor import Mentor
from security.rbac import require_roles
from services.availability import delete_slot, list_future_slots, list_mentor_slots
from utils.audit import log_event
from utils.auth_context import current_mentor
from utils.errors import NotFoundError
from utils.responses import ok
from utils.roles import ROLE_MENTOR, ROLE_STUDENT
from utils.transaction import transaction

availability_bp = Blueprint("availability", __name__, url_prefix="/mentor/availability")


# ---------- STUDENTS/MENTORS: a mentor's upcoming free time ----------
@availability_bp.get("/<mentor_id>")
@require_roles(ROLE_STUDENT, ROLE_MENTOR)
def mentor_free_time(mentor_id: str):
    if db.session.get(Mentor, mentor_id) is None:
        raise NotFoundError("Mentor not found")

    slots, message = list_future_slots(db.session, mentor_id)
    return ok(slots, message=message)


# ---------- MENTOR: own slots ----------
@availability_bp.get("")
@require_roles(ROLE_MENTOR)
def my_availability():
    mentor = current_mentor(require_approved=False)
    return ok(list_mentor_slots(db.session, mentor.id))


@availability_bp.delete("/<slot_id>")
@require_roles(ROLE_MENTOR)
def remove_availability(slot_id: str):
    mentor = current_mentor(require_approved=False)

    with transaction(db.session):
        delete_slot(db.session, mentor.id, slot_id)
        log_event(
            "AVAILABILITY_DELETE",
            user_id=g.user.id,
            entity="availability_slot",
            entity_id=slot_id,
            commit=False,
        )

    return ok({"availability_id": slot_id}, message="Availability deleted")
