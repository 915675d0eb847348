from flask import Blueprint, current_app, g, request

from models import db
from security.rbac import require_roles
from services.availability import (
    attach_meeting_ids,
    build_slot_specs,
    load_owned_template,
    publish_slots,
    serialize_slot,
)
from services.templates import (
    EDITABLE_FIELDS,
    create_template,
    delete_template,
    list_mentor_templates,
    serialize_template,
    template_detail,
    update_template,
    validate_template_fields,
)
from utils.audit import log_event
from utils.auth_context import current_mentor
from utils.errors import ValidationError
from utils.responses import ok
from utils.roles import ROLE_MENTOR, ROLE_STUDENT
from utils.transaction import transaction

sessions_bp = Blueprint("sessions", __name__, url_prefix="/sessions")


def _prepare_availability(data, duration_mins: int, title: str):
    """Build slot specs, end the read transaction, then fetch meeting ids."""
    tz_name = data.get("timezone")
    if tz_name is not None and not isinstance(tz_name, str):
        raise ValidationError("timezone must be an IANA zone name")
    tz_name = (tz_name or "").strip() or current_app.config.get("DEFAULT_TIMEZONE", "UTC")
    specs = build_slot_specs(data.get("availability"), duration_mins, tz_name)

    db.session.rollback()
    attach_meeting_ids(specs, current_app.extensions["meeting_links"], title)
    return specs


# ---------- MENTOR: create a session template (optionally with availability) ----------
@sessions_bp.post("")
@require_roles(ROLE_MENTOR)
def create_session():
    mentor = current_mentor()
    mentor_id, user_id = mentor.id, g.user.id
    data = request.get_json(silent=True) or {}
    fields = validate_template_fields(data)

    specs = []
    if data.get("availability") is not None:
        specs = _prepare_availability(data, fields["duration_mins"], fields["title"])

    with transaction(db.session):
        template = create_template(db.session, mentor_id, fields)
        slots = publish_slots(db.session, mentor_id, template.id, specs) if specs else []
        log_event(
            "SESSION_CREATE",
            user_id=user_id,
            entity="session_template",
            entity_id=template.id,
            metadata={"slots": len(slots)},
            commit=False,
        )
        payload = serialize_template(template)
        payload["availability"] = [serialize_slot(s) for s in slots]

    return ok(payload, 201, message="Session created")


@sessions_bp.post("/<session_id>/availability")
@require_roles(ROLE_MENTOR)
def add_availability(session_id: str):
    mentor = current_mentor()
    mentor_id, user_id = mentor.id, g.user.id
    data = request.get_json(silent=True) or {}

    template = load_owned_template(db.session, session_id, mentor_id)

    specs = _prepare_availability(data, template.duration_mins, template.title)

    with transaction(db.session):
        slots = publish_slots(db.session, mentor_id, session_id, specs)
        log_event(
            "AVAILABILITY_PUBLISH",
            user_id=user_id,
            entity="session_template",
            entity_id=session_id,
            metadata={"slots": len(slots)},
            commit=False,
        )
        payload = [serialize_slot(s) for s in slots]

    return ok(payload, 201, message=f"{len(payload)} time slots published")


@sessions_bp.get("/mentor/list")
@require_roles(ROLE_MENTOR)
def my_sessions():
    mentor = current_mentor(require_approved=False)
    return ok(list_mentor_templates(db.session, mentor.id))


@sessions_bp.get("/<session_id>")
@require_roles(ROLE_STUDENT, ROLE_MENTOR)
def get_session(session_id: str):
    return ok(template_detail(db.session, session_id))


@sessions_bp.put("/<session_id>")
@require_roles(ROLE_MENTOR)
def edit_session(session_id: str):
    mentor = current_mentor()
    data = request.get_json(silent=True) or {}

    with transaction(db.session):
        template = update_template(db.session, mentor.id, session_id, data)
        log_event(
            "SESSION_UPDATE",
            user_id=g.user.id,
            entity="session_template",
            entity_id=template.id,
            metadata={"fields": sorted(k for k in data if k in EDITABLE_FIELDS)},
            commit=False,
        )
        payload = serialize_template(template)

    return ok(payload, message="Session updated")


@sessions_bp.delete("/<session_id>")
@require_roles(ROLE_MENTOR)
def remove_session(session_id: str):
    mentor = current_mentor(require_approved=False)

    with transaction(db.session):
        result = delete_template(db.session, mentor.id, session_id)
        log_event(
            "SESSION_DELETE",
            user_id=g.user.id,
            entity="session_template",
            entity_id=session_id,
            metadata=result,
            commit=False,
        )

    return ok(result, message="Session deleted")
