"""
Session templates: the mentor's bookable offerings.

All mutating functions expect the caller to hold a transaction().
"""
import logging

from sqlalchemy import delete, func, select, update

from models.availability import AvailabilitySlot, STATUS_UPCOMING
from models.booking import Booking
from models.review import Review
from models.session_template import SESSION_TYPES, SessionTemplate
from services.availability import load_owned_template
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.timeutil import isoformat_utc, utcnow

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "type", "description", "duration_mins", "price")


def _positive_int(data, key) -> int:
    raw = data.get(key)
    if isinstance(raw, bool) or not isinstance(raw, (int, str)):
        raise ValidationError(f"{key} must be a positive integer")
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{key} must be a positive integer")
    if value <= 0:
        raise ValidationError(f"{key} must be a positive integer")
    return value


def validate_template_fields(data: dict, partial: bool = False) -> dict:
    """Return the cleaned subset of EDITABLE_FIELDS present in `data`."""
    clean = {}
    for key in EDITABLE_FIELDS:
        if key not in data:
            if not partial:
                raise ValidationError(f"{key} is required")
            continue

        if key in ("duration_mins", "price"):
            clean[key] = _positive_int(data, key)
            continue

        value = data.get(key)
        value = value.strip() if isinstance(value, str) else ""
        if not value:
            raise ValidationError(f"{key} is required")
        clean[key] = value

    if "title" in clean and len(clean["title"]) > 160:
        raise ValidationError("title must not exceed 160 characters")
    if "type" in clean and clean["type"] not in SESSION_TYPES:
        raise ValidationError("type must be one of: " + ", ".join(SESSION_TYPES))
    return clean


def serialize_template(template: SessionTemplate) -> dict:
    return {
        "id": template.id,
        "mentor_id": template.mentor_id,
        "title": template.title,
        "type": template.type,
        "description": template.description,
        "duration_mins": template.duration_mins,
        "price": template.price,
        "created_at": isoformat_utc(template.created_at),
    }


def create_template(session, mentor_id: str, fields: dict) -> SessionTemplate:
    template = SessionTemplate(mentor_id=mentor_id, **fields)
    session.add(template)
    session.flush()
    return template


def list_mentor_templates(session, mentor_id: str):
    templates = session.execute(
        select(SessionTemplate)
        .where(SessionTemplate.mentor_id == mentor_id)
        .order_by(SessionTemplate.created_at.desc())
    ).scalars().all()
    return [serialize_template(t) for t in templates]


def template_detail(session, template_id: str, now=None) -> dict:
    template = session.get(SessionTemplate, template_id)
    if template is None:
        raise NotFoundError("Session not found")

    now = now or utcnow()
    free_slots = session.execute(
        select(func.count()).select_from(AvailabilitySlot).where(
            AvailabilitySlot.session_id == template.id,
            AvailabilitySlot.is_booked.is_(False),
            AvailabilitySlot.start_time > now,
        )
    ).scalar_one()

    out = serialize_template(template)
    out["mentor_name"] = template.mentor.user.name
    out["available_slots"] = free_slots
    return out


def update_template(session, mentor_id: str, template_id: str, data: dict) -> SessionTemplate:
    fields = validate_template_fields(data, partial=True)
    if not fields:
        raise ValidationError("Nothing to update")

    template = load_owned_template(session, template_id, mentor_id, for_update=True)

    if "duration_mins" in fields and fields["duration_mins"] != template.duration_mins:
        booked = session.execute(
            select(func.count()).select_from(AvailabilitySlot).where(
                AvailabilitySlot.session_id == template.id,
                AvailabilitySlot.is_booked.is_(True),
            )
        ).scalar_one()
        if booked:
            raise ConflictError("Cannot change duration while the session has booked slots")

    for key, value in fields.items():
        setattr(template, key, value)
    session.flush()
    return template


def delete_template(session, mentor_id: str, template_id: str) -> dict:
    """
    Remove a template: drop the bookings of its slots, hand the slots back
    to the mentor as free Upcoming availability, then delete the template.
    """
    template = load_owned_template(session, template_id, mentor_id, for_update=True)

    slot_ids = session.execute(
        select(AvailabilitySlot.id).where(AvailabilitySlot.session_id == template.id)
    ).scalars().all()

    removed = 0
    if slot_ids:
        booking_ids = select(Booking.id).where(Booking.slot_id.in_(slot_ids))
        session.execute(
            update(Review)
            .where(Review.booking_id.in_(booking_ids))
            .values(booking_id=None)
            .execution_options(synchronize_session=False)
        )
        removed = session.execute(
            delete(Booking)
            .where(Booking.slot_id.in_(slot_ids))
            .execution_options(synchronize_session=False)
        ).rowcount

    reset = session.execute(
        update(AvailabilitySlot)
        .where(AvailabilitySlot.session_id == template.id)
        .values(is_booked=False, status=STATUS_UPCOMING, session_id=None)
        .execution_options(synchronize_session=False)
    ).rowcount

    session.delete(template)
    session.flush()
    logger.info("deleted session %s: %d slots reset, %d bookings removed", template_id, reset, removed)
    return {"session_id": template_id, "slots_reset": reset, "bookings_removed": removed}
