"""
Booking transaction and booked-session queries.

book_slot() runs every check and the claim in a single transaction. The claim
itself is a conditional UPDATE (only flips an unbooked slot that no booked
slot of the same mentor overlaps) backed by the uq_booking_slot_once
constraint, so two concurrent bookers cannot both win even where the database
ignores row locks. Where it honours them, the mentor row lock serializes
bookings per mentor.
"""
import logging
from urllib.parse import urlparse

from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from models.availability import AvailabilitySlot, MEDIUMS, MEDIUM_ONLINE
from models.booking import Booking
from models.mentor import Mentor
from models.session_template import SessionTemplate
from models.student import Student
from utils.errors import (
    BookingVerificationFailed,
    ForbiddenError,
    MediumNotSupported,
    MentorMismatch,
    NotFoundError,
    SessionNotFound,
    SlotAlreadyBooked,
    SlotNotFound,
    SlotOverlap,
    SlotStarted,
    StudentNotFound,
    ValidationError,
)
from utils.timeutil import isoformat_utc, utcnow
from utils.transaction import transaction

logger = logging.getLogger(__name__)

MAX_PLACE_LENGTH = 255


def normalize_medium(raw) -> str:
    medium = (raw or "").strip().lower() if isinstance(raw, str) else ""
    if medium not in MEDIUMS:
        raise ValidationError("Medium must be either 'online' or 'offline'")
    return medium


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    # half-open: touching endpoints do not overlap
    return a_start < b_end and a_end > b_start


def find_overlapping_bookings(session, slot: AvailabilitySlot):
    """Booked slots of the same mentor whose interval intersects `slot`."""
    return session.execute(
        select(AvailabilitySlot).where(
            AvailabilitySlot.mentor_id == slot.mentor_id,
            AvailabilitySlot.id != slot.id,
            AvailabilitySlot.is_booked.is_(True),
            AvailabilitySlot.start_time < slot.end_time,
            AvailabilitySlot.end_time > slot.start_time,
        )
    ).scalars().all()


def _claim_slot(session, slot: AvailabilitySlot, template_id: str) -> int:
    other = aliased(AvailabilitySlot)
    overlapping = exists().where(
        other.mentor_id == slot.mentor_id,
        other.id != slot.id,
        other.is_booked.is_(True),
        other.start_time < slot.end_time,
        other.end_time > slot.start_time,
    )
    result = session.execute(
        update(AvailabilitySlot)
        .where(
            AvailabilitySlot.id == slot.id,
            AvailabilitySlot.is_booked.is_(False),
            ~overlapping,
        )
        .values(is_booked=True, session_id=template_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _verify_claim(session, slot_id: str, template_id: str) -> bool:
    row = session.execute(
        select(AvailabilitySlot.is_booked, AvailabilitySlot.session_id)
        .where(AvailabilitySlot.id == slot_id)
    ).one_or_none()
    return row is not None and bool(row.is_booked) and row.session_id == template_id


def book_slot(session, *, template_id: str, slot_id: str, medium, user_id: str, now=None, on_booked=None) -> dict:
    """
    Book `slot_id` against `template_id` for the student behind `user_id`.

    `on_booked(result)` runs inside the transaction after the claim is
    verified; anything it writes commits or rolls back with the booking.
    """
    medium = normalize_medium(medium)
    now = now or utcnow()

    with transaction(session):
        student = session.execute(
            select(Student).where(Student.user_id == user_id)
        ).scalar_one_or_none()
        if student is None:
            raise StudentNotFound()

        template = session.get(SessionTemplate, template_id)
        if template is None:
            raise SessionNotFound()

        slot = session.execute(
            select(AvailabilitySlot).where(AvailabilitySlot.id == slot_id).with_for_update()
        ).scalar_one_or_none()
        if slot is None:
            raise SlotNotFound()
        if slot.is_booked:
            raise SlotAlreadyBooked()
        if slot.mentor_id != template.mentor_id:
            raise MentorMismatch()
        if not slot.supports(medium):
            raise MediumNotSupported(medium)
        if slot.start_time <= now:
            raise SlotStarted()
        # one booking decision per mentor at a time
        session.execute(
            select(Mentor.id).where(Mentor.id == slot.mentor_id).with_for_update()
        )
        if find_overlapping_bookings(session, slot):
            raise SlotOverlap()

        if _claim_slot(session, slot, template.id) == 0:
            if find_overlapping_bookings(session, slot):
                raise SlotOverlap()
            raise SlotAlreadyBooked()

        booking = Booking(
            slot_id=slot.id,
            student_id=student.id,
            medium=medium,
            place=slot.address if medium != MEDIUM_ONLINE else None,
        )
        session.add(booking)
        try:
            session.flush()
        except IntegrityError as exc:
            raise SlotAlreadyBooked() from exc

        if not _verify_claim(session, slot.id, template.id):
            logger.error("booking %s: slot %s not marked booked after claim", booking.id, slot.id)
            raise BookingVerificationFailed()

        result = {
            "booking_id": booking.id,
            "availability_id": slot.id,
            "session_id": template.id,
            "medium": medium,
            "start": isoformat_utc(slot.start_time),
            "end": isoformat_utc(slot.end_time),
        }
        if on_booked is not None:
            on_booked(result)

    logger.info("booked slot %s (booking %s)", slot_id, result["booking_id"])
    return result


def slot_status(session, slot_id: str) -> dict:
    slot = session.get(AvailabilitySlot, slot_id)
    if slot is None:
        raise SlotNotFound()

    template = slot.template
    booking = slot.booking
    return {
        "availability_id": slot.id,
        "status": slot.status,
        "is_booked": slot.is_booked,
        "start": isoformat_utc(slot.start_time),
        "end": isoformat_utc(slot.end_time),
        "medium": slot.mediums,
        "mentor_name": slot.mentor.user.name if slot.mentor else None,
        "session": {
            "id": template.id,
            "title": template.title,
            "price": template.price,
            "duration_mins": template.duration_mins,
        } if template else None,
        "booked_medium": booking.medium if booking else None,
    }


def serialize_booking(booking: Booking) -> dict:
    slot = booking.slot
    template = slot.template
    return {
        "booking_id": booking.id,
        "availability_id": slot.id,
        "medium": booking.medium,
        "start": isoformat_utc(slot.start_time),
        "end": isoformat_utc(slot.end_time),
        "status": slot.status,
        "session": {
            "id": template.id,
            "title": template.title,
            "type": template.type,
            "price": template.price,
        } if template else None,
        "mentor": {"id": slot.mentor_id, "name": slot.mentor.user.name},
        "student": {"id": booking.student_id, "name": booking.student.user.name},
        "meeting_id": slot.meeting_id,
        "link": booking.link,
        "place": booking.place,
        "created_at": isoformat_utc(booking.created_at),
    }


def list_student_bookings(session, user_id: str):
    student = session.execute(
        select(Student).where(Student.user_id == user_id)
    ).scalar_one_or_none()
    if student is None:
        raise StudentNotFound()

    bookings = session.execute(
        select(Booking)
        .join(AvailabilitySlot, Booking.slot_id == AvailabilitySlot.id)
        .where(Booking.student_id == student.id)
        .order_by(AvailabilitySlot.start_time.desc())
    ).scalars().all()
    return [serialize_booking(b) for b in bookings]


def list_mentor_bookings(session, mentor_id: str):
    bookings = session.execute(
        select(Booking)
        .join(AvailabilitySlot, Booking.slot_id == AvailabilitySlot.id)
        .where(AvailabilitySlot.mentor_id == mentor_id)
        .order_by(AvailabilitySlot.start_time.desc())
    ).scalars().all()
    return [serialize_booking(b) for b in bookings]


def get_booking_for_user(session, booking_id: str, user_id: str) -> Booking:
    booking = session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")

    mentor = session.get(Mentor, booking.slot.mentor_id)
    if booking.student.user_id != user_id and (mentor is None or mentor.user_id != user_id):
        raise ForbiddenError("You do not have access to this booking")
    return booking


def _valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def update_booking_link(session, mentor_id: str, booking_id: str, link) -> Booking:
    """Set the meeting link (online) or place (offline); "" clears it. Caller owns the transaction."""
    if not isinstance(link, str):
        raise ValidationError("link is required")
    link = link.strip()

    booking = session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    if booking.slot.mentor_id != mentor_id:
        raise ForbiddenError("You do not own this booking")

    if booking.medium == MEDIUM_ONLINE:
        if link and not _valid_url(link):
            raise ValidationError("Meeting link must be a valid http(s) URL")
        if len(link) > 500:
            raise ValidationError("Meeting link is too long")
        booking.link = link or None
    else:
        if len(link) > MAX_PLACE_LENGTH:
            raise ValidationError(f"Place must not exceed {MAX_PLACE_LENGTH} characters")
        booking.place = link or None

    session.flush()
    return booking
