"""
Availability store: publishing a mentor's bookable slots and looking them up.

Publication is split in two phases so that no database transaction is held
open across a call to the meeting-link generator:

    specs = build_slot_specs(entries, duration_mins, tz_name)
    attach_meeting_ids(specs, generator, title)        # network, no txn
    with transaction(db.session):
        publish_slots(db.session, mentor_id, template_id, specs)
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, select

from models.availability import (
    AvailabilitySlot,
    MEDIUMS,
    MEDIUM_OFFLINE,
    MEDIUM_ONLINE,
    STATUS_UPCOMING,
)
from models.booking import Booking
from models.session_template import SessionTemplate
from utils.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from utils.timeutil import add_minutes, combine_local, isoformat_utc, resolve_zone, utcnow

logger = logging.getLogger(__name__)

MSG_NO_SLOTS = "No availability published for this mentor"
MSG_NO_FUTURE_SLOTS = "No upcoming time slots found for this mentor"


@dataclass
class SlotSpec:
    start_time: object
    end_time: object
    is_online: bool
    is_offline: bool
    address: Optional[str] = None
    meeting_id: Optional[str] = None


def _parse_mediums(raw) -> set:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list) or not raw:
        raise ValidationError("medium must be a non-empty list of 'online'/'offline'")
    mediums = set()
    for m in raw:
        value = (m or "").strip().lower() if isinstance(m, str) else None
        if value not in MEDIUMS:
            raise ValidationError(f"Invalid medium: {m!r}")
        mediums.add(value)
    return mediums


def build_slot_specs(entries, duration_mins: int, tz_name: str) -> List[SlotSpec]:
    """Expand [{date, times, medium, address?}] into concrete UTC slot specs."""
    if not isinstance(entries, list) or not entries:
        raise ValidationError("availability must be a non-empty list")

    try:
        zone = resolve_zone(tz_name)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    specs = []
    seen = set()
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValidationError("Each availability entry must be an object")

        day = entry.get("date")
        times = entry.get("times")
        if not isinstance(day, str) or not day.strip():
            raise ValidationError("date is required (YYYY-MM-DD)")
        if not isinstance(times, list) or not times:
            raise ValidationError(f"times must be a non-empty list for {day}")

        mediums = _parse_mediums(entry.get("medium"))
        address = entry.get("address")
        if address is not None and not isinstance(address, str):
            raise ValidationError("address must be a string")
        address = (address or "").strip() or None
        if MEDIUM_OFFLINE in mediums and not address:
            raise ValidationError(f"address is required for offline availability on {day}")
        if address and len(address) > 255:
            raise ValidationError("address must not exceed 255 characters")

        for clock in times:
            if not isinstance(clock, str):
                raise ValidationError(f"Invalid time: {clock!r}")
            try:
                start = combine_local(day.strip(), clock.strip(), zone)
            except ValueError:
                raise ValidationError(f"Invalid date/time: {day} {clock}")
            if start in seen:
                raise ValidationError(f"Duplicate slot at {day} {clock}")
            seen.add(start)

            specs.append(SlotSpec(
                start_time=start,
                end_time=add_minutes(start, duration_mins),
                is_online=MEDIUM_ONLINE in mediums,
                is_offline=MEDIUM_OFFLINE in mediums,
                address=address if MEDIUM_OFFLINE in mediums else None,
            ))
    return specs


def attach_meeting_ids(specs: List[SlotSpec], generator, title: str) -> None:
    for spec in specs:
        if spec.is_online:
            spec.meeting_id = generator.create(spec.start_time, spec.end_time, title)


def load_owned_template(session, template_id: str, mentor_id: str, for_update: bool = False) -> SessionTemplate:
    stmt = select(SessionTemplate).where(SessionTemplate.id == template_id)
    if for_update:
        stmt = stmt.with_for_update()
    template = session.execute(stmt).scalar_one_or_none()
    if template is None:
        raise NotFoundError("Session not found")
    if template.mentor_id != mentor_id:
        raise ForbiddenError("You do not own this session")
    return template


def publish_slots(session, mentor_id: str, template_id: str, specs: List[SlotSpec]) -> List[AvailabilitySlot]:
    """Insert the slots. Caller owns the transaction."""
    load_owned_template(session, template_id, mentor_id)

    slots = []
    for spec in specs:
        slot = AvailabilitySlot(
            mentor_id=mentor_id,
            session_id=template_id,
            start_time=spec.start_time,
            end_time=spec.end_time,
            is_online=spec.is_online,
            is_offline=spec.is_offline,
            is_booked=False,
            status=STATUS_UPCOMING,
            meeting_id=spec.meeting_id,
            address=spec.address,
        )
        session.add(slot)
        slots.append(slot)
    session.flush()
    logger.info("published %d slots for session %s", len(slots), template_id)
    return slots


def serialize_slot(slot: AvailabilitySlot, booking_id: Optional[str] = None) -> dict:
    return {
        "id": slot.id,
        "session_id": slot.session_id,
        "start": isoformat_utc(slot.start_time),
        "end": isoformat_utc(slot.end_time),
        "medium": slot.mediums,
        "booked": booking_id or "",
        "status": slot.status,
        "meeting_id": slot.meeting_id,
        "address": slot.address,
    }


def _slots_with_booking_ids(session, stmt):
    rows = session.execute(
        stmt.add_columns(Booking.id).outerjoin(Booking, Booking.slot_id == AvailabilitySlot.id)
    ).all()
    return [serialize_slot(slot, booking_id if slot.is_booked else None) for slot, booking_id in rows]


def list_future_slots(session, mentor_id: str, now=None):
    """
    Future slots of a mentor, ordered by start. Returns (slots, message);
    message is None unless the list is empty, and tells "never published"
    apart from "nothing upcoming".
    """
    now = now or utcnow()
    stmt = (
        select(AvailabilitySlot)
        .where(AvailabilitySlot.mentor_id == mentor_id, AvailabilitySlot.start_time > now)
        .order_by(AvailabilitySlot.start_time.asc())
    )
    slots = _slots_with_booking_ids(session, stmt)
    if slots:
        return slots, None

    total = session.execute(
        select(func.count()).select_from(AvailabilitySlot).where(AvailabilitySlot.mentor_id == mentor_id)
    ).scalar_one()
    return [], (MSG_NO_SLOTS if total == 0 else MSG_NO_FUTURE_SLOTS)


def list_mentor_slots(session, mentor_id: str):
    stmt = (
        select(AvailabilitySlot)
        .where(AvailabilitySlot.mentor_id == mentor_id)
        .order_by(AvailabilitySlot.start_time.asc())
    )
    return _slots_with_booking_ids(session, stmt)


def delete_slot(session, mentor_id: str, slot_id: str) -> None:
    slot = session.execute(
        select(AvailabilitySlot)
        .where(AvailabilitySlot.id == slot_id, AvailabilitySlot.mentor_id == mentor_id)
        .with_for_update()
    ).scalar_one_or_none()
    if slot is None:
        raise NotFoundError("Availability not found or doesn't belong to you")
    if slot.is_booked:
        raise ConflictError("Cannot delete availability that is already booked")

    has_booking = session.execute(
        select(func.count()).select_from(Booking).where(Booking.slot_id == slot_id)
    ).scalar_one()
    if has_booking:
        raise ConflictError("Cannot delete availability with existing sessions")

    session.delete(slot)
    session.flush()
