from models.db import db, new_id
from utils.timeutil import utcnow

class Booking(db.Model):
    """A student's claim on one availability slot (one-on-one session)."""
    __tablename__ = "bookings"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    slot_id = db.Column(db.String(36), db.ForeignKey("availability_slots.id"), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey("students.id"), nullable=False, index=True)

    medium = db.Column(db.String(10), nullable=False)  # online, offline
    place = db.Column(db.String(255), nullable=True)
    link = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    slot = db.relationship("AvailabilitySlot", back_populates="booking")
    student = db.relationship("Student")

    __table_args__ = (
        # Hard business-rule: only one booking can exist per slot (prevents double booking)
        db.UniqueConstraint("slot_id", name="uq_booking_slot_once"),
    )
