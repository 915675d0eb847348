from models.db import db, new_id
from utils.timeutil import utcnow

STATUS_UPCOMING = "Upcoming"
STATUS_ONGOING = "Ongoing"
STATUS_COMPLETED = "Completed"
STATUS_CANCELLED = "Cancelled"

MEDIUM_ONLINE = "online"
MEDIUM_OFFLINE = "offline"
MEDIUMS = (MEDIUM_ONLINE, MEDIUM_OFFLINE)

class AvailabilitySlot(db.Model):
    __tablename__ = "availability_slots"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    mentor_id = db.Column(db.String(36), db.ForeignKey("mentors.id"), nullable=False, index=True)
    # template this slot is offered for / booked against; NULL once unlinked
    session_id = db.Column(db.String(36), db.ForeignKey("session_templates.id"), nullable=True, index=True)

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)

    # set once at creation
    is_online = db.Column(db.Boolean, default=False, nullable=False)
    is_offline = db.Column(db.Boolean, default=False, nullable=False)

    is_booked = db.Column(db.Boolean, default=False, nullable=False)
    status = db.Column(db.String(20), default=STATUS_UPCOMING, nullable=False, index=True)

    meeting_id = db.Column(db.String(255), nullable=True)  # online slots
    address = db.Column(db.String(255), nullable=True)     # offline slots

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    mentor = db.relationship("Mentor")
    template = db.relationship("SessionTemplate")
    booking = db.relationship("Booking", back_populates="slot", uselist=False)

    __table_args__ = (
        db.CheckConstraint("start_time < end_time", name="ck_slot_start_before_end"),
    )

    @property
    def mediums(self) -> list:
        out = []
        if self.is_online:
            out.append(MEDIUM_ONLINE)
        if self.is_offline:
            out.append(MEDIUM_OFFLINE)
        return out

    def supports(self, medium: str) -> bool:
        return medium in self.mediums
