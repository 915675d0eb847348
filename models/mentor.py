from models.db import db, new_id
from utils.timeutil import utcnow

MENTOR_PENDING = "PENDING"
MENTOR_APPROVED = "APPROVED"
MENTOR_REJECTED = "REJECTED"

class Mentor(db.Model):
    __tablename__ = "mentors"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), unique=True, nullable=False, index=True)
    bio = db.Column(db.Text, nullable=True)

    # approval workflow, decided by an ADMIN
    status = db.Column(db.String(20), nullable=False, default=MENTOR_PENDING)
    reviewed_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    rejected_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    user = db.relationship("User", foreign_keys=[user_id])

    @property
    def is_approved(self) -> bool:
        return self.status == MENTOR_APPROVED
