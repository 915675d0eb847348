from models.db import db, new_id
from utils.timeutil import utcnow

SESSION_TYPES = (
    "Course Topic Tuition",
    "Project Help",
    "Career Guidance",
    "Competition Prep",
    "Productivity",
    "ECA",
)

class SessionTemplate(db.Model):
    """A bookable one-on-one offering; slots are published against it."""
    __tablename__ = "session_templates"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    mentor_id = db.Column(db.String(36), db.ForeignKey("mentors.id"), nullable=False, index=True)

    title = db.Column(db.String(160), nullable=False)
    type = db.Column(db.String(40), nullable=False)
    description = db.Column(db.Text, nullable=False)
    duration_mins = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Integer, nullable=False)  # virtual currency units

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    mentor = db.relationship("Mentor")
