from models.db import db, new_id
from utils.timeutil import utcnow

class Review(db.Model):
    __tablename__ = "reviews"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    # set to NULL when the booking is removed by a template deletion
    booking_id = db.Column(db.String(36), db.ForeignKey("bookings.id"), nullable=True, unique=True)
    student_id = db.Column(db.String(36), db.ForeignKey("students.id"), nullable=False, index=True)
    mentor_id = db.Column(db.String(36), db.ForeignKey("mentors.id"), nullable=False, index=True)

    rating = db.Column(db.Integer, nullable=False)
    review_text = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating_range"),
    )
