from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from models.availability import STATUS_COMPLETED
from models.booking import Booking
from models.mentor import Mentor
from models.review import Review
from models.student import Student
from utils.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from utils.timeutil import isoformat_utc, utcnow


def _parse_rating(raw) -> int:
    if raw is None or raw == "":
        raise ValidationError("Rating is required")
    if isinstance(raw, int) and not isinstance(raw, bool):
        rating = raw
    elif isinstance(raw, str) and raw.strip().isdigit():
        rating = int(raw.strip())
    else:
        raise ValidationError("Rating must be an integer between 1 and 5")
    if rating < 1 or rating > 5:
        raise ValidationError("Rating must be between 1 and 5")
    return rating


def serialize_review(review: Review, student_name=None) -> dict:
    return {
        "id": review.id,
        "booking_id": review.booking_id,
        "mentor_id": review.mentor_id,
        "student_id": review.student_id,
        "student_name": student_name,
        "rating": review.rating,
        "review_text": review.review_text,
        "created_at": isoformat_utc(review.created_at),
    }


def create_review(session, *, booking_id: str, user_id: str, rating, review_text, now=None) -> Review:
    """Caller owns the transaction."""
    rating = _parse_rating(rating)
    text = (review_text or "").strip() if isinstance(review_text, str) else ""
    if not text:
        raise ValidationError("Review text is required")

    now = now or utcnow()
    booking = session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")

    student = session.execute(
        select(Student).where(Student.user_id == user_id)
    ).scalar_one_or_none()
    if student is None or booking.student_id != student.id:
        raise ForbiddenError("Only the student who booked this session can review it")

    slot = booking.slot
    if slot.status != STATUS_COMPLETED and slot.end_time > now:
        raise ConflictError("Session is not completed yet")

    exists = session.execute(
        select(Review.id).where(Review.booking_id == booking.id)
    ).scalar_one_or_none()
    if exists:
        raise ConflictError("You have already reviewed this session")

    review = Review(
        booking_id=booking.id,
        student_id=student.id,
        mentor_id=slot.mentor_id,
        rating=rating,
        review_text=text,
    )
    session.add(review)
    try:
        session.flush()
    except IntegrityError as exc:
        raise ConflictError("You have already reviewed this session") from exc
    return review


def mentor_reviews(session, mentor_id: str) -> dict:
    if session.get(Mentor, mentor_id) is None:
        raise NotFoundError("Mentor not found")

    rows = session.execute(
        select(Review, Student)
        .join(Student, Review.student_id == Student.id)
        .where(Review.mentor_id == mentor_id)
        .order_by(Review.created_at.desc())
    ).all()
    average = session.execute(
        select(func.avg(Review.rating)).where(Review.mentor_id == mentor_id)
    ).scalar_one()

    return {
        "reviews": [serialize_review(r, s.user.name) for r, s in rows],
        "count": len(rows),
        "average_rating": round(float(average), 2) if average is not None else None,
    }
