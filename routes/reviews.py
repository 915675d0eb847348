from flask import Blueprint, request, g

from models import db
from security.rbac import require_roles
from services.reviews import create_review, mentor_reviews, serialize_review
from utils.audit import log_event
from utils.auth_context import login_required
from utils.responses import ok
from utils.roles import ROLE_STUDENT
from utils.transaction import transaction

reviews_bp = Blueprint("reviews", __name__)


@reviews_bp.post("/bookings/<booking_id>/reviews")
@require_roles(ROLE_STUDENT)
def give_review(booking_id: str):
    data = request.get_json(silent=True) or {}

    with transaction(db.session):
        review = create_review(
            db.session,
            booking_id=booking_id,
            user_id=g.user.id,
            rating=data.get("rating"),
            review_text=data.get("review_text"),
        )
        log_event(
            "REVIEW_CREATE",
            user_id=g.user.id,
            entity="review",
            entity_id=review.id,
            metadata={"booking_id": booking_id, "rating": review.rating},
            commit=False,
        )
        payload = serialize_review(review, g.user.name)

    return ok(payload, 201, message="Review submitted")


@reviews_bp.get("/mentors/<mentor_id>/reviews")
@login_required
def list_reviews(mentor_id: str):
    return ok(mentor_reviews(db.session, mentor_id))
