from flask import Blueprint, g, request

from models import db
from models.mentor import Mentor, MENTOR_APPROVED, MENTOR_PENDING, MENTOR_REJECTED
from security.rbac import require_roles
from utils.audit import log_event
from utils.emailer import mentor_review_email, send_email
from utils.errors import NotFoundError, ValidationError
from utils.responses import ok
from utils.roles import ROLE_ADMIN
from utils.timeutil import isoformat_utc, utcnow
from utils.transaction import transaction

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

MENTOR_STATUSES = (MENTOR_PENDING, MENTOR_APPROVED, MENTOR_REJECTED)


def _mentor_json(m: Mentor) -> dict:
    return {
        "id": m.id,
        "user_id": m.user_id,
        "name": m.user.name,
        "email": m.user.email,
        "bio": m.bio,
        "status": m.status,
        "created_at": isoformat_utc(m.created_at),
        "reviewed_at": isoformat_utc(m.reviewed_at),
        "rejected_reason": m.rejected_reason,
    }


@admin_bp.get("/mentors")
@require_roles(ROLE_ADMIN)
def list_mentors():
    status = (request.args.get("status") or "").strip().upper()
    q = Mentor.query
    if status:
        if status not in MENTOR_STATUSES:
            raise ValidationError("status must be PENDING, APPROVED or REJECTED")
        q = q.filter(Mentor.status == status)

    rows = q.order_by(Mentor.created_at.desc()).limit(200).all()
    return ok([_mentor_json(m) for m in rows])


@admin_bp.post("/mentors/<mentor_id>/review")
@require_roles(ROLE_ADMIN)
def review_mentor(mentor_id: str):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    reason = data.get("reason")
    if not isinstance(status, str) or status.strip().upper() not in (MENTOR_APPROVED, MENTOR_REJECTED):
        raise ValidationError("status must be APPROVED or REJECTED")
    if reason is not None and not isinstance(reason, str):
        raise ValidationError("reason must be a string")
    status = status.strip().upper()
    reason = (reason or "").strip() or None
    if reason and len(reason) > 255:
        raise ValidationError("reason must not exceed 255 characters")

    admin_id = g.user.id
    with transaction(db.session):
        mentor = db.session.get(Mentor, mentor_id)
        if mentor is None:
            raise NotFoundError("Mentor not found")

        mentor.status = status
        mentor.reviewed_by = admin_id
        mentor.reviewed_at = utcnow()
        mentor.rejected_reason = reason if status == MENTOR_REJECTED else None

        log_event(
            "ADMIN_MENTOR_REVIEW",
            user_id=admin_id,
            entity="mentor",
            entity_id=mentor.id,
            metadata={"status": status, "reason": reason},
            commit=False,
        )
        payload = _mentor_json(mentor)

    # no connection is checked out during the SMTP round trip
    subject, body = mentor_review_email(payload["name"], status, reason)
    sent, error = send_email(payload["email"], subject, body)
    log_event(
        "ADMIN_MENTOR_REVIEW_EMAIL",
        user_id=admin_id,
        entity="mentor",
        entity_id=mentor_id,
        metadata={"sent": sent, "error": error},
    )

    return ok(payload, message="Mentor updated")
