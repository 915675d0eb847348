from flask import Blueprint, request, current_app, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.user import User
from models.student import Student
from models.mentor import Mentor, MENTOR_PENDING
from security.password import hash_password, verify_password
from security.session import create_session, revoke_session, revoke_all_sessions, token_from_request
from security.csrf import issue_csrf_token
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import ConflictError
from utils.responses import ok, fail
from utils.roles import ROLE_MENTOR, ROLE_STUDENT, role_names
from utils.seed import get_role
from utils.transaction import transaction


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

REGISTRABLE_ROLES = {"student": ROLE_STUDENT, "mentor": ROLE_MENTOR}


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _text(data, key) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = _text(data, "email").lower()
    password = data.get("password") or ""
    name = _text(data, "name")
    role = _text(data, "role").lower()

    if not _is_valid_email(email):
        return fail("Invalid email", 400)
    if not name or len(name) > 120:
        return fail("Name is required", 400)
    if role not in REGISTRABLE_ROLES:
        return fail("Role must be either 'student' or 'mentor'", 400)

    min_len = current_app.config.get("PASSWORD_MIN_LENGTH", 8)
    if not isinstance(password, str) or len(password) < min_len:
        return fail(f"Password must be at least {min_len} characters", 400)

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return fail("Email already registered", 409)

    with transaction(db.session):
        user = User(email=email, password_hash=hash_password(password), name=name)
        user.roles.append(get_role(REGISTRABLE_ROLES[role]))
        db.session.add(user)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError("Email already registered", 409) from exc

        if role == "student":
            profile = Student(user_id=user.id)
        else:
            bio = _text(data, "bio") or None
            profile = Mentor(user_id=user.id, bio=bio, status=MENTOR_PENDING)
        db.session.add(profile)
        db.session.flush()

        log_event("REGISTER_SUCCESS", user_id=user.id, metadata={"role": role}, commit=False)

    payload = {"user_id": user.id, "role": role}
    if role == "mentor":
        payload["mentor_id"] = profile.id
        payload["status"] = profile.status
    else:
        payload["student_id"] = profile.id
    return ok(payload, 201, message="Registered successfully")


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = _text(data, "email").lower()
    password = data.get("password")
    if not email or not isinstance(password, str) or not password:
        return fail("Invalid credentials", 401)

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return fail("Invalid credentials", 401)

    # Rotate: revoke any existing sessions for this user
    revoked_count = revoke_all_sessions(user.id)

    raw_token = create_session(user.id)
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "mentorslot_session")
    max_age = current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)

    resp, status = ok(
        {"token": raw_token, "user_id": user.id, "roles": role_names(user.roles)},
        message="Login OK",
    )
    resp.set_cookie(
        cookie_name,
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=max_age,
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"revoked_sessions": revoked_count})
    return resp, status


@auth_bp.get("/me")
@login_required
def me():
    user = g.user
    data = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "roles": role_names(user.roles),
    }
    mentor = Mentor.query.filter_by(user_id=user.id).first()
    if mentor:
        data["mentor"] = {"id": mentor.id, "status": mentor.status, "bio": mentor.bio}
    student = Student.query.filter_by(user_id=user.id).first()
    if student:
        data["student"] = {"id": student.id}
    return ok(data)


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "mentorslot_session")
    raw_token, _ = token_from_request()

    revoke_session(raw_token)
    log_event("LOGOUT", user_id=g.user.id)

    resp, status = ok(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, status
