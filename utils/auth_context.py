from functools import wraps
from flask import g
from security.session import token_from_request, get_session_for_token
from models import db
from models.user import User
from models.mentor import Mentor
from utils.errors import ForbiddenError
from utils.responses import fail

def load_current_user():
    raw_token, source = token_from_request()
    sess = get_session_for_token(raw_token)
    if not sess:
        g.user = None
        g.auth_session = None
        g.auth_source = None
        return
    g.auth_session = sess
    g.auth_source = source
    g.user = db.session.get(User, sess.user_id)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return fail("Authentication required", 401)
        return fn(*args, **kwargs)
    return wrapper

def current_mentor(require_approved: bool = True) -> Mentor:
    mentor = Mentor.query.filter_by(user_id=g.user.id).first()
    if mentor is None:
        raise ForbiddenError("User is not registered as a mentor")
    if require_approved and not mentor.is_approved:
        raise ForbiddenError("Mentor account is not approved")
    return mentor
