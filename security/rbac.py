from functools import wraps
from flask import g

from utils.responses import fail

def require_roles(*role_names: str):
    """
    Usage: @require_roles("MENTOR") or @require_roles("STUDENT", "MENTOR")
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return fail("Authentication required", 401)

            user_roles = {r.name for r in user.roles}
            if not user_roles.intersection(role_names):
                allowed = " or ".join(r.lower() + "s" for r in role_names)
                return fail(f"This API is for {allowed} only", 403)

            return fn(*args, **kwargs)
        return wrapper
    return decorator
