from .health import health_bp
from .auth import auth_bp
from .admin import admin_bp
from .audit_logs import audit_bp
from .sessions import sessions_bp
from .availability import availability_bp
from .booking import booking_bp
from .reviews import reviews_bp

ALL_BLUEPRINTS = (
    health_bp,
    auth_bp,
    admin_bp,
    audit_bp,
    sessions_bp,
    availability_bp,
    booking_bp,
    reviews_bp,
)
