from .db import db
from .user import User, Role, user_roles
from .student import Student
from .mentor import Mentor
from .audit_log import AuditLog
from .auth_session import AuthSession
from .session_template import SessionTemplate
from .availability import AvailabilitySlot
from .booking import Booking
from .review import Review
