from datetime import timedelta

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.availability import AvailabilitySlot, STATUS_UPCOMING
from models.booking import Booking
from models.mentor import Mentor, MENTOR_APPROVED
from models.session_template import SessionTemplate
from models.student import Student
from models.user import User
from security.password import hash_password
from utils.roles import ROLE_ADMIN, ROLE_MENTOR, ROLE_STUDENT
from utils.seed import get_role
from utils.timeutil import utcnow

PASSWORD = "correct-horse-battery"


class FakeMeetingLinks:
    def __init__(self):
        self.calls = []

    def create(self, start_time, end_time, title):
        self.calls.append((start_time, end_time, title))
        return f"https://meet.example.test/{len(self.calls)}"


@pytest.fixture
def meeting_links():
    return FakeMeetingLinks()


@pytest.fixture
def app(meeting_links):
    app = create_app(TestConfig, meeting_links=meeting_links)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    # bearer-token client; cookie auth is exercised with its own client
    return app.test_client(use_cookies=False)


class Factory:
    def __init__(self):
        self._n = 0

    def _email(self, prefix):
        self._n += 1
        return f"{prefix}{self._n}@example.test"

    def user(self, role, name=None, email=None):
        user = User(
            email=email or self._email(role.lower()),
            password_hash=hash_password(PASSWORD),
            name=name or f"{role.title()} {self._n}",
        )
        user.roles.append(get_role(role))
        db.session.add(user)
        db.session.flush()
        return user

    def student(self, **kw):
        user = self.user(ROLE_STUDENT, **kw)
        student = Student(user_id=user.id)
        db.session.add(student)
        db.session.commit()
        return student

    def mentor(self, status=MENTOR_APPROVED, **kw):
        user = self.user(ROLE_MENTOR, **kw)
        mentor = Mentor(user_id=user.id, status=status, bio="Teaches things")
        db.session.add(mentor)
        db.session.commit()
        return mentor

    def admin(self, **kw):
        user = self.user(ROLE_ADMIN, **kw)
        db.session.commit()
        return user

    def template(self, mentor, duration_mins=60, price=100, title="Algebra help"):
        template = SessionTemplate(
            mentor_id=mentor.id,
            title=title,
            type="Course Topic Tuition",
            description="One-on-one walkthrough",
            duration_mins=duration_mins,
            price=price,
        )
        db.session.add(template)
        db.session.commit()
        return template

    def slot(self, mentor, template=None, start=None, minutes=60, online=True, offline=False,
             booked=False, status=STATUS_UPCOMING):
        start = start or (utcnow().replace(microsecond=0) + timedelta(days=2))
        slot = AvailabilitySlot(
            mentor_id=mentor.id,
            session_id=template.id if template else None,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            is_online=online,
            is_offline=offline,
            is_booked=booked,
            status=status,
            meeting_id="mtg-test" if online else None,
            address="Library room 2" if offline else None,
        )
        db.session.add(slot)
        db.session.commit()
        return slot

    def booking(self, slot, student, medium="online", template=None):
        slot.is_booked = True
        if template is not None:
            slot.session_id = template.id
        booking = Booking(slot_id=slot.id, student_id=student.id, medium=medium)
        db.session.add(booking)
        db.session.commit()
        return booking


@pytest.fixture
def factory(app):
    return Factory()


@pytest.fixture
def login(client):
    """login(user) -> Authorization headers for that user."""
    def _login(user):
        resp = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return {"Authorization": f"Bearer {resp.get_json()['data']['token']}"}
    return _login
