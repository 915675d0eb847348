"""
Error taxonomy for the API.

Services raise these; the app-level handlers in app.py render them as
{"success": false, "message": ...} with the matching status code.
"""


class ApiError(Exception):
    status_code = 500
    message = "Server error"

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.message)
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError):
    status_code = 400
    message = "Invalid request"


class AuthError(ApiError):
    status_code = 401
    message = "Authentication required"


class ForbiddenError(ApiError):
    status_code = 403
    message = "Forbidden"


class NotFoundError(ApiError):
    status_code = 404
    message = "Not found"


class ConflictError(ApiError):
    # conflicts surface as 400 with a specific message
    status_code = 400
    message = "Conflict"


# ---------- booking transaction failures ----------

class StudentNotFound(NotFoundError):
    message = "Student profile not found"


class SessionNotFound(NotFoundError):
    message = "Session not found"


class SlotNotFound(NotFoundError):
    message = "Availability not found"


class SlotAlreadyBooked(ConflictError):
    message = "Availability already booked"


class MentorMismatch(ConflictError):
    message = "Session and availability belong to different mentors"


class MediumNotSupported(ConflictError):
    def __init__(self, medium: str):
        super().__init__(f"Availability is not marked as {medium}")
        self.medium = medium


class SlotStarted(ConflictError):
    message = "Cannot book a slot that has already started"


class SlotOverlap(ConflictError):
    message = "Time slot conflicts with existing booking"


class BookingVerificationFailed(ApiError):
    status_code = 500
    message = "Failed to update availability"


class MeetingLinkError(ApiError):
    status_code = 500
    message = "Could not create meeting link"
