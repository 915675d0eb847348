"""
Meeting identifiers for online availability slots.

With GOOGLE_CALENDAR_ENABLED a Calendar event carrying a Meet conference is
created per slot and its hangout link is stored. Otherwise a local opaque
meeting id is issued. Both generators are called before any database
transaction is opened.
"""
import logging
import uuid
from datetime import timezone

from google.oauth2.service_account import Credentials as SvcCreds
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from utils.errors import MeetingLinkError

SCOPES = ["https://www.googleapis.com/auth/calendar"]
log = logging.getLogger(__name__)


def _rfc3339(dt) -> str:
    # slots are stored as naive UTC
    return dt.replace(tzinfo=timezone.utc).isoformat()


class LocalMeetingIdGenerator:
    prefix = "mtg"

    def create(self, start_time, end_time, title: str) -> str:
        return f"{self.prefix}-{uuid.uuid4().hex}"


class GoogleMeetLinkGenerator:
    def __init__(self, service_account_file: str, calendar_id: str = "primary", delegated_user=None):
        self.service_account_file = service_account_file
        self.calendar_id = calendar_id
        self.delegated_user = delegated_user
        self._service = None

    def _get_service(self):
        if self._service is None:
            creds = SvcCreds.from_service_account_file(self.service_account_file, scopes=SCOPES)
            if self.delegated_user:
                creds = creds.with_subject(self.delegated_user)
            self._service = build("calendar", "v3", credentials=creds, cache_discovery=False)
        return self._service

    def create(self, start_time, end_time, title: str) -> str:
        body = {
            "summary": title,
            "start": {"dateTime": _rfc3339(start_time), "timeZone": "UTC"},
            "end": {"dateTime": _rfc3339(end_time), "timeZone": "UTC"},
            "conferenceData": {
                "createRequest": {
                    "requestId": uuid.uuid4().hex,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
        }
        try:
            ev = (
                self._get_service()
                .events()
                .insert(calendarId=self.calendar_id, body=body, conferenceDataVersion=1)
                .execute()
            )
        except HttpError as exc:
            log.error("gcal.create failed for slot at %s: %s", start_time, exc)
            raise MeetingLinkError("Could not create meeting link") from exc

        link = ev.get("hangoutLink")
        if not link:
            log.error("gcal.create: event %s has no hangoutLink", ev.get("id"))
            raise MeetingLinkError("Could not create meeting link")
        log.info("gcal.create: event %s created for slot at %s", ev.get("id"), start_time)
        return link


def build_meeting_link_generator(config):
    if config.get("GOOGLE_CALENDAR_ENABLED"):
        return GoogleMeetLinkGenerator(
            service_account_file=config["GOOGLE_SERVICE_ACCOUNT_FILE"],
            calendar_id=config.get("GOOGLE_CALENDAR_ID", "primary"),
            delegated_user=config.get("GOOGLE_CALENDAR_DELEGATED_USER"),
        )
    return LocalMeetingIdGenerator()
