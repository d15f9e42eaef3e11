"""
Google Meet integration for chat-scheduled meetings.

Creates a Calendar event with a Meet conference for each meeting, and
keeps that event in step when the meeting is moved or cancelled. Every
call is best-effort: failures are logged and reported as None/False,
never raised.
"""

import asyncio
import logging
from typing import Dict, Any, Optional
from datetime import datetime, timedelta
import json
import uuid

import aiofiles
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from config import settings
from ..utils.datetime_utils import ensure_utc

logger = logging.getLogger(__name__)

API_TIMEOUT_SECONDS = 30.0


def _event_time(dt: datetime) -> Dict[str, str]:
    return {
        'dateTime': ensure_utc(dt).strftime('%Y-%m-%dT%H:%M:%S'),
        'timeZone': 'UTC',
    }


class GoogleMeetIntegration:
    """
    Google Meet integration for creating meeting links.

    Features:
    - Scheduled meetings with a Meet link
    - Moving or renaming the backing calendar event
    - Deleting the event when the meeting is cancelled
    """

    SCOPES = [
        'https://www.googleapis.com/auth/calendar',
        'https://www.googleapis.com/auth/calendar.events'
    ]

    def __init__(self):
        self.service = None
        self._initialized = False

    @property
    def is_configured(self) -> bool:
        return bool(settings.google_credentials_json)

    async def initialize(self) -> bool:
        """Initialize Google Calendar API for Meet links."""
        if self._initialized:
            return True

        if not settings.google_credentials_json:
            logger.warning("Google credentials not configured for Meet")
            return False

        try:
            if settings.google_credentials_json.startswith('{'):
                creds_dict = json.loads(settings.google_credentials_json)
            else:
                async with aiofiles.open(settings.google_credentials_json, 'r') as f:
                    creds_dict = json.loads(await f.read())

            credentials = Credentials.from_service_account_info(
                creds_dict,
                scopes=self.SCOPES
            )

            self.service = build('calendar', 'v3', credentials=credentials, cache_discovery=False)
            self._initialized = True

            logger.info("Google Meet integration initialized")
            return True

        except Exception as e:
            logger.error(f"Failed to initialize Google Meet: {e}")
            return False

    async def _execute(self, request) -> Any:
        return await asyncio.wait_for(
            asyncio.to_thread(request.execute),
            timeout=API_TIMEOUT_SECONDS
        )

    async def schedule_meeting(
        self,
        title: str,
        start_time: datetime,
        duration_minutes: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Optional[Dict[str, str]]:
        """
        Schedule a future meeting with Meet link.

        Args:
            title: Meeting title
            start_time: When the meeting starts (UTC instant)
            duration_minutes: Duration, defaults to the configured length
            description: Meeting agenda

        Returns:
            Dict with meet_link, event_id and event_link, or None on failure
        """
        if not await self.initialize():
            return None

        try:
            end_time = start_time + timedelta(minutes=duration_minutes or settings.meeting_duration_minutes)

            event = {
                'summary': title,
                'description': description or "",
                'start': _event_time(start_time),
                'end': _event_time(end_time),
                'conferenceData': {
                    'createRequest': {
                        'requestId': str(uuid.uuid4()),
                        'conferenceSolutionKey': {
                            'type': 'hangoutsMeet'
                        }
                    }
                },
                'reminders': {
                    'useDefault': False,
                    'overrides': [
                        {'method': 'popup', 'minutes': 10},
                    ]
                }
            }

            result = await self._execute(
                self.service.events().insert(
                    calendarId=settings.google_calendar_id,
                    body=event,
                    conferenceDataVersion=1,
                    sendUpdates='none'
                )
            )

            # Extract Meet link
            meet_link = None
            for ep in result.get('conferenceData', {}).get('entryPoints', []):
                if ep.get('entryPointType') == 'video':
                    meet_link = ep.get('uri')
                    break

            if not meet_link:
                meet_link = result.get('hangoutLink')

            logger.info(f"Scheduled meeting for {start_time}: {meet_link}")

            return {
                'meet_link': meet_link,
                'event_id': result.get('id'),
                'event_link': result.get('htmlLink'),
            }

        except Exception as e:
            logger.warning(f"Error scheduling meeting: {e}")
            return None

    async def update_meeting(
        self,
        event_id: str,
        title: Optional[str] = None,
        start_time: Optional[datetime] = None,
        description: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ) -> bool:
        """Patch the calendar event behind a meeting."""
        if not await self.initialize():
            return False

        body: Dict[str, Any] = {}
        if title is not None:
            body['summary'] = title
        if description is not None:
            body['description'] = description
        if start_time is not None:
            end_time = start_time + timedelta(minutes=duration_minutes or settings.meeting_duration_minutes)
            body['start'] = _event_time(start_time)
            body['end'] = _event_time(end_time)

        if not body:
            return True

        try:
            await self._execute(
                self.service.events().patch(
                    calendarId=settings.google_calendar_id,
                    eventId=event_id,
                    body=body,
                    sendUpdates='none'
                )
            )
            logger.info(f"Updated meeting event: {event_id}")
            return True

        except Exception as e:
            logger.warning(f"Error updating meeting event {event_id}: {e}")
            return False

    async def delete_meeting(self, event_id: str) -> bool:
        """Delete a scheduled meeting."""
        if not await self.initialize():
            return False

        try:
            await self._execute(
                self.service.events().delete(
                    calendarId=settings.google_calendar_id,
                    eventId=event_id
                )
            )

            logger.info(f"Deleted meeting: {event_id}")
            return True

        except Exception as e:
            logger.warning(f"Error deleting meeting {event_id}: {e}")
            return False


# Singleton
_meet_integration: Optional[GoogleMeetIntegration] = None


def get_meet_integration() -> GoogleMeetIntegration:
    """Get the Google Meet integration singleton."""
    global _meet_integration
    if _meet_integration is None:
        _meet_integration = GoogleMeetIntegration()
    return _meet_integration
