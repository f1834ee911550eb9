"""
Meeting provisioner.

Creates scheduled Zoom meetings through the Server-to-Server OAuth app
(account credentials grant). Tokens are fetched per meeting unless caching is
enabled in the config.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import logging
import time

import httpx

logger = logging.getLogger(__name__)


class MeetingProviderError(Exception):
    """Raised when the meeting provider cannot be reached or rejects a request"""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        self.message = message
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)


@dataclass(frozen=True)
class MeetingProviderConfig:
    account_id: str
    client_id: str
    client_secret: str
    oauth_url: str = "https://zoom.us/oauth/token"
    api_base_url: str = "https://api.zoom.us/v2"
    timezone: str = "Asia/Karachi"
    duration_minutes: int = 30
    timeout_seconds: float = 10.0
    cache_token: bool = False


@dataclass
class Meeting:
    join_url: str
    id: Optional[str] = None
    start_time: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class ZoomMeetingProvisioner:
    """Zoom implementation of the meeting provisioner"""

    TOPIC = "Consulting meeting"
    AGENDA = "Customer Booking"
    SCHEDULED_MEETING = 2
    # Refresh a cached token this many seconds before Zoom expires it
    TOKEN_EXPIRY_MARGIN = 60

    def __init__(self, config: MeetingProviderConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self._transport)

    async def _post(self, url: str, **kwargs) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.post(url, **kwargs)
        except httpx.TimeoutException as e:
            raise MeetingProviderError(f"Zoom request timed out: {e}")
        except httpx.HTTPError as e:
            raise MeetingProviderError(f"Zoom request failed: {e}")

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            logger.error(f"Zoom returned {response.status_code} for {url}: {payload}")
            raise MeetingProviderError(
                f"Zoom returned HTTP {response.status_code}",
                status_code=response.status_code,
                payload=payload
            )

        try:
            return response.json()
        except ValueError:
            raise MeetingProviderError("Zoom returned a non-JSON response", status_code=response.status_code)

    async def get_access_token(self) -> str:
        """Obtain an access token with the account credentials grant"""
        if self.config.cache_token and self._token and time.monotonic() < self._token_expires_at:
            return self._token

        data = await self._post(
            self.config.oauth_url,
            params={"grant_type": "account_credentials", "account_id": self.config.account_id},
            auth=(self.config.client_id, self.config.client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"}
        )
        token = data.get("access_token")
        if not token:
            raise MeetingProviderError("Zoom authentication failed", payload=data)

        if self.config.cache_token:
            expires_in = int(data.get("expires_in", 3600))
            self._token = token
            self._token_expires_at = time.monotonic() + max(expires_in - self.TOKEN_EXPIRY_MARGIN, 0)
        return token

    def _format_start_time(self, start_time: Optional[datetime]) -> str:
        if start_time is None:
            start_time = datetime.now(timezone.utc) + timedelta(hours=1)
        elif start_time.tzinfo is None:
            start_time = start_time.replace(tzinfo=timezone.utc)
        return start_time.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    async def create_meeting(self, start_time: Optional[datetime] = None) -> Meeting:
        """Create a scheduled consulting meeting and return its join link"""
        token = await self.get_access_token()
        meeting_start = self._format_start_time(start_time)
        logger.info(f"Creating Zoom meeting at {meeting_start}")

        data = await self._post(
            f"{self.config.api_base_url.rstrip('/')}/users/me/meetings",
            json={
                "topic": self.TOPIC,
                "type": self.SCHEDULED_MEETING,
                "start_time": meeting_start,
                "duration": self.config.duration_minutes,
                "timezone": self.config.timezone,
                "agenda": self.AGENDA,
                "settings": {
                    "host_video": True,
                    "participant_video": True,
                    "join_before_host": False,
                },
            },
            headers={"Authorization": f"Bearer {token}"}
        )

        join_url = data.get("join_url")
        if not join_url:
            raise MeetingProviderError("Zoom response did not include a join_url", payload=data)

        meeting_id = data.get("id")
        return Meeting(
            join_url=join_url,
            id=str(meeting_id) if meeting_id is not None else None,
            start_time=data.get("start_time"),
            raw=data
        )
