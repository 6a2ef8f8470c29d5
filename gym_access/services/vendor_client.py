"""
Hikvision cloud (HPC gateway) client — pulls access events for a branch.

Endpoints:
  POST {api_url}/api/hpcgw/v1/token/get      {appKey, secretKey}  → accessToken
  POST {api_url}/api/hpcgw/v1/mq/messages    {startTime, endTime} → events
The access token is reused until shortly before its expireTime; a 401 on the
messages call drops it so the next fetch asks for a new one.
Every failure is raised as VendorAPIError so callers only handle one type.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional
import httpx
from gym_access.config import settings
from gym_access.models.access_integration import AccessIntegration
from gym_access.utils.json_parser import get_nested
from gym_access.utils.time_utils import isoformat_z, from_epoch_millis, utcnow
from gym_access.utils.logger import get_logger

logger = get_logger(__name__)

TOKEN_PATH = "/api/hpcgw/v1/token/get"
MESSAGES_PATH = "/api/hpcgw/v1/mq/messages"

# Refresh a cached token this long before the vendor says it expires
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

# Vendor error codes worth a readable message
VENDOR_ERRORS = {
    "EVZ20002": "Device does not exist",
    "EVZ20007": "The device is offline",
    "EVZ10029": "API calling frequency exceeded limit",
    "0x30000010": "Database search failed",
    "0x30001000": "HBP Exception",
    "0x01400004": "Device is not activated",
    "0x01400006": "IP address is banned",
    "0x40008007": "Registering timed out",
}


class VendorAPIError(Exception):
    """Vendor API call failed (transport, HTTP status, or vendor error code)."""

    def __init__(self, message: str, error_code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code


def describe_error_code(code: str) -> str:
    return VENDOR_ERRORS.get(code, f"Hikvision error: {code}")


class HikvisionClient:
    def __init__(self, api_url: str, app_key: str, app_secret: str, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 access_token: Optional[str] = None, token_expires_at: Optional[datetime] = None,
                 on_token: Optional[Callable[[Optional[str], Optional[datetime]], None]] = None):
        self.api_url = api_url.rstrip("/")
        self.app_key = app_key
        self.app_secret = app_secret
        self.timeout = timeout if timeout is not None else settings.VENDOR_TIMEOUT_SECONDS
        self.transport = transport
        self.access_token = access_token
        self.token_expires_at = token_expires_at
        self.on_token = on_token

    @classmethod
    def from_integration(cls, integration: AccessIntegration,
                         transport: Optional[httpx.AsyncBaseTransport] = None) -> "HikvisionClient":
        """Client seeded with the integration's cached token; new tokens are written back to it."""
        def remember(token, expires_at):
            integration.access_token = token
            integration.token_expires_at = expires_at

        return cls(integration.api_url, integration.app_key, integration.app_secret,
                   transport=transport,
                   access_token=integration.access_token,
                   token_expires_at=integration.token_expires_at,
                   on_token=remember)

    async def _post(self, client: httpx.AsyncClient, path: str, body: dict,
                    token: Optional[str] = None) -> dict:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = await client.post(f"{self.api_url}{path}", json=body, headers=headers)
        except httpx.HTTPError as e:
            raise VendorAPIError(f"Request to {path} failed: {e}") from e

        if response.status_code != 200:
            raise VendorAPIError(f"{path} returned HTTP {response.status_code}",
                                 status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise VendorAPIError(f"{path} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise VendorAPIError(f"{path} returned an unexpected body")

        code = data.get("errorCode")
        if code not in (None, "0", 0):
            raise VendorAPIError(describe_error_code(str(code)), error_code=str(code))
        return data

    def _cached_token(self) -> Optional[str]:
        if not self.access_token or self.token_expires_at is None:
            return None
        if self.token_expires_at - TOKEN_REFRESH_MARGIN <= utcnow():
            return None
        return self.access_token

    def _set_token(self, token: Optional[str], expires_at: Optional[datetime]):
        self.access_token = token
        self.token_expires_at = expires_at
        if self.on_token:
            self.on_token(token, expires_at)

    async def get_token(self, client: httpx.AsyncClient) -> str:
        cached = self._cached_token()
        if cached:
            logger.debug(f"Reusing vendor token for {self.api_url} (expires {self.token_expires_at})")
            return cached

        data = await self._post(client, TOKEN_PATH, {"appKey": self.app_key, "secretKey": self.app_secret})
        token = get_nested(data, "data", "accessToken") or data.get("accessToken")
        if not token:
            raise VendorAPIError("No access token received")

        expires_at = from_epoch_millis(get_nested(data, "data", "expireTime") or data.get("expireTime"))
        if expires_at is None:
            expires_at = utcnow() + timedelta(seconds=settings.VENDOR_TOKEN_TTL_SECONDS)
        self._set_token(token, expires_at)
        logger.info(f"New vendor token for {self.api_url}, valid until {expires_at}")
        return token

    async def fetch_events(self, start: datetime, end: datetime) -> list[dict]:
        """All events the vendor reports between start and end (naive UTC)."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            token = await self.get_token(client)
            try:
                data = await self._post(
                    client, MESSAGES_PATH,
                    {"startTime": isoformat_z(start), "endTime": isoformat_z(end)},
                    token=token,
                )
            except VendorAPIError as e:
                if e.status_code == 401:
                    logger.warning(f"Vendor rejected the token for {self.api_url}; it will be renewed")
                    self._set_token(None, None)
                raise

        events = get_nested(data, "data", "events")
        if events is None:
            events = data.get("events", [])
        if not isinstance(events, list):
            raise VendorAPIError("Vendor event list is malformed")
        logger.info(f"Fetched {len(events)} event(s) from {self.api_url}")
        return [e for e in events if isinstance(e, dict)]
