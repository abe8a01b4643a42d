"""
Channel API Client

Thin wrapper around the channel manager REST API (Beds24 v2) that handles:
- Authentication via the "token" header
- JSON request/response handling
- Retry with exponential backoff on 429 and 5xx
- Structured error mapping to ChannelAPIError
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..errors import ChannelAPIError

logger = logging.getLogger(__name__)


@dataclass
class ChannelError:
    """Structured error from the channel API"""
    code: str
    message: str
    status_code: int
    retryable: bool = False


# Error mapping for channel responses
ERROR_MAP = {
    400: ChannelError("bad_request", "Invalid request data", 400, False),
    401: ChannelError("unauthorized", "Invalid or missing API token", 401, False),
    403: ChannelError("forbidden", "Access denied to this resource", 403, False),
    404: ChannelError("not_found", "Resource not found", 404, False),
    429: ChannelError("rate_limited", "Too many requests", 429, True),
    500: ChannelError("server_error", "Channel server error", 500, True),
    502: ChannelError("bad_gateway", "Channel gateway error", 502, True),
    503: ChannelError("service_unavailable", "Channel service unavailable", 503, True),
}


@dataclass
class ChannelResponse:
    """Wrapper for successful channel API responses"""
    status_code: int
    data: Any = None

    def first_item(self) -> Dict:
        """Batch endpoints answer with one entry per submitted item"""
        if isinstance(self.data, list) and self.data and isinstance(self.data[0], dict):
            return self.data[0]
        if isinstance(self.data, dict):
            return self.data
        return {}


class ChannelClient:
    """
    Client for outbound channel operations.

    Raises ChannelAPIError when a request ultimately fails.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.channel_api_key
        self.base_url = (base_url or settings.channel_base_url).rstrip("/")
        self.timeout = timeout or settings.channel_timeout_seconds
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "token": self.api_key,
            "User-Agent": "channel-sync/1.0",
        }

    def _map_error(self, status_code: int, response_data: Any) -> ChannelError:
        """Map HTTP status code to structured error"""
        message = None
        if isinstance(response_data, dict):
            message = response_data.get("error") or response_data.get("message")

        if status_code in ERROR_MAP:
            error = ERROR_MAP[status_code]
            if message:
                return ChannelError(error.code, str(message), status_code, error.retryable)
            return error

        if status_code >= 500:
            return ChannelError("server_error", f"Server error: {status_code}", status_code, True)

        return ChannelError("unknown", f"Unknown error: {status_code}", status_code, False)

    def _backoff(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def _make_request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Any] = None,
        params: Optional[Dict] = None,
    ) -> ChannelResponse:
        """Make an HTTP request to the channel API with retry logic."""
        url = f"{self.base_url}{endpoint}"
        start_time = time.time()
        last_error: Optional[ChannelError] = None

        for attempt in range(self.max_retries):
            try:
                with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                    response = client.request(
                        method,
                        url,
                        headers=self._get_headers(),
                        json=payload,
                        params=params,
                    )
            except httpx.HTTPError as e:
                last_error = ChannelError("network_error", f"Request failed: {e}", 0, True)
                delay = self._backoff(attempt)
                logger.warning(f"{method} {endpoint} failed: {e}, retrying in {delay}s")
                time.sleep(delay)
                continue

            try:
                data = response.json()
            except ValueError:
                data = None

            duration_ms = int((time.time() - start_time) * 1000)

            if 200 <= response.status_code < 300:
                logger.info(f"{method} {endpoint} - {response.status_code} ({duration_ms}ms)")
                return ChannelResponse(status_code=response.status_code, data=data)

            error = self._map_error(response.status_code, data)
            if not error.retryable:
                logger.error(f"{method} {endpoint} - {response.status_code}: {error.message}")
                raise ChannelAPIError(error.message, upstream_status=response.status_code, retryable=False)

            last_error = error
            delay = self._backoff(attempt)
            logger.warning(f"{method} {endpoint} - {response.status_code}, retrying in {delay}s")
            time.sleep(delay)

        message = last_error.message if last_error else "unknown error"
        logger.error(f"{method} {endpoint}: all {self.max_retries} attempts failed ({message})")
        raise ChannelAPIError(
            f"All retries failed: {message}",
            upstream_status=last_error.status_code if last_error and last_error.status_code else None,
            retryable=True,
        )

    # ==================
    # Bookings
    # ==================

    def push_booking(self, payload: Dict) -> ChannelResponse:
        """
        Create or update one booking. A payload carrying "id" is an update.
        """
        response = self._make_request("POST", "/bookings", payload=[payload])
        item = response.first_item()
        if item.get("success") is False:
            errors = item.get("errors") or item.get("error") or "Booking rejected"
            raise ChannelAPIError(f"Channel rejected booking: {errors}", upstream_status=response.status_code)
        return response

    # ==================
    # Inventory
    # ==================

    def push_calendar(self, update: Dict) -> ChannelResponse:
        """Send one calendar update ({roomId, startDate, endDate, data})"""
        response = self._make_request("POST", "/inventory/rooms/calendar", payload=[update])
        item = response.first_item()
        if item.get("success") is False:
            errors = item.get("errors") or item.get("error") or "Calendar update rejected"
            raise ChannelAPIError(f"Channel rejected calendar update: {errors}", upstream_status=response.status_code)
        return response


def extract_booking_id(response: ChannelResponse) -> Optional[str]:
    """Channel booking id from a push_booking response, if present"""
    item = response.first_item()
    for key in ("new", "modified"):
        section = item.get(key)
        if isinstance(section, dict) and section.get("id") is not None:
            return str(section["id"])
    if item.get("id") is not None:
        return str(item["id"])
    return None


def get_channel_client() -> ChannelClient:
    """Get a client configured from settings"""
    return ChannelClient()
