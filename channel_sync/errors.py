"""
Channel sync error taxonomy.

Raised at the boundaries (webhook fast path, availability queries, outbound
client) and mapped to HTTP responses by the exception handler in main.py.
Inside the async webhook path they are caught and written to the event record.
"""

from typing import Optional


class ChannelSyncError(Exception):
    """Base error for the channel synchronization engine"""

    status_code: int = 500
    code: str = "channel_sync_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class AuthenticationError(ChannelSyncError):
    """Missing or invalid webhook signature"""
    status_code = 401
    code = "authentication_failed"


class ValidationError(ChannelSyncError):
    """Malformed payload or missing required identifiers"""
    status_code = 400
    code = "validation_failed"


class NotFoundError(ChannelSyncError):
    """Referenced room, room type or reservation does not exist"""
    status_code = 404
    code = "not_found"


class ChannelAPIError(ChannelSyncError):
    """The outbound channel API rejected or failed a request"""
    status_code = 502
    code = "channel_api_error"

    def __init__(self, message: str, upstream_status: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.retryable = retryable
