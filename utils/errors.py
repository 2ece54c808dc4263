"""
Error taxonomy for the webhook bridge.

Every failure the service reports is one of these. Each carries the HTTP
status it maps to, a stable message for the response body, and the pipeline
stage it came from (for logs only).
"""

from typing import Any, Dict, Optional


class BridgeError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        stage: str = "",
        extra: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.stage = stage
        self.extra = dict(extra or {})
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        body.update(self.extra)
        return body


class NotFound(BridgeError):
    status_code = 404
    default_message = "Not found"


class Unauthorized(BridgeError):
    status_code = 401
    default_message = "Unauthorized"


class ValidationError(BridgeError):
    status_code = 400
    default_message = "Invalid request"


class DecryptionFailure(BridgeError):
    status_code = 400
    default_message = "Decryption failed"


class Conflict(BridgeError):
    status_code = 409
    default_message = "ID already exists"


class PersistenceFailure(BridgeError):
    status_code = 500
    default_message = "Failed to save config"


class UpstreamAppendFailure(BridgeError):
    status_code = 500
    default_message = "Server error"


class InternalError(BridgeError):
    status_code = 500
    default_message = "Server error"
