"""
Error taxonomy for the ClaimDoc Engine.

Every error that reaches a client is a ClaimDocError subclass and is rendered
by the application's exception handler into the standard envelope
``{"status": "fail" | "error", "error": ..., "message": ...}``. Client-side
problems (4xx) use ``fail``, server and upstream problems use ``error``.

Hierarchy:
    ClaimDocError
    ├── ValidationError        → missing/invalid input, rejected audio (400)
    ├── NotFoundError          → unknown or expired review session (404)
    ├── UpstreamDecodeError    → upstream reply violates its JSON contract (502)
    ├── UpstreamCallError      → network failure, timeout, non-2xx upstream (502/504)
    └── ConfigurationError     → missing credentials, service unavailable (503)
"""

from typing import Any, Dict, Optional


class ClaimDocError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    error_code: str = "internal_server_error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationError(ClaimDocError):
    """Required input missing or malformed. Raised before any upstream call."""

    status_code = 400
    error_code = "validation_error"


class NotFoundError(ClaimDocError):
    status_code = 404
    error_code = "not_found"


class UpstreamDecodeError(ClaimDocError):
    """An upstream reply could not be decoded into the shape its contract requires."""

    status_code = 502
    error_code = "upstream_decode_error"

    def __init__(self, stage: str, message: str, context: Optional[Dict[str, Any]] = None):
        self.stage = stage
        super().__init__(message, {"stage": stage, **(context or {})})


class UpstreamCallError(ClaimDocError):
    """Network failure, timeout, or non-2xx answer from an upstream service."""

    error_code = "upstream_call_error"

    def __init__(
        self,
        service: str,
        message: str,
        upstream_status: Optional[int] = None,
        timed_out: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.service = service
        self.upstream_status = upstream_status
        self.timed_out = timed_out
        super().__init__(
            message,
            {"service": service, "upstream_status": upstream_status, **(context or {})},
        )

    @property
    def status_code(self) -> int:
        if self.timed_out:
            return 504
        return 502


class PartnerRequestError(UpstreamCallError):
    """The partner API rejected our request with a 4xx. Passed through, never retried."""

    @property
    def status_code(self) -> int:
        return self.upstream_status or 400


class ConfigurationError(ClaimDocError):
    """Credentials missing or invalid. Reported as service unavailable."""

    status_code = 503
    error_code = "service_unavailable"
