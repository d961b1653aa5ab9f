"""Custom exceptions for the vidremix backend.

Every exception carries a machine-readable code (see
``constants/error_codes.py``), an HTTP status and an optional engine detail
string for diagnostics.
"""

from typing import Any

from vidremix.constants.error_codes import get_error_spec


class VidremixError(Exception):
    """Base exception for all vidremix application errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an API error response."""
        spec = get_error_spec(self.code)
        body: dict[str, Any] = {
            "error": self.message,
            "code": self.code,
            "retryable": spec.get("retryable", False),
        }
        if self.details:
            body["details"] = self.details
        if "suggested_fix" in spec:
            body["suggested_fix"] = spec["suggested_fix"]
        return body


# =============================================================================
# Validation Errors (400)
# =============================================================================


class InvalidRequestError(VidremixError):
    """Request rejected before any subprocess is spawned."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid request"


class InvalidSegmentsError(InvalidRequestError):
    """Split ranges are missing or malformed."""

    code = "INVALID_SEGMENTS"
    message = "fileId and segments required"

    def __init__(self, message: str | None = None, *, index: int | None = None):
        if index is not None:
            message = f"Invalid segment #{index + 1}: {message or 'end must be greater than start'}"
        super().__init__(message)


class UnsupportedMediaError(InvalidRequestError):
    """Uploaded file is not a usable video."""

    code = "UNSUPPORTED_MEDIA"
    message = "Unsupported or corrupted file"


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class MediaNotFoundError(VidremixError):
    """Source or output file does not exist (or has expired)."""

    code = "FILE_NOT_FOUND"
    status_code = 404
    message = "File not found"

    def __init__(self, file_id: str | None = None):
        message = f"File not found: {file_id}" if file_id else self.message
        super().__init__(message)


# =============================================================================
# Transform Errors (500)
# =============================================================================


class TransformFailedError(VidremixError):
    """The ffmpeg subprocess exited with an error or could not run."""

    code = "TRANSFORM_FAILED"
    status_code = 500
    message = "Transform failed"


class TransformTimeoutError(TransformFailedError):
    """The ffmpeg subprocess exceeded its time limit and was killed."""

    code = "TRANSFORM_TIMEOUT"
    message = "Transform timed out"
