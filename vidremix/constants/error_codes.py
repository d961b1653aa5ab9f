"""Error codes dictionary.

Single source of truth for error codes, their retryability and a short
suggested fix. Used by the exception handlers to build error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Request errors
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
    },
    "INVALID_SEGMENTS": {
        "retryable": False,
        "suggested_fix": "Provide at least one segment with 0 <= start < end",
    },
    "UNSUPPORTED_MEDIA": {
        "retryable": False,
        "suggested_fix": "Upload a readable video file containing a video stream",
    },
    # ==========================================================================
    # Resource errors
    # ==========================================================================
    "FILE_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Upload the source again; files expire after the retention window",
    },
    # ==========================================================================
    # Transform errors (caller must resubmit)
    # ==========================================================================
    "TRANSFORM_FAILED": {
        "retryable": True,
        "suggested_fix": "Resubmit the request; check the engine details if it fails again",
    },
    "TRANSFORM_TIMEOUT": {
        "retryable": True,
    },
    "INTERNAL_ERROR": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code."""
    return ERROR_CODES.get(code, {"retryable": False})
