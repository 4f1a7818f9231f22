"""
Defines custom exception classes for the application.

Every error carries a machine-readable ``kind`` (not_found, validation,
conflict, upstream, internal) and an optional ``reason`` code, so callers can
branch on them (e.g. re-resolve and retry only on a conflict).
"""
from typing import Any, Dict, Optional


class ContextCommitException(Exception):
    """Base exception class for the ctxcommit application."""

    kind = "internal"
    status_code = 500
    default_reason: Optional[str] = None

    def __init__(self, detail: str, reason: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.reason = reason or self.default_reason

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "reason": self.reason, "detail": self.detail}


class NotFoundError(ContextCommitException):
    """Raised for an unknown context id, path, repository or branch."""
    kind = "not_found"
    status_code = 404
    default_reason = "not_found"


class ValidationError(ContextCommitException):
    """Raised when a required field is missing or malformed."""
    kind = "validation"
    status_code = 400
    default_reason = "invalid_request"


class ConflictError(ContextCommitException):
    """Raised when a branch ref moved under a commit attempt."""
    kind = "conflict"
    status_code = 409
    default_reason = "ref_conflict"


class RefUpdateAmbiguousError(ConflictError):
    """Raised when a ref update timed out and may or may not have been applied."""
    default_reason = "ref_update_ambiguous"


class UpstreamError(ContextCommitException):
    """Raised when the object store is unreachable or rejects a call."""
    kind = "upstream"
    status_code = 502
    default_reason = "upstream_error"

    def __init__(self, detail: str, reason: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(detail, reason)
        self.upstream_status = upstream_status

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.upstream_status is not None:
            data["upstream_status"] = self.upstream_status
        return data


class InternalError(ContextCommitException):
    """Raised on an unexpected invariant violation."""
    default_reason = "internal_error"


class ConfigError(ContextCommitException):
    """Raised when there is a configuration error."""
    default_reason = "config_error"
