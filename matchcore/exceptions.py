"""
Matchcore — Error taxonomy

Three failure kinds cross the service boundary:

- ``NotFoundError``: a profile, interest or record the caller named does not
  exist.
- ``ValidationFailure``: the request is well-formed but not meaningful, such
  as scoring a user against themselves.
- ``DependencyFailure``: the store, the scoring oracle or the notification
  sink failed.  Services swallow these for non-critical side effects and
  raise them for essential reads.

The API layer maps each kind to an HTTP status via ``status_code``.
"""

from __future__ import annotations

from typing import Any


class MatchingError(Exception):
    """Base class for all matching-core errors."""

    status_code: int = 500
    code: str = "MATCHING_ERROR"

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.suggestion:
            body["suggestion"] = self.suggestion
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(MatchingError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any) -> None:
        super().__init__(
            f"{resource} '{identifier}' not found",
            details={"resource": resource, "id": str(identifier)},
        )
        self.resource = resource
        self.identifier = identifier


class ValidationFailure(MatchingError):
    status_code = 422
    code = "VALIDATION_FAILED"


class DependencyFailure(MatchingError):
    status_code = 503
    code = "DEPENDENCY_UNAVAILABLE"

    def __init__(self, dependency: str, message: str) -> None:
        super().__init__(
            f"{dependency}: {message}",
            suggestion="Could not generate matches right now. Please try again shortly.",
            details={"dependency": dependency},
        )
        self.dependency = dependency
