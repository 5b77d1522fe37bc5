"""Domain errors raised by round, voting and standings operations.

Every error carries a stable ``code`` and the HTTP status it maps to. All of
them are raised before any state is changed, so a caller that sees one can
assume nothing was written.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ViolationKind(str, Enum):
    """Why a vote batch was rejected."""

    UNKNOWN_SUBMISSION = "unknown_submission"
    SELF_VOTE_FORBIDDEN = "self_vote_forbidden"
    TOO_MANY_UPVOTES = "too_many_upvotes"
    TOO_MANY_DOWNVOTES = "too_many_downvotes"
    DOWNVOTING_DISABLED = "downvoting_disabled"
    INVALID_POINT_VALUE = "invalid_point_value"
    POINT_SEQUENCE_MISMATCH = "point_sequence_mismatch"
    ROUND_NOT_VOTING = "round_not_voting"
    DEADLINE_PASSED = "deadline_passed"


class RoundupError(Exception):
    """Base class for all domain errors."""

    code = "error"
    http_status = 400

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            body.update(self.details)
        return body


class ValidationError(RoundupError):
    """A vote batch broke one of the voting rules."""

    code = "validation_error"
    http_status = 400

    def __init__(self, kind: ViolationKind, message: str, **details: Any) -> None:
        super().__init__(message, kind=kind.value, **details)
        self.kind = kind


class PreconditionFailed(ValidationError):
    """The voting window has closed."""

    code = "precondition_failed"
    http_status = 412


class InvalidTransition(RoundupError):
    """Requested status is not the successor of the current one, or the round moved underneath us."""

    code = "invalid_transition"
    http_status = 409


class InvalidState(RoundupError):
    """Operation is not allowed in the round's current status."""

    code = "invalid_state"
    http_status = 409


class NotFound(RoundupError):
    code = "not_found"
    http_status = 404


class Forbidden(RoundupError):
    code = "forbidden"
    http_status = 403
