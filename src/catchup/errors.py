"""Error taxonomy for suggestion generation and lifecycle."""

from dataclasses import dataclass


class CatchupError(Exception):
    """Base class for engine errors."""


class InputError(CatchupError):
    """Bad user, date range or request - reject the call."""


class UpstreamUnavailable(CatchupError):
    """A collaborator (calendar, reasoning service) could not be reached."""


class ConflictError(CatchupError):
    """Optimistic-lock mismatch - re-read and retry."""

    def __init__(self, suggestion_id: str, expected_version: int, actual_version: int):
        self.suggestion_id = suggestion_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Suggestion {suggestion_id} changed (expected v{expected_version}, found v{actual_version})"
        )


class SuggestionNotFound(CatchupError):
    def __init__(self, suggestion_id: str):
        self.suggestion_id = suggestion_id
        super().__init__(f"Suggestion not found: {suggestion_id}")


class InvalidTransition(CatchupError):
    """A status change the state machine does not allow."""

    def __init__(self, suggestion_id: str, current, target):
        self.suggestion_id = suggestion_id
        self.current = current
        self.target = target
        super().__init__(f"Suggestion {suggestion_id} is {current.value}, cannot become {target.value}")


@dataclass
class Rejection:
    suggestion_id: str
    reason: str


class BatchAcceptError(CatchupError):
    """Batch accept validation failed; nothing was committed."""

    def __init__(self, rejected: list[Rejection]):
        self.rejected = rejected
        details = "; ".join(f"{r.suggestion_id}: {r.reason}" for r in rejected)
        super().__init__(f"Batch accept rejected {len(rejected)} suggestion(s): {details}")
