"""Domain exceptions raised by services and mapped to HTTP responses.

SwingVoteError
├── NotFoundError            → 404
├── ValidationError          → 400
├── CooldownActive           → 429
├── ConcurrentClaimConflict  → 409
└── DataAccessError          → 503
"""

from __future__ import annotations

from datetime import datetime


class SwingVoteError(Exception):
    """Base class for all application errors."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        return {"detail": self.message, "code": self.code}


class NotFoundError(SwingVoteError):
    """A profile, contest, prize or other referenced row does not exist."""

    status_code = 404
    code = "not_found"

    def __init__(self, resource: str = "Resource") -> None:
        self.resource = resource
        super().__init__(f"{resource} not found")


class ValidationError(SwingVoteError):
    """Malformed parameters or a request that breaks a business rule."""

    status_code = 400
    code = "validation_error"


class CooldownActive(SwingVoteError):
    """A free vote or spin was requested before its cooldown elapsed."""

    status_code = 429
    code = "cooldown_active"

    def __init__(self, message: str, next_available_at: datetime) -> None:
        self.next_available_at = next_available_at
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data["nextAvailableAt"] = self.next_available_at.isoformat()
        return data


class ConcurrentClaimConflict(SwingVoteError):
    """The prize was already claimed, possibly by a racing request.

    Non-fatal: callers respond with "no reward available".
    """

    status_code = 409
    code = "already_claimed"

    def __init__(self, prize_id: str, message: str = "Prize has already been claimed") -> None:
        self.prize_id = prize_id
        super().__init__(message)


class DataAccessError(SwingVoteError):
    """The store was unreachable or a query failed. Never retried at this layer."""

    status_code = 503
    code = "data_access_error"

    def __init__(self, message: str = "The data store is unavailable. Please try again later.") -> None:
        super().__init__(message)
