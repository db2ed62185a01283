"""Domain error taxonomy for the care log engine.

Services raise these; the API layer turns them into HTTP responses via a
single exception handler registered in ``carelog.api.main``.
"""

from __future__ import annotations

from fastapi import status


class CareLogError(Exception):
    """Base class for all engine failures that are reported to the caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict[str, str]:
        return {"detail": self.detail}


class UnauthorizedError(CareLogError):
    """No principal, or the presented credentials are not valid."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(CareLogError):
    """The principal is authenticated but lacks the grant, ownership or assignment."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(CareLogError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailedError(CareLogError):
    """Malformed input that passed schema validation but fails a domain rule."""

    status_code = 422

    def __init__(self, detail: str, field: str | None = None) -> None:
        super().__init__(detail)
        self.field = field

    def to_dict(self) -> dict[str, str]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class InvalidStateError(CareLogError):
    """A lifecycle transition was attempted from the wrong status.

    Deterministic: retrying without fetching fresh state gives the same answer.
    """

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str, *, expected: str, actual: str) -> None:
        super().__init__(detail)
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict[str, str]:
        data = super().to_dict()
        data["expected_status"] = self.expected
        data["actual_status"] = self.actual
        return data
