from typing import Optional

from fastapi import HTTPException
from pydantic import BaseModel


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class ValidationError(DomainException):
    """Malformed input shape, e.g. the wrong player count for a match type."""

    def __init__(self, detail: str, *, code: str = "validation_error") -> None:
        super().__init__(
            status_code=400,
            title="Invalid request",
            detail=detail,
            code=code,
        )


class NotFoundError(DomainException):
    """A referenced rotation, court, entry or match is missing or not visible."""

    def __init__(self, detail: str, *, code: str = "not_found") -> None:
        super().__init__(
            status_code=404,
            title="Not found",
            detail=detail,
            code=code,
        )


class ConflictError(DomainException):
    """A state-machine precondition does not hold."""

    def __init__(self, detail: str, *, code: str = "conflict") -> None:
        super().__init__(
            status_code=409,
            title="Conflict",
            detail=detail,
            code=code,
        )


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
