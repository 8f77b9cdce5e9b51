"""Explicit result values returned across collaborator boundaries."""

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)

    @staticmethod
    def from_exception(exc: Exception, code: str = "transport_error") -> "Result[T]":
        return Result(ok=False, error=str(exc) or exc.__class__.__name__, error_code=code)


@dataclass
class SendResult:
    """Outcome of one outbound chat message."""

    success: bool
    error: Optional[Any] = None
    data: Optional[dict] = None


@dataclass
class ActionResult:
    """Outcome of dispatching one action."""

    success: bool
    message: str
    data: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        payload = {"success": self.success, "message": self.message}
        if self.data:
            payload["data"] = self.data
        return payload
