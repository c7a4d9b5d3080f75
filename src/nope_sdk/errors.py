from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    AUTH = "auth"
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    CONNECTION = "connection"
    API = "api"
    WEBHOOK_SIGNATURE = "webhook_signature"


class NopeError(Exception):
    """Every failure raised by the SDK, tagged with an ErrorKind.

    ``retry_after_ms`` is only set on RATE_LIMIT errors, and only when the
    server sent a usable Retry-After header.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        retry_after_ms: float | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.retry_after_ms = retry_after_ms

    def __str__(self) -> str:
        text = f"[{self.status_code}] {self.message}" if self.status_code else self.message
        if self.kind is ErrorKind.RATE_LIMIT and self.retry_after_ms:
            text = f"{text} (retry after {self.retry_after_ms:g}ms)"
        return text

    def __repr__(self) -> str:
        return f"NopeError(kind={self.kind.value!r}, message={self.message!r}, status_code={self.status_code!r})"


_DEFAULT_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.AUTH: "Invalid or missing API key",
    ErrorKind.VALIDATION: "Invalid request",
    ErrorKind.RATE_LIMIT: "Rate limit exceeded",
    ErrorKind.SERVER: "Server error",
    ErrorKind.API: "Unexpected API response",
}


def kind_for_status(status_code: int) -> ErrorKind:
    if status_code == 401:
        return ErrorKind.AUTH
    if status_code == 400:
        return ErrorKind.VALIDATION
    if status_code == 429:
        return ErrorKind.RATE_LIMIT
    if status_code >= 500:
        return ErrorKind.SERVER
    return ErrorKind.API


def error_for_status(
    status_code: int,
    message: str,
    *,
    response_body: str | None = None,
    retry_after_ms: float | None = None,
) -> NopeError:
    kind = kind_for_status(status_code)
    return NopeError(
        kind,
        message or _DEFAULT_MESSAGES[kind],
        status_code=status_code,
        response_body=response_body,
        retry_after_ms=retry_after_ms if kind is ErrorKind.RATE_LIMIT else None,
    )
