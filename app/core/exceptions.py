"""Custom exception classes for structured error handling."""

from typing import Any


class LeadbaseError(Exception):
    """Base exception for all Leadbase errors."""

    def __init__(self, code: str, message: str, status_code: int = 500) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}


class ConfigurationError(LeadbaseError):
    def __init__(self, message: str = "Required configuration is missing") -> None:
        super().__init__(code="CONFIGURATION_ERROR", message=message, status_code=500)


class DatabaseConnectionError(LeadbaseError):
    def __init__(self, message: str = "Database connection failed") -> None:
        super().__init__(code="CONNECTION_ERROR", message=message, status_code=500)


class UnauthorizedError(LeadbaseError):
    def __init__(self, message: str = "Missing or invalid token") -> None:
        super().__init__(code="UNAUTHORIZED", message=message, status_code=401)


class InvalidCredentialsError(UnauthorizedError):
    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message=message)
        self.code = "INVALID_CREDENTIALS"


class ForbiddenError(LeadbaseError):
    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(code="FORBIDDEN", message=message, status_code=403)


class ConflictError(LeadbaseError):
    def __init__(self, message: str = "Resource already exists") -> None:
        super().__init__(code="CONFLICT", message=message, status_code=409)


class UsernameTakenError(ConflictError):
    def __init__(self, message: str = "Username already exists") -> None:
        super().__init__(message=message)


class EmailTakenError(ConflictError):
    def __init__(self, message: str = "Email already exists") -> None:
        super().__init__(message=message)


class NotFoundError(LeadbaseError):
    def __init__(self, message: str = "Not found") -> None:
        super().__init__(code="NOT_FOUND", message=message, status_code=404)


class AdminNotFoundError(NotFoundError):
    def __init__(self, message: str = "Admin not found") -> None:
        super().__init__(message=message)


class LeadNotFoundError(NotFoundError):
    def __init__(self, message: str = "Lead not found") -> None:
        super().__init__(message=message)


class UserNotFoundError(NotFoundError):
    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message=message)


class InvalidInputError(LeadbaseError):
    def __init__(
        self,
        message: str = "Invalid request payload",
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(code="VALIDATION_ERROR", message=message, status_code=400)
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.details:
            body["error"]["details"] = self.details
        return body
