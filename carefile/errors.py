"""Classified failures raised by the record and analysis services.

The application turns these into HTTP responses with ``status_code`` and
``detail``; anything else that escapes a service is treated as an
unclassified upstream failure (500).
"""


class CarefileError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def detail(self) -> str | dict:
        return self.message


class ValidationError(CarefileError):
    """A required field is missing or blank."""

    status_code = 400


class NotFoundError(CarefileError):
    status_code = 404


class ConflictError(CarefileError):
    """A patient with the same name or passport already exists."""

    status_code = 409

    def __init__(self, message: str, existing: dict | None = None) -> None:
        super().__init__(message)
        self.existing = existing or {}

    @property
    def detail(self) -> dict:
        return {"message": self.message, "existing": self.existing}


class UnauthorizedError(CarefileError):
    status_code = 401


class DependentStateError(CarefileError):
    """The request needs state that does not exist yet (no analysis, no content)."""

    status_code = 400
