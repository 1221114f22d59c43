from typing import Optional


class ValidationError(ValueError):
    """Caller supplied malformed or out-of-range input."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_errors(self) -> list[dict[str, str]]:
        entry = {"msg": self.message}
        if self.field:
            entry["field"] = self.field
        return [entry]


class NotFoundError(ValueError):
    """Referenced record is missing or belongs to another user."""


class ConsistencyError(RuntimeError):
    """A referenced budget vanished between validation and adjustment."""


class StorageError(RuntimeError):
    """The persistence layer failed; the unit of work was rolled back."""
