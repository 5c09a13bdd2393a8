"""Exception types raised by DatedMail"""

from typing import List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError


class DatedMailError(Exception):
    """Base class for all DatedMail errors"""


class NotFoundError(DatedMailError):
    """A registry or settings file does not exist"""

    def __init__(self, path, message: Optional[str] = None):
        self.path = str(path)
        super().__init__(message or f"File not found: {self.path}")


class ParseError(DatedMailError):
    """Stored data is not well-formed JSON/YAML"""

    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Could not parse {self.path}: {reason}")


class ValidationError(DatedMailError):
    """
    Data parsed fine but breaks a registry or alias rule.

    Attributes:
        errors: (field, message) pairs in the order the rules are checked.
            The first entry is the first violated rule.
    """

    def __init__(self, errors: List[Tuple[str, str]]):
        self.errors = list(errors)
        field, message = self.errors[0] if self.errors else ("", "invalid data")
        text = f"{field}: {message}" if field else message
        if len(self.errors) > 1:
            text += f" (and {len(self.errors) - 1} more)"
        super().__init__(text)

    @property
    def field(self) -> str:
        """Field of the first violated rule"""
        return self.errors[0][0] if self.errors else ""

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([(field, message)])

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        """Convert a pydantic ValidationError, keeping its error order"""
        errors = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ()))
            message = error.get("msg", "invalid value")
            # Strip pydantic's "Value error, " prefix from custom validators
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.append((field, message))
        return cls(errors)


class ConfigurationError(DatedMailError):
    """Caller passed conflicting or missing alternatives, or bad settings"""


class StorageError(DatedMailError):
    """Reading or writing the registry, filter script or export file failed"""

    def __init__(self, path, reason: str, action: str = "write"):
        self.path = str(path)
        self.reason = reason
        self.action = action
        super().__init__(f"Could not {action} {self.path}: {reason}")


class AliasExportError(StorageError):
    """The alias was created and persisted, but exporting its address failed"""

    def __init__(self, path, reason: str, alias):
        self.alias = alias
        super().__init__(path, reason)
