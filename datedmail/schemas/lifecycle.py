"""Pydantic schemas for alias creation and refresh"""

from pydantic import BaseModel, PositiveInt, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from typing import Optional, List
from datetime import datetime, timedelta

from datedmail.errors import ConfigurationError, ValidationError
from datedmail.schemas.registry import Alias, to_utc


class ExpirySpec(BaseModel):
    """When a new alias expires: exactly one of days, an instant or a duration"""
    valid_days: Optional[PositiveInt] = None
    valid_until: Optional[datetime] = None
    valid_for: Optional[timedelta] = None

    @field_validator('valid_for')
    @classmethod
    def validate_duration(cls, v: Optional[timedelta]) -> Optional[timedelta]:
        if v is not None and v <= timedelta(0):
            raise ValueError('Duration must be positive')
        return v

    @model_validator(mode='after')
    def check_exactly_one(self) -> "ExpirySpec":
        given = [
            name for name in ('valid_days', 'valid_until', 'valid_for')
            if getattr(self, name) is not None
        ]
        if len(given) != 1:
            raise ValueError(
                'Exactly one of valid_days, valid_until or valid_for is required '
                f'(got {", ".join(given) or "none"})'
            )
        return self

    @classmethod
    def from_options(
        cls,
        valid_days: Optional[int] = None,
        valid_until: Optional[datetime] = None,
        valid_for: Optional[timedelta] = None,
    ) -> "ExpirySpec":
        """
        Build a spec from caller options.

        Raises:
            ConfigurationError: If none or more than one option is given,
                or an option is out of range
        """
        try:
            return cls(valid_days=valid_days, valid_until=valid_until, valid_for=valid_for)
        except PydanticValidationError as e:
            messages = "; ".join(error["msg"].replace("Value error, ", "") for error in e.errors())
            raise ConfigurationError(f"Invalid expiry: {messages}") from e

    def resolve(self, now: datetime) -> datetime:
        """
        Absolute UTC expiry for an alias created at `now`.

        Raises:
            ValidationError: If the expiry falls outside the representable range
        """
        try:
            if self.valid_days is not None:
                return to_utc(now + timedelta(days=self.valid_days))
            if self.valid_for is not None:
                return to_utc(now + self.valid_for)
            return to_utc(self.valid_until)
        except OverflowError as e:
            raise ValidationError.single("ExpiresOn", f"Expiry is out of range: {e}") from e


class RefreshResult(BaseModel):
    """Outcome of one refresh pass"""
    changed: bool
    expired_count: int = 0
    expired: List[Alias] = []
