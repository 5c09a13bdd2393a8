"""Pydantic schemas for the alias registry file"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime, timezone
import os
import re

PLUS_SEPARATOR = "+"

# Characters allowed in an unquoted email local-part (RFC 5322 atext plus '.')
LOCAL_PART_PATTERN = re.compile(r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~.-]+$")

DOMAIN_PATTERN = re.compile(
    r'^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$'
)

# Anything that would need more than \" and \\ escaping in a Sieve string
UNSAFE_ADDRESS_PATTERN = re.compile(r'[\s"\\\x00-\x1f\x7f]')


def to_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime; naive values are local time"""
    return value.astimezone(timezone.utc)


class Alias(BaseModel):
    """One disposable address and the instant it stops being accepted"""
    model_config = ConfigDict(populate_by_name=True)

    address: str = Field(alias="Address")
    expires_at: datetime = Field(alias="ExpiresOn")

    @field_validator('address')
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not v:
            raise ValueError('Alias address must not be empty')
        if UNSAFE_ADDRESS_PATTERN.search(v):
            raise ValueError('Alias address must not contain whitespace, control characters, quotes or backslashes')
        return v

    @field_validator('expires_at')
    @classmethod
    def normalize_expiry(cls, v: datetime) -> datetime:
        try:
            return to_utc(v)
        except OverflowError as e:
            raise ValueError(f"Expiry is out of range: {e}") from e

    @property
    def local_part(self) -> str:
        return self.address.split("@", 1)[0]

    def is_expired(self, now: datetime) -> bool:
        """Check if this alias has expired at the given instant"""
        return self.expires_at <= now


class Registry(BaseModel):
    """
    The persisted registry: mail settings plus the ordered alias list.

    Fields are declared in the order their rules are checked, so the first
    reported error is always the first violated rule.
    """
    model_config = ConfigDict(populate_by_name=True)

    # Rule 1
    mail_prefix: str = Field(alias="MailPrefix")
    # Rule 2
    mail_domain: Optional[str] = Field(default=None, alias="MailDomain")
    # Rule 3
    sieve_filter_path: str = Field(alias="SieveFilterPath")
    # Rule 4
    forwarding_email_address: EmailStr = Field(alias="ForwardingEmailAddress")
    # Rule 5
    addresses: List[Alias] = Field(alias="Addresses")

    @field_validator('mail_prefix')
    @classmethod
    def validate_mail_prefix(cls, v: str) -> str:
        if not v:
            raise ValueError('Mail prefix must not be empty')
        if not v.endswith(PLUS_SEPARATOR):
            raise ValueError(f"Mail prefix must end with '{PLUS_SEPARATOR}'")
        if not LOCAL_PART_PATTERN.match(v):
            raise ValueError('Mail prefix can only contain characters allowed in an email local-part')
        return v

    @field_validator('mail_domain')
    @classmethod
    def validate_mail_domain(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v:
            raise ValueError('Mail domain must not be empty')
        if '.' not in v:
            raise ValueError("Mail domain must contain a '.'")
        if not DOMAIN_PATTERN.match(v):
            raise ValueError('Invalid domain format')
        return v

    @field_validator('sieve_filter_path')
    @classmethod
    def validate_sieve_filter_path(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Sieve filter path must not be empty')
        if '\x00' in v:
            raise ValueError('Sieve filter path must not contain NUL characters')
        if v.endswith(('/', os.sep)):
            raise ValueError('Sieve filter path must name a file, not a directory')
        if os.path.basename(v) in ('.', '..'):
            raise ValueError('Sieve filter path must name a file, not a directory')
        return v

    @field_validator('forwarding_email_address', mode='before')
    @classmethod
    def require_forwarding_address(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError('Forwarding email address must not be empty')
        return v

    def alias_addresses(self) -> List[str]:
        return [alias.address for alias in self.addresses]

    def with_aliases(self, aliases: List[Alias]) -> "Registry":
        """Return a copy of this registry holding the given aliases"""
        return self.model_copy(update={"addresses": list(aliases)})

    def to_json(self) -> str:
        """Serialize to the on-disk JSON form"""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)
