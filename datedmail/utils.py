"""Utility functions for alias generation and file handling"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union
import os
import re
import secrets
import string
import tempfile

from datedmail.errors import ConfigurationError, StorageError

PathLike = Union[str, Path]


# ============================================================================
# Alias Generation Utilities
# ============================================================================

ALIAS_SUFFIX_LENGTH = 15
ALIAS_ALPHABET = string.ascii_lowercase + string.digits


def generate_alias_suffix(length: int = ALIAS_SUFFIX_LENGTH) -> str:
    """Random lowercase-alphanumeric string drawn uniformly from 36 symbols"""
    return ''.join(secrets.choice(ALIAS_ALPHABET) for _ in range(length))


def generate_alias_address(prefix: str, domain: Optional[str] = None) -> str:
    """
    Generate a random plus-addressed alias.

    Args:
        prefix: Local-part prefix, already ending with '+'
        domain: Optional domain. If None, returns the bare local-part.

    Returns:
        prefix + 15 random characters, with '@domain' appended if given
    """
    local_part = f"{prefix}{generate_alias_suffix()}"
    if domain is None:
        return local_part
    return f"{local_part}@{domain}"


# ============================================================================
# Time Utilities
# ============================================================================

DURATION_PATTERN = re.compile(r'(\d+)\s*([wdhms])')
DURATION_UNITS = {
    'w': 'weeks',
    'd': 'days',
    'h': 'hours',
    'm': 'minutes',
    's': 'seconds',
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_duration(text: str) -> timedelta:
    """
    Parse a compact duration such as '36h', '1w2d' or '90m'.

    Raises:
        ConfigurationError: If the text is not a positive duration
    """
    compact = text.strip().lower().replace(' ', '')
    if not compact:
        raise ConfigurationError("Duration must not be empty")

    matches = list(DURATION_PATTERN.finditer(compact))
    if not matches or ''.join(m.group(0) for m in matches) != compact:
        raise ConfigurationError(
            f"Invalid duration '{text}'. Use a number followed by w, d, h, m or s (e.g. 36h, 1w2d)"
        )

    duration = timedelta()
    try:
        for match in matches:
            amount, unit = match.groups()
            duration += timedelta(**{DURATION_UNITS[unit]: int(amount)})
    except OverflowError as e:
        raise ConfigurationError(f"Duration '{text}' is too large") from e

    if duration <= timedelta(0):
        raise ConfigurationError(f"Duration '{text}' must be positive")
    return duration


def parse_timestamp(text: str) -> datetime:
    """
    Parse an ISO-8601 timestamp. Values without an offset are local time.

    Raises:
        ConfigurationError: If the text is not a valid timestamp
    """
    try:
        return datetime.fromisoformat(text.strip()).astimezone(timezone.utc)
    except (ValueError, OverflowError) as e:
        raise ConfigurationError(f"Invalid timestamp '{text}': {e}") from e


# ============================================================================
# File Utilities
# ============================================================================

def write_text_atomic(path: PathLike, text: str, mode: int = 0o644) -> Path:
    """
    Replace `path` with `text` without exposing a half-written file.

    Writes to a temporary file in the target directory, fsyncs it and renames
    it into place. The temporary file is removed if anything fails. The
    parent directory is created when missing.

    Raises:
        StorageError: If the directory or file cannot be written
    """
    target = Path(path).expanduser()
    tmp_path = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
        )
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, target)
        tmp_path = None
    except OSError as e:
        raise StorageError(target, e.strerror or str(e)) from e
    finally:
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass

    return target
