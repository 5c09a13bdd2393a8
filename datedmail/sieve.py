"""Render the registry into a Sieve filter script"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import re

from datedmail.errors import ValidationError
from datedmail.schemas import Alias, Registry
from datedmail.utils import utc_now, write_text_atomic

logger = logging.getLogger(__name__)

REJECT_MESSAGE = "550 Invalid or expired recipient address"
SIEVE_EXTENSIONS = ("envelope", "reject")

CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')

HEADER_TEMPLATE = """\
# DatedMail Sieve filter
# Generated: {rendered_at}
#
# This file is regenerated whenever an alias is created or expires.
# Manual edits will be overwritten.
#
# Mail whose envelope recipient matches an active alias is redirected
# to the forwarding address. Everything else falls through to the
# reject rule at the end of the script.

require {extensions};
"""

FOOTER_TEMPLATE = """\
# No active alias matched
reject {message}; stop;
"""


def quote_string(value: str, field: str = "value") -> str:
    """
    Quote a value as a Sieve string, escaping backslashes and double quotes.

    Args:
        value: Text to quote
        field: Registry field the value came from, used in error reports

    Raises:
        ValidationError: If the value contains control characters
    """
    if CONTROL_CHARS.search(value):
        raise ValidationError.single(
            field, f"{value!r} contains control characters and cannot be used in a Sieve script"
        )
    return '"' + value.replace('\\', '\\\\').replace('"', '\\"') + '"'


def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec='seconds')


def render_header(rendered_at: datetime) -> str:
    extensions = "[" + ", ".join(quote_string(ext) for ext in SIEVE_EXTENSIONS) + "]"
    return HEADER_TEMPLATE.format(
        rendered_at=format_timestamp(rendered_at),
        extensions=extensions,
    )


def render_rule(alias: Alias, forwarding_address: str) -> str:
    """Render the rule block accepting one alias"""
    address = quote_string(alias.address, 'Address')
    target = quote_string(forwarding_address, 'ForwardingEmailAddress')
    return (
        f"# Expires: {format_timestamp(alias.expires_at)}\n"
        f"if envelope :is \"to\" {address} {{\n"
        f"    redirect {target};\n"
        f"    stop;\n"
        f"}}\n"
    )


def render_footer() -> str:
    return FOOTER_TEMPLATE.format(message=quote_string(REJECT_MESSAGE))


def render_filter_script(registry: Registry, rendered_at: Optional[datetime] = None) -> str:
    """
    Render the complete filter script for a registry.

    Rules appear in alias order. Apart from the timestamp in the header the
    output depends only on the registry.
    """
    if rendered_at is None:
        rendered_at = utc_now()

    sections = [render_header(rendered_at)]
    sections.extend(
        render_rule(alias, registry.forwarding_email_address)
        for alias in registry.addresses
    )
    sections.append(render_footer())
    return "\n".join(sections)


def write_filter_script(registry: Registry, rendered_at: Optional[datetime] = None) -> Path:
    """
    Render the filter script and atomically replace the file at the
    registry's sieve path.

    Raises:
        StorageError: If the script cannot be written
    """
    script = render_filter_script(registry, rendered_at)
    path = write_text_atomic(registry.sieve_filter_path, script)
    logger.info(f"Wrote Sieve filter with {len(registry.addresses)} alias rule(s) to {path}")
    return path
