"""Alias lifecycle: creation and the periodic expiry sweep"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple, Union
import logging
import time

from datedmail.errors import AliasExportError, DatedMailError, ValidationError
from datedmail.schemas import Alias, ExpirySpec, RefreshResult
from datedmail.sieve import write_filter_script
from datedmail.store import load_registry, save_registry
from datedmail.utils import generate_alias_address, utc_now

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

MAX_GENERATION_ATTEMPTS = 10


def partition_aliases(aliases: List[Alias], now: datetime) -> Tuple[List[Alias], List[Alias]]:
    """Split aliases into (kept, expired), preserving order in both"""
    kept: List[Alias] = []
    expired: List[Alias] = []
    for alias in aliases:
        (expired if alias.is_expired(now) else kept).append(alias)
    return kept, expired


def export_address(address: str, export_path: PathLike) -> None:
    """Write the bare address, without a trailing newline"""
    with open(Path(export_path).expanduser(), 'w', encoding='utf-8', newline='') as f:
        f.write(address)


def create_alias(
    registry_path: PathLike,
    expiry: ExpirySpec,
    export_path: Optional[PathLike] = None,
    now: Optional[datetime] = None,
) -> Alias:
    """
    Generate a new alias, persist it and regenerate the filter script.

    Args:
        registry_path: Registry file to update
        expiry: When the alias stops being accepted
        export_path: Optional file that receives the new address
        now: Creation instant (defaults to the current time)

    Returns:
        The created alias

    Raises:
        ValidationError: If the expiry is not in the future, or no unique
            address could be generated; the registry is left unchanged
        AliasExportError: If writing export_path failed. The alias has been
            persisted and authorized regardless.
    """
    if now is None:
        now = utc_now()

    registry = load_registry(registry_path)

    expires_at = expiry.resolve(now)
    if expires_at <= now:
        raise ValidationError.single(
            "ExpiresOn",
            f"Expiry {expires_at.isoformat()} is not after the current time {now.isoformat()}",
        )

    existing = set(registry.alias_addresses())
    for _ in range(MAX_GENERATION_ATTEMPTS):
        address = generate_alias_address(registry.mail_prefix, registry.mail_domain)
        if address not in existing:
            break
        logger.warning(f"Generated alias {address} already exists, retrying")
    else:
        raise ValidationError.single(
            "Address", f"Failed to generate a unique alias after {MAX_GENERATION_ATTEMPTS} attempts"
        )

    alias = Alias(address=address, expires_at=expires_at)
    registry = registry.with_aliases(registry.addresses + [alias])

    save_registry(registry, registry_path)
    # New aliases must be accepted right away
    write_filter_script(registry, rendered_at=now)
    logger.info(f"Created alias {alias.address} (expires {alias.expires_at.isoformat()})")

    if export_path is not None:
        try:
            export_address(alias.address, export_path)
        except OSError as e:
            raise AliasExportError(export_path, e.strerror or str(e), alias) from e
        logger.info(f"Exported alias to {export_path}")

    return alias


def refresh_aliases(
    registry_path: PathLike,
    force: bool = False,
    now: Optional[datetime] = None,
) -> RefreshResult:
    """
    Drop expired aliases and regenerate the filter script if needed.

    The script is rewritten when something expired, or when force is set.
    With nothing expired and no force, nothing is written.
    """
    if now is None:
        now = utc_now()

    registry = load_registry(registry_path)
    kept, expired = partition_aliases(registry.addresses, now)

    if expired:
        registry = registry.with_aliases(kept)
        save_registry(registry, registry_path)
        write_filter_script(registry, rendered_at=now)
        for alias in expired:
            logger.info(f"Expired alias {alias.address} (expired {alias.expires_at.isoformat()})")
        logger.info(f"Refresh: removed {len(expired)} expired aliases, {len(kept)} remain")
        return RefreshResult(changed=True, expired_count=len(expired), expired=expired)

    if force:
        write_filter_script(registry, rendered_at=now)
        logger.info("Refresh: no expired aliases, filter regenerated on request")
    else:
        logger.debug("Refresh: no expired aliases")

    return RefreshResult(changed=False, expired_count=0)


def run_refresh_loop(
    registry_path: PathLike,
    interval_seconds: float,
    iterations: Optional[int] = None,
) -> None:
    """
    Refresh the registry every interval_seconds.

    Runs forever unless iterations is given. A failed pass is logged and the
    loop carries on with the next one.
    """
    logger.info(f"Starting refresh loop (interval: {interval_seconds:g}s)")

    completed = 0
    while iterations is None or completed < iterations:
        try:
            refresh_aliases(registry_path)
        except DatedMailError as e:
            logger.error(f"Refresh error: {e}")
        except Exception as e:
            logger.exception(f"Refresh loop error: {e}")

        completed += 1
        if iterations is not None and completed >= iterations:
            break
        # Sleep until next run
        time.sleep(interval_seconds)
