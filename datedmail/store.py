"""Registry persistence: load, validate and save the alias registry file"""

from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging

from pydantic import ValidationError as PydanticValidationError

from datedmail.errors import ConfigurationError, NotFoundError, ParseError, StorageError, ValidationError
from datedmail.schemas import Registry
from datedmail.utils import write_text_atomic

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_REGISTRY_PATH = Path("~/.config/DatedMail/DatedMailConfig.json")

# The registry names a forwarding address, so keep it private to the operator
REGISTRY_FILE_MODE = 0o600


def validate_registry_data(data: Dict[str, Any]) -> Registry:
    """
    Validate raw registry data in a single pass.

    Raises:
        ValidationError: Listing every violated rule, first violated rule first
    """
    try:
        return Registry.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e


def migrate_legacy_addresses(registry: Registry) -> Registry:
    """
    Upgrade aliases stored as bare local-parts to full addresses.

    Older registries stored only prefix + suffix. When a domain is configured
    such entries get '@domain' appended; the next save persists the result.
    """
    if registry.mail_domain is None:
        return registry

    legacy = [alias for alias in registry.addresses if "@" not in alias.address]
    if not legacy:
        return registry

    migrated = [
        alias if "@" in alias.address
        else alias.model_copy(update={"address": f"{alias.address}@{registry.mail_domain}"})
        for alias in registry.addresses
    ]
    logger.info(f"Migrated {len(legacy)} legacy alias address(es) to include @{registry.mail_domain}")
    return registry.with_aliases(migrated)


def load_registry(path: PathLike) -> Registry:
    """
    Load and validate the registry file.

    Raises:
        NotFoundError: If there is no file at path
        ParseError: If the file is not a well-formed JSON object
        ValidationError: If the data breaks a registry rule
        StorageError: If the file exists but cannot be read
    """
    registry_path = Path(path).expanduser()
    if not registry_path.is_file():
        raise NotFoundError(
            registry_path,
            f"Registry not found: {registry_path}. Run 'datedmail init' first",
        )

    try:
        with open(registry_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ParseError(registry_path, str(e)) from e
    except UnicodeDecodeError as e:
        raise ParseError(registry_path, str(e)) from e
    except OSError as e:
        raise StorageError(registry_path, e.strerror or str(e), action="read") from e

    if not isinstance(data, dict):
        raise ParseError(registry_path, f"expected a JSON object, got {type(data).__name__}")

    registry = validate_registry_data(data)
    logger.debug(f"Loaded registry from {registry_path} ({len(registry.addresses)} aliases)")
    return migrate_legacy_addresses(registry)


def save_registry(registry: Registry, path: PathLike) -> Path:
    """
    Write the full registry, replacing the file atomically.

    Raises:
        StorageError: If the file or its directory cannot be written
    """
    registry_path = write_text_atomic(path, registry.to_json() + "\n", mode=REGISTRY_FILE_MODE)
    logger.debug(f"Saved registry to {registry_path}")
    return registry_path


def initialize_registry(
    path: PathLike,
    mail_prefix: str,
    forwarding_email_address: str,
    sieve_filter_path: str,
    mail_domain: Optional[str] = None,
    overwrite: bool = False,
) -> Registry:
    """
    Create a new registry with no aliases and persist it.

    Args:
        path: Where to store the registry
        mail_prefix: Local-part prefix ending with '+'
        forwarding_email_address: Where mail for active aliases is redirected
        sieve_filter_path: Where the rendered Sieve script is written
        mail_domain: Optional domain appended to generated aliases
        overwrite: Replace an existing registry (dropping its aliases)

    Raises:
        ValidationError: If any registry rule is violated; nothing is written
        ConfigurationError: If a registry exists and overwrite is False
        StorageError: If the file cannot be written
    """
    data: Dict[str, Any] = {
        "MailPrefix": mail_prefix,
        "SieveFilterPath": sieve_filter_path,
        "ForwardingEmailAddress": forwarding_email_address,
        "Addresses": [],
    }
    if mail_domain is not None:
        data["MailDomain"] = mail_domain

    registry = validate_registry_data(data)

    registry_path = Path(path).expanduser()
    if registry_path.exists() and not overwrite:
        raise ConfigurationError(
            f"Registry already exists at {registry_path}; pass overwrite to replace it"
        )

    save_registry(registry, registry_path)
    logger.info(f"Initialized registry at {registry_path}")
    return registry
