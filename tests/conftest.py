"""Shared fixtures for DatedMail tests"""

import pytest
from datetime import datetime, timedelta, timezone

from datedmail.config import SETTINGS_ENV_VAR
from datedmail.schemas import Alias
from datedmail.store import initialize_registry, load_registry, save_registry

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.config and DATEDMAIL_SETTINGS"""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv(SETTINGS_ENV_VAR, raising=False)
    return home


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def registry_path(tmp_path):
    return tmp_path / "config" / "DatedMailConfig.json"


@pytest.fixture
def sieve_path(tmp_path):
    return tmp_path / "sieve" / "datedmail.sieve"


@pytest.fixture
def registry(registry_path, sieve_path):
    """An initialized registry with a domain and no aliases"""
    return initialize_registry(
        registry_path,
        mail_prefix="temp+",
        forwarding_email_address="a@b.org",
        sieve_filter_path=str(sieve_path),
        mail_domain="example.org",
    )


def make_alias(name, expires_at):
    return Alias(address=f"temp+{name}@example.org", expires_at=expires_at)


def store_aliases(registry_path, aliases):
    """Replace the aliases of the registry at registry_path"""
    registry = load_registry(registry_path)
    save_registry(registry.with_aliases(aliases), registry_path)


@pytest.fixture
def mixed_aliases(registry, registry_path):
    """Registry holding 2 expired and 3 active aliases, interleaved"""
    aliases = [
        make_alias("active1", NOW + timedelta(days=1)),
        make_alias("expired1", NOW - timedelta(days=1)),
        make_alias("active2", NOW + timedelta(hours=1)),
        make_alias("expired2", NOW),
        make_alias("active3", NOW + timedelta(days=30)),
    ]
    store_aliases(registry_path, aliases)
    return aliases
