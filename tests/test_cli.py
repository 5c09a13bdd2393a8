"""Tests for the command line interface"""

import json
import pytest
import re
from datetime import datetime, timedelta, timezone

from datedmail.cli import main
from datedmail.store import load_registry

from conftest import make_alias, store_aliases


@pytest.fixture
def cli_paths(tmp_path):
    return tmp_path / "registry.json", tmp_path / "filter.sieve"


@pytest.fixture
def initialized(cli_paths):
    registry_path, sieve_path = cli_paths
    code = main([
        "--registry", str(registry_path),
        "init",
        "--prefix", "temp+",
        "--domain", "example.org",
        "--forward", "a@b.org",
        "--sieve-path", str(sieve_path),
    ])
    assert code == 0
    return registry_path, sieve_path


class TestInitCommand:
    """Test 'datedmail init'"""

    def test_init_creates_registry(self, initialized):
        registry_path, _ = initialized

        registry = load_registry(registry_path)
        assert registry.mail_prefix == "temp+"
        assert registry.mail_domain == "example.org"

    def test_init_invalid_prefix(self, cli_paths):
        registry_path, sieve_path = cli_paths

        code = main([
            "--registry", str(registry_path),
            "init", "--prefix", "temp", "--forward", "a@b.org", "--sieve-path", str(sieve_path),
        ])

        assert code == 1
        assert not registry_path.exists()

    def test_init_existing_needs_force(self, initialized):
        registry_path, sieve_path = initialized
        args = [
            "--registry", str(registry_path),
            "init", "--prefix", "new+", "--forward", "a@b.org", "--sieve-path", str(sieve_path),
        ]

        assert main(args) == 1
        assert main(args + ["--force"]) == 0
        assert load_registry(registry_path).mail_prefix == "new+"


class TestCreateCommand:
    """Test 'datedmail create'"""

    def test_create_prints_address(self, initialized, capsys):
        registry_path, sieve_path = initialized
        capsys.readouterr()

        code = main(["--registry", str(registry_path), "create", "--days", "1", "--print"])

        assert code == 0
        address = capsys.readouterr().out.strip()
        assert re.match(r"^temp\+[a-z0-9]{15}@example\.org$", address)
        assert load_registry(registry_path).alias_addresses() == [address]
        assert address in sieve_path.read_text()

    def test_create_with_duration_and_export(self, initialized, tmp_path):
        registry_path, _ = initialized
        export_path = tmp_path / "alias.txt"

        code = main(["--registry", str(registry_path), "create", "--for", "36h", "--export", str(export_path)])

        assert code == 0
        alias = load_registry(registry_path).addresses[0]
        assert export_path.read_text() == alias.address
        lifetime = alias.expires_at - datetime.now(timezone.utc)
        assert timedelta(hours=35) < lifetime <= timedelta(hours=36)

    def test_create_until(self, initialized):
        registry_path, _ = initialized

        code = main(["--registry", str(registry_path), "create", "--until", "2099-01-01T00:00:00+00:00"])

        assert code == 0
        assert load_registry(registry_path).addresses[0].expires_at == datetime(2099, 1, 1, tzinfo=timezone.utc)

    def test_create_past_until_fails(self, initialized):
        registry_path, _ = initialized

        code = main(["--registry", str(registry_path), "create", "--until", "2000-01-01T00:00:00+00:00"])

        assert code == 1
        assert load_registry(registry_path).addresses == []

    def test_create_without_expiry_fails(self, initialized):
        registry_path, _ = initialized

        assert main(["--registry", str(registry_path), "create"]) == 1
        assert load_registry(registry_path).addresses == []

    def test_create_uses_default_valid_days(self, initialized, tmp_path):
        registry_path, _ = initialized
        settings_path = tmp_path / "settings.yaml"
        settings_path.write_text("aliases:\n  default_valid_days: 3\n")

        code = main(["--settings", str(settings_path), "--registry", str(registry_path), "create"])

        assert code == 0
        lifetime = load_registry(registry_path).addresses[0].expires_at - datetime.now(timezone.utc)
        assert timedelta(days=2, hours=23) < lifetime <= timedelta(days=3)

    def test_conflicting_expiry_flags(self, initialized):
        registry_path, _ = initialized

        with pytest.raises(SystemExit):
            main(["--registry", str(registry_path), "create", "--days", "1", "--for", "2h"])

    @pytest.mark.parametrize("flags", [["--days", "3000000"], ["--for", "99999999999w"], ["--until", "9999-12-31T23:59:59-05:00"]])
    def test_out_of_range_expiry(self, initialized, flags):
        """Test unrepresentable expiries fail cleanly and create nothing"""
        registry_path, sieve_path = initialized

        assert main(["--registry", str(registry_path), "create"] + flags) == 1
        assert load_registry(registry_path).addresses == []
        assert not sieve_path.exists()

    def test_invalid_duration(self, initialized):
        registry_path, _ = initialized

        assert main(["--registry", str(registry_path), "create", "--for", "soon"]) == 1

    def test_export_failure_still_prints_address(self, initialized, tmp_path, capsys):
        registry_path, _ = initialized
        capsys.readouterr()
        export_path = tmp_path / "missing" / "alias.txt"

        code = main(["--registry", str(registry_path), "create", "--days", "1", "--export", str(export_path)])

        assert code == 1
        address = capsys.readouterr().out.strip()
        assert load_registry(registry_path).alias_addresses() == [address]

    def test_missing_registry(self, tmp_path):
        assert main(["--registry", str(tmp_path / "nope.json"), "create", "--days", "1"]) == 1


class TestRefreshCommand:
    """Test 'datedmail refresh'"""

    def test_refresh_removes_expired(self, initialized, capsys):
        registry_path, sieve_path = initialized
        capsys.readouterr()
        past = datetime.now(timezone.utc) - timedelta(days=1)
        future = datetime.now(timezone.utc) + timedelta(days=1)
        store_aliases(registry_path, [make_alias("old", past), make_alias("new", future)])

        code = main(["--registry", str(registry_path), "refresh"])

        assert code == 0
        assert "Removed 1 expired alias" in capsys.readouterr().out
        assert load_registry(registry_path).alias_addresses() == ["temp+new@example.org"]
        assert "temp+new@example.org" in sieve_path.read_text()

    def test_forced_refresh_writes_script(self, initialized):
        registry_path, sieve_path = initialized

        assert main(["--registry", str(registry_path), "refresh", "--force"]) == 0
        assert sieve_path.exists()


class TestListCommand:
    """Test 'datedmail list'"""

    def test_list_empty(self, initialized, capsys):
        registry_path, _ = initialized
        capsys.readouterr()

        assert main(["--registry", str(registry_path), "list"]) == 0
        assert "No aliases" in capsys.readouterr().out

    def test_list_shows_status(self, initialized, capsys):
        registry_path, _ = initialized
        capsys.readouterr()
        store_aliases(registry_path, [
            make_alias("old", datetime.now(timezone.utc) - timedelta(days=1)),
            make_alias("new", datetime.now(timezone.utc) + timedelta(days=1)),
        ])

        assert main(["--registry", str(registry_path), "list"]) == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[0].startswith("temp+old@example.org\t")
        assert lines[0].endswith("\texpired")
        assert lines[1].endswith("\tactive")


class TestWatchCommand:
    """Test 'datedmail watch'"""

    def test_watch_uses_interval(self, initialized, monkeypatch):
        registry_path, _ = initialized
        calls = []
        monkeypatch.setattr(
            "datedmail.cli.run_refresh_loop",
            lambda path, interval_seconds: calls.append((path, interval_seconds)),
        )

        assert main(["--registry", str(registry_path), "watch", "--interval", "5"]) == 0
        assert calls == [(registry_path, 300)]

    def test_watch_rejects_non_positive_interval(self, initialized):
        registry_path, _ = initialized

        assert main(["--registry", str(registry_path), "watch", "--interval", "0"]) == 1


class TestMain:
    """Test global CLI behavior"""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_missing_settings_file(self, tmp_path):
        assert main(["--settings", str(tmp_path / "missing.yaml"), "list"]) == 1

    def test_registry_from_settings(self, initialized, tmp_path, capsys):
        registry_path, _ = initialized
        capsys.readouterr()
        settings_path = tmp_path / "settings.yaml"
        settings_path.write_text(json.dumps({"registry": {"path": str(registry_path)}}))

        assert main(["--settings", str(settings_path), "list"]) == 0
        assert "No aliases" in capsys.readouterr().out
