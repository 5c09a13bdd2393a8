"""Tests for utility helpers"""

import pytest
from datetime import datetime, timedelta, timezone

from datedmail.errors import ConfigurationError
from datedmail.utils import (
    ALIAS_ALPHABET,
    generate_alias_address,
    generate_alias_suffix,
    parse_duration,
    parse_timestamp,
    write_text_atomic,
)


class TestAliasGeneration:
    """Test random alias generation"""

    def test_alphabet(self):
        assert len(ALIAS_ALPHABET) == 36
        assert set(ALIAS_ALPHABET) == set("abcdefghijklmnopqrstuvwxyz0123456789")

    def test_suffix_length(self):
        assert len(generate_alias_suffix()) == 15

    def test_suffixes_unique(self):
        suffixes = {generate_alias_suffix() for _ in range(100)}

        assert len(suffixes) == 100

    def test_address_with_and_without_domain(self):
        assert generate_alias_address("temp+").startswith("temp+")
        assert "@" not in generate_alias_address("temp+")
        assert generate_alias_address("temp+", "example.org").endswith("@example.org")


class TestParseDuration:
    """Test compact duration parsing"""

    @pytest.mark.parametrize("text,expected", [
        ("36h", timedelta(hours=36)),
        ("1w2d", timedelta(weeks=1, days=2)),
        ("90m", timedelta(minutes=90)),
        ("1d 12h", timedelta(days=1, hours=12)),
        ("45S", timedelta(seconds=45)),
    ])
    def test_valid(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "soon", "12", "h", "3x", "0h", "1d-2h", "99999999999w", "999999999999999999999d"])
    def test_invalid(self, text):
        with pytest.raises(ConfigurationError):
            parse_duration(text)


class TestParseTimestamp:
    """Test ISO-8601 timestamp parsing"""

    def test_with_offset(self):
        assert parse_timestamp("2026-10-19T14:00:00+02:00") == datetime(2026, 10, 19, 12, tzinfo=timezone.utc)

    def test_naive_is_local(self):
        naive = datetime(2026, 10, 19, 12, 0)

        assert parse_timestamp("2026-10-19T12:00:00") == naive.astimezone(timezone.utc)

    def test_invalid(self):
        with pytest.raises(ConfigurationError):
            parse_timestamp("next tuesday")

    def test_out_of_range(self):
        """Test a timestamp that cannot be converted to UTC"""
        with pytest.raises(ConfigurationError):
            parse_timestamp("9999-12-31T23:59:59-05:00")


class TestWriteTextAtomic:
    """Test atomic file replacement"""

    def test_writes_exact_text(self, tmp_path):
        path = tmp_path / "out.txt"

        write_text_atomic(path, "line one\nline two")

        assert path.read_text() == "line one\nline two"

    def test_mode(self, tmp_path):
        path = tmp_path / "out.txt"

        write_text_atomic(path, "x", mode=0o640)

        assert path.stat().st_mode & 0o777 == 0o640

    def test_expands_home(self, isolated_home):
        written = write_text_atomic("~/nested/out.txt", "x")

        assert written == isolated_home / "nested" / "out.txt"
        assert written.read_text() == "x"
