"""
Tests for environment flag parsing.

Test Strategy
-------------
- Boolean flags accept an exact vocabulary, nothing fuzzy
- Paths from the environment go through PathSanitizer

Organization
------------
- TestGetEnvBool
- TestGetEnvPath
- TestGetEnvWhitelist
"""

import pytest

from trustgate.core.security.env import (
    PEER_USAGES,
    get_env_bool,
    get_env_path,
    get_env_whitelist,
)

VAR = "TRUSTGATE_TEST_FLAG"


class TestGetEnvBool:
    """Tests for get_env_bool.

    Rule #4: Focused test class - tests only get_env_bool
    """

    @pytest.mark.parametrize("value", ["1", "t", "T", "TRUE", "true", "True"])
    def test_true_spellings(self, monkeypatch, value):
        monkeypatch.setenv(VAR, value)

        assert get_env_bool(VAR) is True

    @pytest.mark.parametrize("value", ["0", "f", "F", "FALSE", "false", "False"])
    def test_false_spellings(self, monkeypatch, value):
        monkeypatch.setenv(VAR, value)

        assert get_env_bool(VAR, default=True) is False

    @pytest.mark.parametrize("value", ["yes", "on", "tRUE", "", " true", "2"])
    def test_anything_else_is_false_by_default(self, monkeypatch, value):
        monkeypatch.setenv(VAR, value)

        assert get_env_bool(VAR) is False

    def test_unset_returns_default(self, monkeypatch):
        monkeypatch.delenv(VAR, raising=False)

        assert get_env_bool(VAR) is False
        assert get_env_bool(VAR, default=True) is True


class TestGetEnvPath:
    """Tests for get_env_path."""

    def test_unset_returns_default(self, monkeypatch, temp_dir):
        monkeypatch.delenv(VAR, raising=False)

        assert get_env_path(VAR, default=temp_dir) == temp_dir

    def test_absolute_path_is_resolved(self, monkeypatch, temp_dir):
        monkeypatch.setenv(VAR, str(temp_dir))

        assert get_env_path(VAR) == temp_dir

    def test_traversal_under_base_dir_returns_default(self, monkeypatch, temp_dir):
        monkeypatch.setenv(VAR, "../../etc")

        assert get_env_path(VAR, base_dir=temp_dir) is None

    def test_must_exist(self, monkeypatch, temp_dir):
        monkeypatch.setenv(VAR, str(temp_dir / "missing"))

        assert get_env_path(VAR, must_exist=True) is None


class TestGetEnvWhitelist:
    """Tests for get_env_whitelist."""

    def test_case_insensitive_match_returns_canonical(self, monkeypatch):
        monkeypatch.setenv(VAR, "CLIENT_AUTH")

        assert get_env_whitelist(VAR, PEER_USAGES) == "client_auth"

    def test_unknown_value_returns_default(self, monkeypatch):
        monkeypatch.setenv(VAR, "code_signing")

        assert get_env_whitelist(VAR, PEER_USAGES, default="any") == "any"
