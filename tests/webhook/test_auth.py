"""Tests for webhook secret token validation."""

from __future__ import annotations

from tapibot.webhook.auth import validate_secret_token


class TestValidateSecretToken:
    def test_valid_token(self) -> None:
        assert validate_secret_token("my-secret", "my-secret") is True

    def test_wrong_token(self) -> None:
        assert validate_secret_token("wrong", "my-secret") is False

    def test_empty_header(self) -> None:
        assert validate_secret_token("", "my-secret") is False

    def test_prefix_not_matched(self) -> None:
        assert validate_secret_token("my-secret-extra", "my-secret") is False

    def test_disabled_when_no_expected_token(self) -> None:
        assert validate_secret_token("", "") is True
        assert validate_secret_token("anything", "") is True
