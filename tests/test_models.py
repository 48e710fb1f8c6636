"""Tests for schlussel.models -- tokens, sessions, and provider configs."""

from __future__ import annotations

import pytest

from schlussel.exceptions import InvalidArgumentError
from schlussel.models import DEFAULT_REDIRECT_URI, OAuthConfig, Session, Token


class TestSession:
    def test_created_at_defaults_to_now(self) -> None:
        session = Session(state="s", code_verifier="v")
        assert session.created_at > 0
        assert session.domain is None
        assert session.redirect_uri is None


class TestTokenFromResponse:
    def test_full_response(self) -> None:
        token = Token.from_response(
            {
                "access_token": "at",
                "token_type": "bearer",
                "refresh_token": "rt",
                "expires_in": 3600,
                "scope": "repo",
            },
            now=1000,
        )
        assert token.access_token == "at"
        assert token.token_type == "bearer"
        assert token.refresh_token == "rt"
        assert token.expires_in == 3600
        assert token.expires_at == 4600
        assert token.scope == "repo"

    def test_minimal_response(self) -> None:
        token = Token.from_response({"access_token": "at"})
        assert token.token_type == "Bearer"
        assert token.expires_at is None
        assert token.refresh_token is None

    def test_string_expires_in(self) -> None:
        token = Token.from_response({"access_token": "at", "expires_in": "60"}, now=0)
        assert token.expires_at == 60

    @pytest.mark.parametrize("payload", [{}, {"access_token": ""}, {"access_token": 5}])
    def test_missing_access_token(self, payload: dict) -> None:
        with pytest.raises(InvalidArgumentError, match="access_token"):
            Token.from_response(payload)

    @pytest.mark.parametrize(
        "payload",
        [
            {"access_token": "at", "expires_in": "3600.0"},
            {"access_token": "at", "expires_in": "soon"},
            {"access_token": "at", "expires_in": [3600]},
            {"access_token": "at", "refresh_token": 12345},
            {"access_token": "at", "scope": ["read", "write"]},
        ],
    )
    def test_malformed_fields(self, payload: dict) -> None:
        with pytest.raises(InvalidArgumentError, match="Malformed token response"):
            Token.from_response(payload)


class TestTokenExpiry:
    def test_no_expiry_never_expires(self) -> None:
        token = Token(access_token="at")
        assert token.is_expired() is False
        assert token.should_refresh(0.0) is False

    def test_expired_at_boundary(self) -> None:
        token = Token(access_token="at", expires_in=100, expires_at=1100)
        assert token.is_expired(now=1099) is False
        assert token.is_expired(now=1100) is True

    def test_should_refresh_threshold(self) -> None:
        token = Token(access_token="at", expires_in=100, expires_at=1100)
        # 70% of the lifetime has elapsed at t=1070.
        assert token.should_refresh(0.8, now=1070) is False
        assert token.should_refresh(0.8, now=1080) is True
        assert token.should_refresh(1.0, now=1080) is False
        assert token.should_refresh(1.0, now=1100) is True

    def test_threshold_is_clamped(self) -> None:
        token = Token(access_token="at", expires_in=100, expires_at=1100)
        assert token.should_refresh(-5.0, now=1000) is True
        assert token.should_refresh(7.0, now=1099) is False

    def test_expires_at_without_expires_in(self) -> None:
        token = Token(access_token="at", expires_at=1100)
        assert token.should_refresh(0.1, now=1050) is False
        assert token.should_refresh(0.1, now=1100) is True


class TestOAuthConfig:
    def test_defaults(self) -> None:
        config = OAuthConfig(
            client_id="c",
            authorization_endpoint="https://a/authorize",
            token_endpoint="https://a/token",
        )
        assert config.redirect_uri == DEFAULT_REDIRECT_URI
        assert config.scope is None
        assert config.validate_config() == []

    def test_validate_reports_empty_fields(self) -> None:
        config = OAuthConfig(client_id="", authorization_endpoint=" ", token_endpoint="https://t")
        problems = config.validate_config()
        assert "'client_id' must not be empty" in problems
        assert "'authorization_endpoint' must not be empty" in problems
        assert len(problems) == 2

    def test_github_preset(self) -> None:
        config = OAuthConfig.github("cid", scope="repo")
        assert config.authorization_endpoint == "https://github.com/login/oauth/authorize"
        assert config.token_endpoint == "https://github.com/login/oauth/access_token"
        assert config.scope == "repo"

    def test_microsoft_tenant(self) -> None:
        config = OAuthConfig.microsoft("cid", tenant="contoso")
        assert config.authorization_endpoint.startswith(
            "https://login.microsoftonline.com/contoso/oauth2/v2.0/"
        )

    def test_gitlab_self_hosted(self) -> None:
        config = OAuthConfig.gitlab("cid", base_url="https://git.corp/")
        assert config.authorization_endpoint == "https://git.corp/oauth/authorize"
        assert config.token_endpoint == "https://git.corp/oauth/token"

    @pytest.mark.parametrize("preset", ["github", "google", "microsoft", "gitlab", "tuist"])
    def test_presets_are_valid(self, preset: str) -> None:
        config = getattr(OAuthConfig, preset)("cid")
        assert config.validate_config() == []
