"""
Unit tests for JWT token validation and the Authorization Gate (weather_mcp/auth.py).

validate_token() is exercised step by step:

1. Header presence check
2. Bearer scheme extraction
3. JWT signature verification
4. Expiration check (plus audience / issuer when configured)
5. Claims extraction (sub, scope, flattened claims)

has_claim() / require_claim() are exercised with the claim-type aliases
identity providers use for roles.
"""

import pytest

from weather_mcp.auth import (
    AuthError,
    TokenInfo,
    flatten_claims,
    has_claim,
    require_claim,
    validate_token,
)
from weather_mcp.config import DEFAULT_ROLE_CLAIM_TYPES, settings
from weather_mcp.errors import AuthorizationDeniedError

WS_FED_ROLE = "http://schemas.microsoft.com/ws/2008/06/identity/claims/role"


class TestValidateToken:
    """Tests for the validate_token() function."""

    # ----- Happy path -----

    def test_valid_token_decodes_correctly(self, make_auth_header):
        header = make_auth_header(sub="weather-api", roles=["GetAlerts"], scopes=["weather:read"])

        result = validate_token(header)

        assert result.subject == "weather-api"
        assert result.scopes == ["weather:read"]
        assert ("roles", "GetAlerts") in result.claims

    def test_list_claims_are_flattened(self, make_auth_header):
        header = make_auth_header(sub="weather-api", roles=["GetAlerts", "Reader"])

        result = validate_token(header)

        assert ("roles", "GetAlerts") in result.claims
        assert ("roles", "Reader") in result.claims
        assert ("sub", "weather-api") in result.claims

    # ----- Missing / malformed Authorization header -----

    def test_missing_header_raises_auth_error(self):
        with pytest.raises(AuthError, match="Missing Authorization header"):
            validate_token(None)

    def test_empty_header_raises_auth_error(self):
        with pytest.raises(AuthError, match="Missing Authorization header"):
            validate_token("")

    def test_non_bearer_scheme_raises_auth_error(self, make_token):
        token = make_token(sub="weather-api", roles=["GetAlerts"])

        with pytest.raises(AuthError, match="Invalid Authorization header format"):
            validate_token(f"Basic {token}")

    def test_missing_token_after_bearer_raises_auth_error(self):
        with pytest.raises(AuthError, match="Invalid Authorization header format"):
            validate_token("Bearer")

    def test_auth_error_maps_to_401(self):
        with pytest.raises(AuthError) as exc_info:
            validate_token(None)

        assert exc_info.value.status_code == 401

    # ----- JWT signature and structure -----

    def test_malformed_token_raises_auth_error(self):
        with pytest.raises(AuthError, match="Invalid token"):
            validate_token("Bearer not-a-jwt-token")

    def test_wrong_signing_key_raises_auth_error(self, make_token):
        """A forged token with the right role but the wrong secret is rejected."""
        token = make_token(sub="attacker", roles=["GetAlerts"], secret="wrong-secret")

        with pytest.raises(AuthError, match="Invalid token"):
            validate_token(f"Bearer {token}")

    # ----- Expiration -----

    def test_expired_token_raises_auth_error(self, make_token):
        token = make_token(sub="weather-api", roles=["GetAlerts"], exp_hours=-1)

        with pytest.raises(AuthError, match="Token has expired"):
            validate_token(f"Bearer {token}")

    def test_token_without_exp_claim_raises_auth_error(self, make_token):
        token = make_token(sub="weather-api", roles=["GetAlerts"], include_exp=False)

        with pytest.raises(AuthError, match="Invalid token"):
            validate_token(f"Bearer {token}")

    # ----- Sub claim -----

    def test_token_without_sub_claim_raises_auth_error(self, make_token):
        token = make_token(roles=["GetAlerts"], include_sub=False)

        with pytest.raises(AuthError, match="Invalid token"):
            validate_token(f"Bearer {token}")

    # ----- Audience / issuer -----

    def test_audience_checked_when_configured(self, make_token, monkeypatch):
        monkeypatch.setattr(settings, "jwt_audience", "api://weather-mcp")

        good = make_token(sub="weather-api", extra_claims={"aud": "api://weather-mcp"})
        bad = make_token(sub="weather-api", extra_claims={"aud": "api://other"})

        assert validate_token(f"Bearer {good}").subject == "weather-api"
        with pytest.raises(AuthError, match="Invalid token"):
            validate_token(f"Bearer {bad}")

    def test_missing_audience_rejected_when_configured(self, make_token, monkeypatch):
        monkeypatch.setattr(settings, "jwt_audience", "api://weather-mcp")
        token = make_token(sub="weather-api")

        with pytest.raises(AuthError, match="Invalid token"):
            validate_token(f"Bearer {token}")

    def test_audience_ignored_when_not_configured(self, make_token):
        token = make_token(sub="weather-api", extra_claims={"aud": "api://anything"})

        assert validate_token(f"Bearer {token}").subject == "weather-api"

    def test_issuer_checked_when_configured(self, make_token, monkeypatch):
        monkeypatch.setattr(settings, "jwt_issuer", "https://issuer.example.com/")

        good = make_token(sub="weather-api", extra_claims={"iss": "https://issuer.example.com/"})
        bad = make_token(sub="weather-api", extra_claims={"iss": "https://evil.example.com/"})

        assert validate_token(f"Bearer {good}").subject == "weather-api"
        with pytest.raises(AuthError, match="Invalid token"):
            validate_token(f"Bearer {bad}")

    # ----- Scope claim parsing -----

    def test_missing_scope_defaults_to_empty_list(self, make_token):
        token = make_token(sub="weather-api", scopes=None)

        result = validate_token(f"Bearer {token}")

        assert result.scopes == []

    def test_space_delimited_scope_string_is_split(self, make_token):
        token = make_token(
            sub="weather-api",
            roles=["GetAlerts"],
            extra_claims={"scope": "weather:read openid"},
        )

        result = validate_token(f"Bearer {token}")

        assert result.scopes == ["weather:read", "openid"]

    def test_malformed_scope_does_not_reject_token(self, make_token):
        token = make_token(sub="weather-api", extra_claims={"scope": ["weather:read", 123]})

        result = validate_token(f"Bearer {token}")

        assert result.scopes == ["weather:read"]

        token = make_token(sub="weather-api", extra_claims={"scope": 7})

        assert validate_token(f"Bearer {token}").scopes == []

    # ----- Case sensitivity -----

    def test_bearer_scheme_case_insensitive(self, make_token):
        token = make_token(sub="weather-api", roles=["GetAlerts"])

        result = validate_token(f"bearer {token}")

        assert result.subject == "weather-api"


class TestFlattenClaims:
    def test_strings_and_string_lists_are_kept(self):
        claims = flatten_claims({"sub": "svc", "roles": ["A", "B"], "exp": 123, "nested": {"x": "y"}})

        assert claims == (("sub", "svc"), ("roles", "A"), ("roles", "B"))

    def test_non_string_list_items_are_dropped(self):
        assert flatten_claims({"roles": ["A", 1, None]}) == (("roles", "A"),)


class TestAuthorizationGate:
    """Tests for has_claim() and require_claim()."""

    @pytest.mark.parametrize("claim_type", DEFAULT_ROLE_CLAIM_TYPES)
    def test_role_accepted_under_every_alias(self, claim_type):
        claims = [(claim_type, "GetAlerts")]

        assert has_claim(claims, "GetAlerts", DEFAULT_ROLE_CLAIM_TYPES)

    def test_value_match_is_exact(self):
        claims = [("roles", "getalerts"), ("roles", "GetAlerts2")]

        assert not has_claim(claims, "GetAlerts", DEFAULT_ROLE_CLAIM_TYPES)

    def test_value_under_unlisted_claim_type_is_ignored(self):
        claims = [("groups", "GetAlerts"), ("sub", "GetAlerts")]

        assert not has_claim(claims, "GetAlerts", DEFAULT_ROLE_CLAIM_TYPES)

    def test_no_claims_denied(self):
        assert not has_claim([], "GetAlerts", DEFAULT_ROLE_CLAIM_TYPES)

    def test_require_claim_uses_configured_defaults(self):
        token_info = TokenInfo(subject="svc", scopes=[], claims=((WS_FED_ROLE, settings.required_role),))

        require_claim(token_info)

    def test_require_claim_raises_403(self):
        token_info = TokenInfo(subject="svc", scopes=[], claims=(("roles", "Reader"),))

        with pytest.raises(AuthorizationDeniedError) as exc_info:
            require_claim(token_info)

        assert exc_info.value.status_code == 403
        assert settings.required_role in exc_info.value.message

    def test_require_claim_with_explicit_value_and_types(self):
        token_info = TokenInfo(subject="svc", scopes=[], claims=(("groups", "Admins"),))

        require_claim(token_info, "Admins", ["groups"])
        with pytest.raises(AuthorizationDeniedError):
            require_claim(token_info, "Admins", ["roles"])

    def test_role_from_real_token(self, make_auth_header):
        header = make_auth_header(sub="svc", roles=["GetAlerts"], role_claim="role")

        require_claim(validate_token(header), "GetAlerts", DEFAULT_ROLE_CLAIM_TYPES)
