"""
JWT bearer validation and the claim-based Authorization Gate.

Two layers:

- Authentication (AuthN): ``validate_token()`` extracts the Bearer token from
  the Authorization header, verifies its signature and expiry (and audience /
  issuer when configured) and returns the validated claims as TokenInfo.
  Failures raise AuthError and map to 401.

- Authorization (AuthZ): ``has_claim()`` / ``require_claim()`` decide whether
  an authenticated principal carries the required role. Identity providers
  emit the same role under different claim types ("roles", "role", the
  WS-Federation role URI), so the gate accepts a list of claim-type aliases.
  Failures raise AuthorizationDeniedError and map to 403.

Token structure (JWT payload):
    {
        "sub": "weather-api",              # Who is making the request
        "roles": ["GetAlerts"],            # App roles granted to the caller
        "scope": "weather:read openid",    # Optional OAuth scopes (logged only)
        "exp": 1738800000                  # When this token expires
    }
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

import jwt

from weather_mcp.config import settings
from weather_mcp.errors import AuthorizationDeniedError


class AuthError(Exception):
    """
    Raised when token validation fails for any reason.

    One exception type covers every auth failure (missing token, invalid
    signature, expired, malformed claims). The detailed reason is logged
    server-side; clients only get a generic 401.

    Attributes:
        message: Human-readable error description (logged server-side)
        status_code: HTTP status code to return (401 for auth failures)
    """

    def __init__(self, message: str, status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


Claim = tuple[str, str]


@dataclass(frozen=True)
class TokenInfo:
    """
    Validated token information extracted from a JWT.

    Attributes:
        subject: The "sub" claim
        scopes: The "scope" claim as a list (empty when absent or malformed)
        claims: Every string-valued claim as (type, value) pairs; list claims
                contribute one pair per string element
    """

    subject: str
    scopes: list[str]
    claims: tuple[Claim, ...] = field(default=())


def flatten_claims(payload: dict) -> tuple[Claim, ...]:
    """Turn a decoded JWT payload into (claim type, claim value) pairs."""
    claims: list[Claim] = []
    for claim_type, value in payload.items():
        if isinstance(value, str):
            claims.append((claim_type, value))
        elif isinstance(value, list):
            claims.extend((claim_type, item) for item in value if isinstance(item, str))
    return tuple(claims)


def parse_scopes(scope_claim: object) -> list[str]:
    """
    Read the "scope" claim as a list.

    OAuth servers send a space-delimited string; some issuers send a list.
    Scopes are informational only, so anything else yields an empty list.
    """
    if isinstance(scope_claim, str):
        return scope_claim.split()
    if isinstance(scope_claim, list):
        return [s for s in scope_claim if isinstance(s, str)]
    return []


def validate_token(authorization_header: str | None) -> TokenInfo:
    """
    Validate a Bearer token from the Authorization header.

    Steps:
    1. Check that a header is present
    2. Extract the token from "Bearer <token>" format
    3. Decode and verify the JWT (signature, expiration, audience, issuer)
    4. Extract and validate the claims

    Args:
        authorization_header: The raw Authorization header value,
                              expected format: "Bearer <jwt-token>"

    Returns:
        TokenInfo with the validated subject, scopes and flattened claims

    Raises:
        AuthError: If any validation step fails
    """
    if not authorization_header:
        raise AuthError("Missing Authorization header")

    # The scheme is matched case-insensitively (RFC 6750).
    parts = authorization_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthError("Invalid Authorization header format, expected 'Bearer <token>'")

    token = parts[1].strip()

    required_claims = ["exp", "sub"]
    if settings.jwt_audience:
        required_claims.append("aud")
    if settings.jwt_issuer:
        required_claims.append("iss")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={
                "require": required_claims,
                # Without a configured audience, an "aud" claim is not checked.
                "verify_aud": bool(settings.jwt_audience),
            },
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid token: {e}")

    subject = payload.get("sub", "")

    return TokenInfo(
        subject=subject,
        scopes=parse_scopes(payload.get("scope")),
        claims=flatten_claims(payload),
    )


def has_claim(claims: Iterable[Claim], required_value: str, claim_types: Iterable[str]) -> bool:
    """True iff some claim has one of `claim_types` as type and exactly `required_value` as value."""
    accepted = set(claim_types)
    return any(
        claim_type in accepted and claim_value == required_value
        for claim_type, claim_value in claims
    )


def require_claim(
    token_info: TokenInfo,
    required_value: str | None = None,
    claim_types: Iterable[str] | None = None,
) -> None:
    """
    Enforce the Authorization Gate for an authenticated principal.

    Defaults to the configured required role and role claim types.

    Raises:
        AuthorizationDeniedError: if the principal lacks the claim
    """
    if required_value is None:
        required_value = settings.required_role
    if claim_types is None:
        claim_types = settings.role_claim_types

    if not has_claim(token_info.claims, required_value, claim_types):
        raise AuthorizationDeniedError(required_value)
