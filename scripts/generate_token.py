"""
CLI utility to generate JWT tokens for testing the weather tool server.

In production, tokens come from the identity provider (e.g. Entra ID via
the client-credentials flow). Locally, this script stands in for it and mints
tokens signed with the secret the server validates against.

Usage examples:

    # Token carrying the role the server requires (default: GetAlerts)
    python -m scripts.generate_token --sub weather-api --role GetAlerts

    # Token without any role (tool calls answer 403)
    python -m scripts.generate_token --sub weather-api

    # Role under a different claim type
    python -m scripts.generate_token --sub weather-api --role GetAlerts --role-claim role

    # Audience / issuer (must match MCP_JWT_AUDIENCE / MCP_JWT_ISSUER when set)
    python -m scripts.generate_token --sub weather-api --role GetAlerts \\
        --aud api://weather-mcp --iss https://issuer.example.com/

    # Expired token (for testing rejection)
    python -m scripts.generate_token --sub weather-api --role GetAlerts --exp-hours -1

The generated token can be used with curl:

    curl -X POST http://localhost:8080/mcp/tools/getweatherforecast \\
      -H "Content-Type: application/json" \\
      -H "Authorization: Bearer <token>" \\
      -d '{"state": "TX", "days": 3}'
"""

import argparse
import datetime

import jwt


def generate_token(
    subject: str,
    roles: list[str],
    secret: str,
    algorithm: str = "HS256",
    exp_hours: float = 8.0,
    role_claim: str = "roles",
    scopes: list[str] | None = None,
    audience: str | None = None,
    issuer: str | None = None,
) -> str:
    """
    Generate a signed JWT token with the given claims.

    Args:
        subject: The "sub" claim - identifies who/what this token is for
        roles: Role values, written under `role_claim`
        secret: The signing key (must match the server's MCP_JWT_SECRET_KEY)
        algorithm: JWT signing algorithm (default: HS256)
        exp_hours: Hours until expiration (negative = already expired)
        role_claim: Claim type the roles are written under
        scopes: Optional scopes, written as a space-delimited "scope" claim
        audience: Optional "aud" claim
        issuer: Optional "iss" claim

    Returns:
        The encoded JWT token string
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    expiration = now + datetime.timedelta(hours=exp_hours)

    payload = {
        "sub": subject,
        "iat": now,
        "exp": expiration,
    }
    if roles:
        payload[role_claim] = roles
    if scopes:
        payload["scope"] = " ".join(scopes)
    if audience:
        payload["aud"] = audience
    if issuer:
        payload["iss"] = issuer

    return jwt.encode(payload, secret, algorithm=algorithm)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate JWT tokens for the weather tool server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Authorized caller:
    %(prog)s --sub weather-api --role GetAlerts

  Expired token (for testing):
    %(prog)s --sub weather-api --role GetAlerts --exp-hours -1
        """,
    )

    parser.add_argument(
        "--sub",
        required=True,
        help="Subject claim: who/what this token identifies (e.g., 'weather-api')",
    )
    parser.add_argument(
        "--role",
        nargs="+",
        default=[],
        help="Role values to grant (e.g., GetAlerts)",
    )
    parser.add_argument(
        "--role-claim",
        default="roles",
        help="Claim type to write the roles under (default: roles)",
    )
    parser.add_argument(
        "--scope",
        nargs="+",
        default=[],
        help="Optional scope claim values",
    )
    parser.add_argument("--aud", default=None, help="Optional audience claim")
    parser.add_argument("--iss", default=None, help="Optional issuer claim")
    parser.add_argument(
        "--secret",
        default="dev-secret-change-me",
        help="JWT signing secret (must match server's MCP_JWT_SECRET_KEY)",
    )
    parser.add_argument(
        "--algorithm",
        default="HS256",
        help="JWT signing algorithm (default: HS256)",
    )
    parser.add_argument(
        "--exp-hours",
        type=float,
        default=8.0,
        help="Hours until token expires (negative = already expired, default: 8)",
    )

    args = parser.parse_args()

    token = generate_token(
        subject=args.sub,
        roles=args.role,
        secret=args.secret,
        algorithm=args.algorithm,
        exp_hours=args.exp_hours,
        role_claim=args.role_claim,
        scopes=args.scope,
        audience=args.aud,
        issuer=args.iss,
    )

    exp_time = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
        hours=args.exp_hours
    )

    print(f"Subject:    {args.sub}")
    print(f"Roles:      {args.role} (claim: {args.role_claim})")
    print(f"Expires:    {exp_time.isoformat()}")
    print(f"Algorithm:  {args.algorithm}")
    print()
    print(f"Token: {token}")

    print()
    print("Usage with curl (list tools):")
    print("  curl http://localhost:8080/mcp/tools \\")
    print(f'    -H "Authorization: Bearer {token}"')


if __name__ == "__main__":
    main()
