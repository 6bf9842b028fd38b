"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that automatically reads
from environment variables (and a local .env file, if present).

There are two processes in this project, so there are two settings classes:

- ``Settings`` (prefix ``MCP_``) configures the tool server: bind address,
  JWT validation and the role the Authorization Gate demands.
- ``ClientSettings`` (prefix ``WEATHER_``) configures the consuming weather
  service: where the tool server lives, how to obtain a client-credentials
  token for it, and the retry policy for outbound calls.
"""

from pydantic_settings import BaseSettings

# Claim types under which identity providers emit application roles.
# Entra ID uses "roles"; the long URI is the WS-Federation role claim that
# some token handlers map roles to; plain "role" is common elsewhere.
DEFAULT_ROLE_CLAIM_TYPES = [
    "roles",
    "http://schemas.microsoft.com/ws/2008/06/identity/claims/role",
    "role",
]


class Settings(BaseSettings):
    """
    Tool server configuration with environment variable bindings.

    Each field maps to an environment variable with the MCP_ prefix.
    For example, `jwt_secret_key` reads from MCP_JWT_SECRET_KEY and
    `role_claim_types` reads a JSON list from MCP_ROLE_CLAIM_TYPES.
    """

    # --- Server settings ---
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"

    # --- Authentication settings ---

    # Default is for local development only - NEVER use this in production.
    jwt_secret_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"

    # Audience and issuer are only checked when configured.
    jwt_audience: str | None = None
    jwt_issuer: str | None = None

    # --- Authorization settings ---

    # The claim value every caller must carry to list or execute tools.
    required_role: str = "GetAlerts"

    # Claim types that are accepted as carrying `required_role`.
    role_claim_types: list[str] = DEFAULT_ROLE_CLAIM_TYPES

    # --- Tool settings ---

    # Simulated upstream latency of the mock weather tools.
    tool_latency_seconds: float = 0.1

    model_config = {
        "env_prefix": "MCP_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


class ClientSettings(BaseSettings):
    """
    Weather service configuration (the consumer of the tool server).

    Fields map to WEATHER_* environment variables, e.g. WEATHER_MCP_BASE_URL.
    """

    host: str = "0.0.0.0"
    port: int = 8081
    log_level: str = "info"

    # --- Tool server connection ---
    mcp_base_url: str = "http://localhost:8080/mcp"
    mcp_timeout_seconds: float = 30.0

    # --- OAuth2 client-credentials ---
    mcp_auth_required: bool = True
    mcp_client_id: str = ""
    mcp_client_secret: str = ""
    # May contain a "{tenant-id}" placeholder, replaced with `mcp_tenant_id`.
    mcp_token_endpoint: str = ""
    mcp_tenant_id: str = ""
    mcp_scope: str = ""

    # --- Retry policy for outbound calls ---
    retry_max_retries: int = 3
    retry_delay_ms: int = 1000
    retry_exponential_backoff: bool = True

    model_config = {
        "env_prefix": "WEATHER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def validation_errors(self) -> list[str]:
        """Return the list of configuration problems; empty when the config is usable."""
        errors = []
        if not self.mcp_base_url.strip():
            errors.append("WEATHER_MCP_BASE_URL is required")

        if self.mcp_auth_required:
            required = {
                "WEATHER_MCP_CLIENT_ID": self.mcp_client_id,
                "WEATHER_MCP_CLIENT_SECRET": self.mcp_client_secret,
                "WEATHER_MCP_TOKEN_ENDPOINT": self.mcp_token_endpoint,
                "WEATHER_MCP_SCOPE": self.mcp_scope,
            }
            for env_name, value in required.items():
                if not value.strip():
                    errors.append(f"{env_name} is required when authentication is enabled")

        return errors


# Singleton instances: import these from other modules.
settings = Settings()
client_settings = ClientSettings()
