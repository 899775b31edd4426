"""
=============================================================================
APPLICATION CONFIGURATION
=============================================================================

Centralized configuration for an apicore application: how it is served,
how it logs, and how strictly it routes and validates.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION PRIORITY                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Command line     python -m apicore --port 9000    (highest)    │
    │   2. Environment      API_PORT=9000 python -m apicore               │
    │   3. Defaults         AppConfig()                      (lowest)     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Secrets (the token signing secret) belong in the environment, never in
source code.

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got '{raw}'")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")


@dataclass
class AppConfig:
    """
    Configuration for an apicore application.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    SERVING
    - host, port, max_body_size

    LOGGING
    - log_level, log_format

    BEHAVIOUR
    - strict_methods           405 + Allow instead of 404 for known paths
    - allow_form_json          decode a form field named "json" into the body
    - strict_validation_rules  unknown rule names fail at startup

    SECURITY
    - token_secret             HS256 signing secret for bearer tokens
    - cors_origins             origins allowed by the CORS middleware

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # SERVING
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces (containers)
    """

    port: int = 8080

    max_body_size: int = 10 * 1024 * 1024  # 10 MB
    """
    Largest request body accepted, in bytes. Larger bodies get a 413
    envelope before any middleware runs.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """'text' (combined-log style) or 'json' (one object per line)."""

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOUR
    # ─────────────────────────────────────────────────────────────────────

    strict_methods: bool = False
    allow_form_json: bool = True
    strict_validation_rules: bool = False

    # ─────────────────────────────────────────────────────────────────────
    # SECURITY
    # ─────────────────────────────────────────────────────────────────────

    token_secret: Optional[str] = None
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        API_HOST             Bind address (default: 127.0.0.1)
        API_PORT             Port (default: 8080)
        API_LOG_LEVEL        Logging level (default: INFO)
        API_LOG_FORMAT       text | json (default: text)
        API_STRICT_METHODS   405 for known paths (default: false)
        API_ALLOW_FORM_JSON  Form field "json" escape hatch (default: true)
        API_STRICT_RULES     Reject unknown validation rules (default: false)
        API_MAX_BODY_SIZE    Bytes (default: 10485760)
        API_TOKEN_SECRET     HS256 secret (default: unset)
        API_CORS_ORIGINS     Comma-separated origins (default: *)

        =====================================================================

        Args:
            env: Mapping to read instead of os.environ (for tests)
        """
        env = os.environ if env is None else env
        defaults = cls()

        origins = env.get("API_CORS_ORIGINS")
        cors_origins = (
            [origin.strip() for origin in origins.split(",") if origin.strip()]
            if origins is not None
            else defaults.cors_origins
        )

        return cls(
            host=env.get("API_HOST", defaults.host),
            port=_env_int(env, "API_PORT", defaults.port),
            log_level=env.get("API_LOG_LEVEL", defaults.log_level).upper(),
            log_format=env.get("API_LOG_FORMAT", defaults.log_format).lower(),
            strict_methods=_env_bool(env, "API_STRICT_METHODS", defaults.strict_methods),
            allow_form_json=_env_bool(env, "API_ALLOW_FORM_JSON", defaults.allow_form_json),
            strict_validation_rules=_env_bool(env, "API_STRICT_RULES", defaults.strict_validation_rules),
            max_body_size=_env_int(env, "API_MAX_BODY_SIZE", defaults.max_body_size),
            token_secret=env.get("API_TOKEN_SECRET") or None,
            cors_origins=cors_origins,
        )

    def validate(self) -> None:
        """
        Validate configuration values. Called at startup: fail fast.

        Raises:
            ValueError: naming the first invalid setting
        """
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")

        if self.max_body_size < 1:
            raise ValueError("max_body_size must be >= 1")

        if not self.cors_origins:
            raise ValueError("cors_origins must name at least one origin (or '*')")
