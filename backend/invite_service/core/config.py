from functools import lru_cache
from typing import Dict, List

from json import loads as json_loads, JSONDecodeError

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the invite service.

    All values come from environment variables or backend/.env.
    This is the single source of truth for:
    - environment (dev/staging/prod)
    - bind address for the HTTP server
    - CORS / allowed origins
    - docs toggle
    - Basic auth credential table for the invite listing
    - rate limits on token validation
    """

    # - env_file: backend/.env
    # - extra="ignore": tolerate unrelated env vars in shared deployments
    # - populate_by_name: Settings(app_port=...) works as well as Settings(PORT=...)
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # High-level environment flags
    environment: str = Field(
        default="dev",
        description="Deployment environment identifier (dev|staging|prod)",
        validation_alias="ENVIRONMENT",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # HTTP server
    app_host: str = Field(default="0.0.0.0", validation_alias="APP_HOST")
    app_port: int = Field(default=3000, validation_alias="PORT")
    api_prefix: str = Field(
        default="",
        validation_alias="API_PREFIX",
        description='Optional prefix for all invite routes, e.g. "/api/v1".',
    )

    # CORS / frontends
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias="ALLOWED_ORIGINS",
        description=(
            "Allowed frontend origins. Can be either a comma-separated string like "
            '"http://localhost:3000,http://127.0.0.1:3000" or a JSON list like '
            '["http://localhost:3000","http://127.0.0.1:3000"].'
        ),
    )

    # API docs toggle
    enable_docs: bool = Field(
        default=True,
        validation_alias="ENABLE_DOCS",
        description="If true, exposes /docs, /redoc and /swagger.json.",
    )

    # Auth: static credential table for GET /invite
    basic_auth_users: Dict[str, str] = Field(
        default_factory=dict,
        validation_alias="BASIC_AUTH_USERS",
        description='JSON object mapping user name to password, e.g. {"ops": "s3cret"}.',
    )

    # Token validation throttling (per client IP)
    trust_proxy_headers: bool = Field(
        default=False,
        validation_alias="TRUST_PROXY_HEADERS",
        description="Take the client IP from X-Forwarded-For. Only enable behind a proxy that sets it.",
    )
    validate_rate_limit: int = Field(default=30, validation_alias="VALIDATE_RATE_LIMIT")
    validate_rate_window: int = Field(
        default=60,
        validation_alias="VALIDATE_RATE_WINDOW",
        description="Window in seconds for VALIDATE_RATE_LIMIT.",
    )

    # Request-level performance budget (warn on slow requests)
    slow_http_ms: float = Field(default=1500.0, validation_alias="SLOW_HTTP_MS")

    def origins_list(self) -> List[str]:
        """
        Normalize ALLOWED_ORIGINS into a clean List[str] for CORSMiddleware.

        Supports two formats:
        - Comma-separated string:
            ALLOWED_ORIGINS=http://127.0.0.1:3000,http://localhost:3000
        - JSON array:
            ALLOWED_ORIGINS=["http://127.0.0.1:3000","http://localhost:3000"]
        """
        raw = self.allowed_origins
        if not raw:
            return []

        raw_str = str(raw).strip()

        # Try JSON list first: ["http://...","http://..."]
        if raw_str.startswith("[") and raw_str.endswith("]"):
            try:
                parsed = json_loads(raw_str)
                if isinstance(parsed, list):
                    return [str(o).strip() for o in parsed if str(o).strip()]
            except JSONDecodeError:
                # Fall back to naive split if JSON is malformed
                pass

        # Fallback: treat it as comma-separated list
        return [o.strip() for o in raw_str.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the app only parses env once.
    """
    return Settings()

