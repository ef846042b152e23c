import json
from functools import lru_cache
from typing import Annotated, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_ALLOWED_ORIGINS = [
    "https://owlsinsight.com",
    "https://www.owlsinsight.com",
    "http://localhost:3000",
]


class Settings(BaseSettings):
    """Runtime configuration, built once per process.

    Only ``discord_client_id`` gates a feature: without it the Discord
    authorize endpoint answers 503. Every other field has a production-ready
    default.
    """

    app_env: str = "local"
    app_version: str = "0.1.0"

    discord_client_id: str | None = None
    discord_redirect_uri: str = "https://owlsinsight.com/api/auth/discord/callback"
    discord_authorize_url: str = "https://discord.com/oauth2/authorize"
    discord_scopes: Annotated[List[str], NoDecode] = ["identify", "email"]

    api_server_url: str = "http://owls-insight-api-server"
    api_prefix: str = "/api/v1"
    internal_auth_secret: str = ""

    allowed_origins: Annotated[List[str], NoDecode] = list(DEFAULT_ALLOWED_ORIGINS)
    canonical_origin: str = "https://owlsinsight.com"

    oauth_state_ttl_seconds: int = 300
    session_max_age_seconds: int = 7 * 24 * 60 * 60
    upstream_timeout_seconds: float = 15.0

    httpx_connect_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    protected_paths: Annotated[List[str], NoDecode] = ["/dashboard"]
    auth_paths: Annotated[List[str], NoDecode] = ["/login"]

    redact_fields: Annotated[List[str], NoDecode] = [
        "authorization",
        "cookie",
        "password",
        "token",
        "secret",
        "state",
        "code",
        "x-internal-auth",
    ]
    redaction_placeholder: str = "***"

    metrics_enabled: bool = False
    metrics_namespace: str = "owls_portal"

    model_config = SettingsConfigDict(
        env_file=(".env", "/app/.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def api_base_url(self) -> str:
        return f"{self.api_server_url}{self.api_prefix}"

    @field_validator("app_env", mode="before")
    @classmethod
    def normalize_app_env(cls, value: str | None) -> str:
        env = str(value or "local").strip().lower()
        return env or "local"

    @field_validator("discord_client_id", mode="before")
    @classmethod
    def normalize_optional_client_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = str(value).strip()
        return normalized or None

    @field_validator("api_server_url", "canonical_origin", mode="before")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        normalized = str(value or "").strip().rstrip("/")
        if not normalized:
            raise ValueError("URL settings cannot be empty")
        return normalized

    @field_validator("api_prefix", mode="before")
    @classmethod
    def normalize_api_prefix(cls, value: str | None) -> str:
        prefix = str(value or "").strip().strip("/")
        return f"/{prefix}" if prefix else ""

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def split_allowed_origins(cls, value: List[str] | str | None) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            raw = value.strip()
            items: list = []
            if raw.startswith("["):
                try:
                    parsed = json.loads(raw)
                except json.JSONDecodeError:
                    parsed = None
                if isinstance(parsed, list):
                    items = parsed
            if not items:
                items = raw.strip("[]").split(",")
        elif isinstance(value, list):
            items = value
        else:
            raise ValueError("Invalid format for ALLOWED_ORIGINS")
        origins: list[str] = []
        seen: set[str] = set()
        for item in items:
            if not isinstance(item, str):
                continue
            origin = item.strip().strip('"').strip("'").rstrip("/")
            if not origin or origin in seen:
                continue
            if "://" not in origin:
                raise ValueError(f"Allowed origin '{origin}' must include a scheme")
            seen.add(origin)
            origins.append(origin)
        return origins

    @field_validator("discord_scopes", "protected_paths", "auth_paths", mode="before")
    @classmethod
    def split_csv_list(cls, value: List[str] | str | None) -> List[str]:
        if value is None:
            return []
        if isinstance(value, list):
            return [item.strip() for item in value if isinstance(item, str) and item.strip()]
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        raise ValueError("Expected a list or a comma separated string")

    @field_validator("oauth_state_ttl_seconds", "session_max_age_seconds", mode="before")
    @classmethod
    def validate_positive_seconds(cls, value: int | str) -> int:
        int_value = int(value) if isinstance(value, str) else value
        if int_value <= 0:
            raise ValueError("Value must be greater than zero")
        return int_value

    @field_validator("httpx_max_connections", "httpx_max_keepalive_connections", mode="before")
    @classmethod
    def validate_connection_limits(cls, value: int | str) -> int:
        int_value = int(value) if isinstance(value, str) else value
        if int_value <= 0:
            raise ValueError("HTTPX connection limits must be greater than zero")
        return int_value

    @field_validator(
        "upstream_timeout_seconds",
        "httpx_connect_timeout",
        "httpx_keepalive_expiry",
        mode="before",
    )
    @classmethod
    def validate_positive_float(cls, value: float | str) -> float:
        float_value = float(value) if isinstance(value, str) else value
        if float_value <= 0:
            raise ValueError("Value must be greater than zero")
        return float_value

    @field_validator("redact_fields", mode="before")
    @classmethod
    def split_redact_fields(cls, value: List[str] | str | None) -> List[str]:
        if value is None:
            return []
        if isinstance(value, list):
            return [item.strip().lower() for item in value if isinstance(item, str) and item.strip()]
        if isinstance(value, str):
            return [item.strip().lower() for item in value.split(",") if item.strip()]
        raise ValueError("Invalid format for REDACT_FIELDS")

    @field_validator("redaction_placeholder", mode="before")
    @classmethod
    def validate_redaction_placeholder(cls, value: str | None) -> str:
        if value is None:
            return "***"
        placeholder = value.strip()
        if not placeholder:
            raise ValueError("REDACTION_PLACEHOLDER cannot be empty")
        return placeholder

    @field_validator("metrics_namespace", mode="before")
    @classmethod
    def normalize_metrics_namespace(cls, value: str | None) -> str:
        if value is None:
            return "owls_portal"
        namespace = value.strip()
        if not namespace:
            raise ValueError("METRICS_NAMESPACE cannot be empty")
        return namespace


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]
