"""Process configuration loaded once from the environment.

All values are read from environment variables (and an optional ``.env``
file) into a frozen :class:`Config` which is then passed explicitly to every
component that needs it.
"""

from __future__ import annotations

from importlib import metadata
from typing import Any, Literal, Optional

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lib.errors import ConfigError

API_PATH = "/api/v1"
PACKAGE_NAME = "room-backend"


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    SERVER_HOST: str = Field(..., min_length=1)
    SERVER_PORT: int = Field(..., ge=1, le=65535)
    SERVER_URL: str = Field(..., min_length=1)

    MONGO_URL: str = Field(..., min_length=1)
    MONGO_DATABASE: str = Field(..., min_length=1)

    SESSION_SECRET: SecretStr

    KEYCLOAK_ISSUER: str = Field(..., min_length=1)
    KEYCLOAK_AUTHORIZATION_URL: str = Field(..., min_length=1)
    KEYCLOAK_TOKEN_URL: str = Field(..., min_length=1)
    KEYCLOAK_USERINFO_URL: str = Field(..., min_length=1)
    KEYCLOAK_CLIENT_ID: str = Field(..., min_length=1)
    KEYCLOAK_CLIENT_SECRET: SecretStr
    KEYCLOAK_CALLBACK_URL: str = Field(..., min_length=1)

    PY_ENV: Literal["development", "production", "test"] = "development"
    LOG_LEVEL: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "INFO"
    SESSION_DURATION: int = Field(default=86400, ge=1)

    CORS_ORIGIN: str = "*"
    CORS_METHODS: str = "GET,POST"

    MONGO_CONNECT_POLICY: Literal["fail-fast", "retry"] = "fail-fast"
    MONGO_CONNECT_RETRIES: int = Field(default=5, ge=0)
    MONGO_CONNECT_BACKOFF: float = Field(default=1.0, ge=0.0)
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = Field(default=5000, ge=1)

    API_ROUTE_MODULES: str = ""

    NGROK_ENABLED: bool = False
    NGROK_AUTH_TOKEN: Optional[SecretStr] = None

    SENTRY_ENABLED: bool = False
    SENTRY_DSN: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @staticmethod
    def _parse_csv(value: str) -> list[str]:
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def is_production(self) -> bool:
        return self.PY_ENV == "production"

    @property
    def home_url(self) -> str:
        return self.SERVER_URL.rstrip("/")

    @property
    def api_docs_url(self) -> str:
        return f"{self.home_url}{API_PATH}/docs"

    @property
    def logout_url(self) -> str:
        """Keycloak end-session endpoint derived from the issuer."""
        return f"{self.KEYCLOAK_ISSUER.rstrip('/')}/protocol/openid-connect/logout"

    @property
    def cors_options(self) -> dict[str, Any]:
        origins = self._parse_csv(self.CORS_ORIGIN) or ["*"]
        return {
            "allow_origins": origins,
            "allow_methods": self._parse_csv(self.CORS_METHODS),
            "allow_credentials": origins != ["*"],
        }

    @property
    def api_route_modules_list(self) -> list[str]:
        return self._parse_csv(self.API_ROUTE_MODULES)


def app_version() -> str:
    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return "unknown"


def load_config(env_file: Optional[str] = ".env") -> Config:
    """Build the process configuration or raise :class:`ConfigError`.

    Every missing or invalid variable is collected so a single error names
    all of them.
    """
    try:
        return Config(_env_file=env_file)  # type: ignore[call-arg]
    except ValidationError as exc:
        names = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        raise ConfigError(names) from exc
