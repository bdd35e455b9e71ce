"""Application configuration using pydantic settings with structured sections."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False


class DatabaseSettings(BaseModel):
    url: str = Field(default="sqlite+aiosqlite:///./parcelhub.db", alias="url")
    echo: bool = False
    # seconds a SQLite writer waits for the database lock
    busy_timeout: float = 30
    pool_size: Optional[int] = None
    max_overflow: Optional[int] = None


class SecuritySettings(BaseModel):
    secret_key: str = Field(default="change-me", min_length=8)
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    bridge_token: SecretStr = SecretStr("change-me-bridge")


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class DelhiverySettings(BaseModel):
    environment: Literal["test", "production"] = "production"
    api_token: SecretStr = SecretStr("")
    client_name: str = ""
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        if self.environment == "test":
            return "https://staging-express.delhivery.com"
        return "https://track.delhivery.com"


class NimbusPostSettings(BaseModel):
    base_url: str = "https://api.nimbuspost.com/v1"
    email: str = ""
    password: SecretStr = SecretStr("")
    timeout: float = 30.0
    session_ttl_hours: int = 23


class OverseasLogisticSettings(BaseModel):
    base_url: str = "https://api.overseaslogistic.com"
    username: str = ""
    password: SecretStr = SecretStr("")
    account_code: str = "TEST"
    timeout: float = 60.0


class ProviderSettings(BaseModel):
    delhivery: DelhiverySettings = DelhiverySettings()
    nimbuspost: NimbusPostSettings = NimbusPostSettings()
    overseas_logistic: OverseasLogisticSettings = OverseasLogisticSettings()


class PricingSettings(BaseModel):
    """Deterministic estimate used when a partner rate call fails."""

    fallback_base_paise: int = 5000
    fallback_per_kg_paise: int = 1000
    fallback_delivery_window: str = "3-5 business days"


class BookingSettings(BaseModel):
    max_attempts: int = 5
    backoff_seconds: float = 30.0
    poll_interval: float = 15.0
    claim_lease_seconds: int = 300
    batch_size: int = 20


class TrackingSettings(BaseModel):
    enabled: bool = True
    interval: float = 30 * 60
    batch_size: int = 100


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    project_name: str = "ParcelHub"
    api_prefix: str = "/api"
    run_background_workers: bool = True

    server: ServerSettings = ServerSettings()
    database: DatabaseSettings = DatabaseSettings()
    security: SecuritySettings = SecuritySettings()
    logging: LoggingSettings = LoggingSettings()
    providers: ProviderSettings = ProviderSettings()
    pricing: PricingSettings = PricingSettings()
    booking: BookingSettings = BookingSettings()
    tracking: TrackingSettings = TrackingSettings()

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def secret_key(self) -> str:
        return self.security.secret_key

    @property
    def algorithm(self) -> str:
        return self.security.algorithm

    @property
    def access_token_expire_minutes(self) -> int:
        return self.security.access_token_expire_minutes


@lru_cache()
def get_settings() -> Settings:
    return Settings()
