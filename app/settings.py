from typing import Optional

from app.models.config import DBConfig, NotificationConfig, PurchaseConfig, StripeConfig
from app.utils.filesystem import get_project_root
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource, YamlConfigSettingsSource


class Settings(BaseSettings):
    debug: bool = True
    frontend_url: str = "http://localhost:3000"
    cors_origins: list[str] = ["*"]
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    sentry_dsn: Optional[str] = None
    entitlement_cache_ttl: int = 60 * 60
    db_config: DBConfig
    purchase_config: PurchaseConfig = PurchaseConfig()
    notification_config: NotificationConfig = NotificationConfig()
    stripe_config: StripeConfig = StripeConfig()

    model_config = SettingsConfigDict(
        env_file=get_project_root() / ".env",
        yaml_file=get_project_root() / "config.yaml",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, env_settings, dotenv_settings, YamlConfigSettingsSource(settings_cls)


settings = Settings()
