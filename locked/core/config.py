from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./locked.db"
    APP_ENV: str = "development"

    # Package name of this app; never blocked by the gate.
    APP_PACKAGE_NAME: str = "com.example.locked"

    # Minimum interval between repeated block triggers for one package.
    BLOCK_COOLDOWN_MS: int = 1000
    # Record the usage event before issuing the block command.
    # False issues the block first.
    RECORD_BEFORE_BLOCK: bool = False

    POLL_INTERVAL_S: float = 1.0
    EVENT_RETENTION_DAYS: int = 30

    # Upper bound on a single learned-model call before the rule fallback kicks in.
    MODEL_TIMEOUT_S: float = 0.5

    TOKEN_FILE: str = "./data/paired_token.json"

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Comma-separated allowed origins, or "*" to allow all.
    CORS_ORIGINS: str = "*"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
