from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "TILL-SESSIONS"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REPORT_TOKEN_SECRET: str = ""
    REPORT_TOKEN_EXPIRE_MINUTES: int = 30
    DATABASE_URL: str = "sqlite+pysqlite:///./till.db"
    LOCAL_CURRENCY_CODE: str = "MXN"
    CASH_PAYMENT_METHODS: list[str] = ["CASH", "EFECTIVO"]
    NOTES_MAX_LENGTH: int = 400
    RECENT_SESSIONS_DEFAULT_LIMIT: int = 10
    RECENT_SESSIONS_MAX_LIMIT: int = 50
    SEED_DEMO_CATALOG: bool = False
    LOG_LEVEL: str = "INFO"

    @property
    def report_token_secret(self) -> str:
        return self.REPORT_TOKEN_SECRET or self.SECRET_KEY


settings = Settings()
