from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Bullion Ledger"
    environment: str = "development"
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:3000"
    port: int = 5000

    @property
    def parsed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    # MongoDB settings
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "bullion_ledger"
    storage_timeout_seconds: float = 10.0

    # Login / JWT settings
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 720
    login_id: str = ""
    login_password: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
