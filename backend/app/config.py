from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # "production" turns on the Secure flag for the session cookie
    environment: str = "development"

    # JWT
    jwt_secret: str = "change-this-to-a-random-secret"
    jwt_expire_hours: int = 24
    auth_cookie_name: str = "access_token"

    # PostgreSQL: complaints and users
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "complaints"
    postgres_user: str = "complaints"
    postgres_password: str = ""
    # Full SQLAlchemy URL; overrides the postgres_* parts when set
    database_url: Optional[str] = None

    # Optional admin account created on startup
    admin_username: str = ""
    admin_email: str = ""
    admin_password: str = ""

    # Priority score refresh
    score_refresh_concurrency: int = 10
    # 0 disables the background job; scores are still refreshed on every admin listing
    score_refresh_interval_minutes: int = 60

    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
