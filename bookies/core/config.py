from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./bookies.db"
    JWT_SECRET: str
    LOG_LEVEL: str = "INFO"
    SLOW_REQUEST_THRESHOLD_MS: int = 1000  # 1 segundo
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Cuentas que se crean al arrancar si no existen
    DEFAULT_ADMIN_EMAIL: str = "admin@bookies.com"
    DEFAULT_ADMIN_PASSWORD: str = "admin123"
    DEFAULT_ADMIN_NAME: str = "Admin"
    DEFAULT_USER_EMAIL: str = "user@bookies.com"
    DEFAULT_USER_PASSWORD: str = "user123"
    DEFAULT_USER_NAME: str = "Regular User"

    class Config:
        env_file = ".env"


settings = Settings()
