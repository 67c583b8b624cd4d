import os

from pydantic_settings import BaseSettings


class Config(BaseSettings):
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost:5432")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "<PASSWORD>")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "postgres")
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "secret")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", 10))
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "prod")
    DEV_ADMIN_EMAIL: str = os.getenv("DEV_ADMIN_EMAIL", "admin@example.com")
    CRON_API_KEY: str = os.getenv("CRON_API_KEY", "")

    # Booking policy
    LATE_CANCEL_CUTOFF_MINUTES: int = int(os.getenv("LATE_CANCEL_CUTOFF_MINUTES", 120))
    ATTENDANCE_EARLY_WINDOW_MINUTES: int = int(os.getenv("ATTENDANCE_EARLY_WINDOW_MINUTES", 60))
    ATTENDANCE_LATE_WINDOW_MINUTES: int = int(os.getenv("ATTENDANCE_LATE_WINDOW_MINUTES", 1440))
    PROMOTION_SWEEP_LIMIT: int = int(os.getenv("PROMOTION_SWEEP_LIMIT", 50))
    MAX_GENERATION_RANGE_DAYS: int = int(os.getenv("MAX_GENERATION_RANGE_DAYS", 90))

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}/{self.POSTGRES_DB}"


# Читаем конфигурацию
config = Config()
