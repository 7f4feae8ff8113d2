"""
Configuration management for the Hostel Complaint Tracker
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Hostel Complaint Tracker"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./hostel_complaints.db"
    DB_TIMEOUT_SECONDS: float = 10.0

    # Security
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days
    BCRYPT_ROUNDS: int = 12

    # Default admin seeded on startup (empty email disables seeding)
    DEFAULT_ADMIN_EMAIL: str = "admin@hostelcare.com"
    DEFAULT_ADMIN_PASSWORD: str = "admin123"
    DEFAULT_ADMIN_NAME: str = "Hostel Admin"

    # Image uploads
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_FILES: int = 5
    MAX_UPLOAD_SIZE: int = 5 * 1024 * 1024  # 5 MB

    # Duplicate detection
    DUPLICATE_WINDOW_DAYS: int = 7
    DUPLICATE_PREVIEW_WINDOW_DAYS: int = 14

    # Feature toggles
    FEATURE_TOGGLE_CACHE_SECONDS: float = 30.0

    # Costs
    DEFAULT_CURRENCY: str = "INR"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
