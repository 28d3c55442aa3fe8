from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import os

load_dotenv()

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./property_verification.db")

    # JWT
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

    # App
    APP_NAME: str = os.getenv("APP_NAME", "Property Verification API")
    DEBUG: bool = os.getenv("DEBUG", "True") == "True"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "standard")  # "standard" or "json"

    # Evidence storage
    MEDIA_ROOT: str = os.getenv("MEDIA_ROOT", "media")
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    MAX_UPLOAD_SIZE_MB: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", "10"))

    # Listing / queue pagination
    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
    MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

    # Client side (agent app / admin portal)
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8000")
    REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
    QUEUE_DEDUPE_SECONDS: float = float(os.getenv("QUEUE_DEDUPE_SECONDS", "2"))
    CAMERA_READY_TIMEOUT_SECONDS: float = float(os.getenv("CAMERA_READY_TIMEOUT_SECONDS", "5"))
    LOCATION_TIMEOUT_SECONDS: float = float(os.getenv("LOCATION_TIMEOUT_SECONDS", "10"))

settings = Settings()
