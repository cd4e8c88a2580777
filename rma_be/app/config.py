import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv, find_dotenv

# Real environment variables win over values from .env
_env_path = find_dotenv(usecwd=True)
if _env_path:
    load_dotenv(_env_path, override=False)

BASE_DIR = Path(__file__).resolve().parents[1]


def _flag(name: str, default: str) -> bool:
    return bool(int(os.getenv(name, default)))


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL")

    # Customer session token (issued at /start, scoped to one RMA)
    SESSION_SECRET_KEY: str = os.getenv("SESSION_SECRET_KEY", "dev-secret-change-me")
    SESSION_ALGORITHM: str = os.getenv("SESSION_ALGORITHM", "HS256")
    SESSION_TTL_MINUTES: int = int(os.getenv("SESSION_TTL_MINUTES", "15"))

    # Admin console credentials (HTTP Basic). Empty password disables admin access.
    ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")

    STORAGE_ROOT_PATH: str = os.getenv("STORAGE_ROOT_PATH", str(BASE_DIR / "rma_storage"))
    STORAGE_RETENTION_DAYS: int = int(os.getenv("STORAGE_RETENTION_DAYS", "365"))
    ENABLE_STORAGE_CLEANUP: bool = _flag("ENABLE_STORAGE_CLEANUP", "1")
    MAX_UPLOAD_SIZE_MB: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", "50"))
    ALLOWED_EXTENSIONS: list = [
        e.strip().lower()
        for e in os.getenv("ALLOWED_EXTENSIONS", "jpg,jpeg,png,webp,mp4,mov,pdf").split(",")
        if e.strip()
    ]

    BENCH_TEST_FEE_AMOUNT: Decimal = Decimal(os.getenv("BENCH_TEST_FEE_AMOUNT", "39.99"))
    REPEAT_RMA_WINDOW_DAYS: int = int(os.getenv("REPEAT_RMA_WINDOW_DAYS", "30"))
    HOME_COUNTRY: str = os.getenv("HOME_COUNTRY", "US").upper()

    RETURN_ADDRESS_STREET1: str = os.getenv("RETURN_ADDRESS_STREET1", "123 Return St")
    RETURN_ADDRESS_CITY: str = os.getenv("RETURN_ADDRESS_CITY", "Return City")
    RETURN_ADDRESS_STATE: str = os.getenv("RETURN_ADDRESS_STATE", "CA")
    RETURN_ADDRESS_ZIP: str = os.getenv("RETURN_ADDRESS_ZIP", "90210")
    USPS_PAY_ON_DELIVERY_ENABLED: bool = _flag("USPS_PAY_ON_DELIVERY_ENABLED", "0")

    # Third-party integrations; unset keys switch the clients to mock responses
    HUBSPOT_API_KEY: str = os.getenv("HUBSPOT_API_KEY", "")
    EASYPOST_API_KEY: str = os.getenv("EASYPOST_API_KEY", "")
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "20"))

    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")


@lru_cache
def get_settings():
    return Settings()
