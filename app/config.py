# app/config.py
from __future__ import annotations

import os

from pydantic import BaseModel

# Load .env locally (safe in prod too)
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


# -------------------
# Config (env-driven)
# -------------------
class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./trade.db")
    documents_dir: str = os.getenv("DOCUMENTS_DIR", "./documents")

    default_currency: str = os.getenv("DEFAULT_CURRENCY", "USD").strip().upper()
    # Customers are the importers (Russian market), not the exporter itself.
    default_customer_country: str = os.getenv("DEFAULT_CUSTOMER_COUNTRY", "Russia")
    default_customer_language: str = os.getenv("DEFAULT_CUSTOMER_LANGUAGE", "ru")

    company_name: str = os.getenv("COMPANY_NAME", "NAFRU")
    company_tagline: str = os.getenv("COMPANY_TAGLINE", "Egyptian Fruit Export Company")
    company_city: str = os.getenv("COMPANY_CITY", "Cairo, Egypt")

    max_page_size: int = _env_int("MAX_PAGE_SIZE", 100)
    order_no_retries: int = _env_int("ORDER_NO_RETRIES", 3)

    cors_origins: list[str] = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
    ]

    log_level: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    log_json: bool = os.getenv("LOG_JSON", "0").strip().lower() not in {"0", "false", ""}


settings = Settings()
