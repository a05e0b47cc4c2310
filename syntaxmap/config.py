import os
import logging
from urllib.parse import quote

from dotenv import load_dotenv

load_dotenv()

APP_NAME = os.getenv("APP_NAME", "SyntaxMap API")
APP_VERSION = os.getenv("APP_VERSION", "2.0.0")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": os.getenv("DB_PORT", "5432"),
    "database": os.getenv("DB_NAME", "syntaxmap"),
    "user": os.getenv("DB_USER", "postgres"),
    "password": os.getenv("DB_PASSWORD", "password"),
}

DB_POOL_MIN = int(os.getenv("DB_POOL_MIN", "1"))
DB_POOL_MAX = int(os.getenv("DB_POOL_MAX", "20"))

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "1440"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173,*"
    ).split(",")
    if origin.strip()
]


def database_url() -> str:
    """Connection URL; DATABASE_URL wins over the DB_* variables"""
    url = os.getenv("DATABASE_URL")
    if url:
        # hosting providers still hand out the old scheme
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        return url
    cfg = DATABASE_CONFIG
    user = quote(cfg["user"], safe="")
    password = quote(cfg["password"], safe="")
    return (
        f"postgresql://{user}:{password}"
        f"@{cfg['host']}:{cfg['port']}/{cfg['database']}"
    )


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
