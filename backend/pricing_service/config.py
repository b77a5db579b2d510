"""Application configuration"""
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


def get_project_root() -> Path:
    """Return the repository root (backend/pricing_service/config.py -> root)"""
    return Path(__file__).resolve().parent.parent.parent


class Config:
    """Application configuration"""

    # Upstream collaborators
    # product-service serves GET /products/{id}
    PRODUCT_SERVICE_URL: str = os.getenv("PRODUCT_SERVICE_URL", "http://localhost:8082/api")
    # admin-service serves GET /marketplaces/{id} and /marketplaces/{id}/effective-costs
    ADMIN_SERVICE_URL: str = os.getenv("ADMIN_SERVICE_URL", "http://localhost:8081/api")
    UPSTREAM_TIMEOUT: int = int(os.getenv("UPSTREAM_TIMEOUT", "10"))

    # Logging
    LOG_DIR: str = os.getenv("LOG_DIR", str(get_project_root() / "logs"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_TO_FILE: bool = os.getenv("LOG_TO_FILE", "true").lower() == "true"

    # HTTP server
    CORS_ORIGINS: List[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
    SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8083"))
    SERVER_RELOAD: bool = os.getenv("SERVER_RELOAD", "false").lower() == "true"


config = Config()
