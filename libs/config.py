"""
Configuration module for loading environment variables
"""

import os
from typing import List, Optional


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Application configuration"""

    # Database Configuration
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
    DATABASE_HOST: str = os.getenv("DATABASE_HOST", "127.0.0.1")
    DATABASE_PORT: str = os.getenv("DATABASE_PORT", "5432")
    DATABASE_USER: str = os.getenv("DATABASE_USER", "fleetchat")
    DATABASE_PASSWORD: str = os.getenv("DATABASE_PASSWORD", "")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "fleetchat")
    DATABASE_ECHO: bool = _as_bool(os.getenv("DATABASE_ECHO", "false"))

    # Template Store Configuration
    TEMPLATE_STORE_BACKEND: str = os.getenv("TEMPLATE_STORE_BACKEND", "postgres").lower()
    SEED_TEMPLATES_ON_STARTUP: bool = _as_bool(os.getenv("SEED_TEMPLATES_ON_STARTUP", "true"))
    CREATE_TABLES_ON_STARTUP: bool = _as_bool(os.getenv("CREATE_TABLES_ON_STARTUP", "false"))

    # HTTP Configuration
    CORS_ALLOW_ORIGINS: List[str] = [
        origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()
    ]

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def uses_memory_store(cls) -> bool:
        """Check if templates are kept in process memory instead of the database"""
        return cls.TEMPLATE_STORE_BACKEND == "memory"

