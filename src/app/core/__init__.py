"""
Core module - Configuration, database, security, and utilities.
"""

from app.core.config import get_settings, settings
from app.core.database import (
    Base,
    StoreUnavailableError,
    close_db,
    get_db,
    init_db,
    store_errors,
)
from app.core.redis import close_redis, get_redis, init_redis
from app.core.security import PasswordHasher, hash_password, verify_password

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    "store_errors",
    "StoreUnavailableError",
    # Redis
    "get_redis",
    "init_redis",
    "close_redis",
    # Security
    "PasswordHasher",
    "hash_password",
    "verify_password",
]
