"""
Users module - User accounts and their persistence.
"""

from app.modules.users.models import User, UserRole
from app.modules.users.repository import UserRepository, normalize_email

__all__ = ["User", "UserRole", "UserRepository", "normalize_email"]
