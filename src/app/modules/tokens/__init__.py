"""
Tokens module - Single-use verification and password reset tokens.
"""

from app.modules.tokens.models import AuthToken, TokenPurpose
from app.modules.tokens.service import TokenStore, hash_token

__all__ = ["AuthToken", "TokenPurpose", "TokenStore", "hash_token"]
