"""
Models package for the HTTP Request Robot.

Exports all SQLAlchemy models for database operations.
"""

from .oauth_token import OAuthToken
from .account import Account, RequestLog

__all__ = [
    "OAuthToken",
    "Account",
    "RequestLog",
]
