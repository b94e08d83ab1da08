"""Blueprint takeoff configuration.

This package contains:
- settings: Environment variables and configuration
- secrets: Secret access for the reasoning service
- errors: Custom exceptions and error codes
"""

from config.settings import settings
from config.errors import TakeoffError
from config.secrets import get_secret, get_openai_api_key

__all__ = [
    "settings",
    "TakeoffError",
    "get_secret",
    "get_openai_api_key",
]
