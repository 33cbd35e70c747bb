# ABOUTME: Main package for the newsletter subscription service.
# ABOUTME: Exports settings and the shared subscriber/token value types.

from newsletter_service.config import get_settings
from newsletter_service.errors import ErrorKind, ServiceError
from newsletter_service.models import SubscriberStatus, TokenPurpose

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "get_settings",
    "ErrorKind",
    "ServiceError",
    "SubscriberStatus",
    "TokenPurpose",
]
