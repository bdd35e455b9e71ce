"""Top-up domain exports"""

from .exceptions import TopupError, TopupMismatch, TopupNotFound, TopupNotPending
from .models import TopupOrder
from .service import TopupService

__all__ = [
    "TopupError",
    "TopupMismatch",
    "TopupNotFound",
    "TopupNotPending",
    "TopupOrder",
    "TopupService",
]
