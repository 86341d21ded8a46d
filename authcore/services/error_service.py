"""
Global error banner.

Holds the one client-wide error that is not tied to the session:
backend unreachable, or the backend answering with a 5xx. The HTTP
adapter sets it; presentation code shows it and clears it.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from authcore.utils.logger import get_logger

logger = get_logger(__name__)


class GlobalErrorType(str, Enum):
    NETWORK = "network"
    API = "api"
    UNKNOWN = "unknown"


class GlobalError(BaseModel):
    """Client-wide error shown outside any particular form."""
    message: str
    type: GlobalErrorType = GlobalErrorType.UNKNOWN
    timestamp: datetime


class ErrorService:
    """Single-slot holder for the current global error."""

    def __init__(self):
        self.current: Optional[GlobalError] = None

    def set_error(
        self,
        message: str,
        error_type: GlobalErrorType = GlobalErrorType.UNKNOWN
    ) -> GlobalError:
        self.current = GlobalError(
            message=message,
            type=error_type,
            timestamp=datetime.now(timezone.utc),
        )
        logger.warning(f"Global {error_type.value} error: {message}")
        return self.current

    def clear(self) -> None:
        self.current = None
