"""client for the Bintray REST API."""
from .client import BintrayClient, entity_path
from .config import DEFAULT_BASE_URL, USER_AGENT, load_settings, save_settings
from .domain.errors import (
    ApiError,
    BintrayError,
    BodyConsumedError,
    InvalidURLError,
    PackageNotFoundError,
    ResponseFormatError,
    ValidationError,
)
from .domain.models import ClientConfig, PackageInfo, PublishResult, ReleaseReport, Settings
from .http.response import Response

__version__ = "0.1.0"

__all__ = [
    "BintrayClient",
    "entity_path",
    "DEFAULT_BASE_URL",
    "USER_AGENT",
    "load_settings",
    "save_settings",
    "ApiError",
    "BintrayError",
    "BodyConsumedError",
    "InvalidURLError",
    "PackageNotFoundError",
    "ResponseFormatError",
    "ValidationError",
    "ClientConfig",
    "PackageInfo",
    "PublishResult",
    "ReleaseReport",
    "Settings",
    "Response",
]
