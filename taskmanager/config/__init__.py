"""
Task Manager - Configuration
"""
from .settings import (
    Settings,
    DatabaseSettings,
    StoreSettings,
    ApiSettings,
    LogSettings,
    settings,
)
from .logging import (
    setup_logging,
    get_logger,
    log_api_request,
    log_error,
    request_id_var,
    JSONFormatter,
    ColoredFormatter,
)

__all__ = [
    "Settings",
    "DatabaseSettings",
    "StoreSettings",
    "ApiSettings",
    "LogSettings",
    "settings",
    # Logging
    "setup_logging",
    "get_logger",
    "log_api_request",
    "log_error",
    "request_id_var",
    "JSONFormatter",
    "ColoredFormatter",
]
