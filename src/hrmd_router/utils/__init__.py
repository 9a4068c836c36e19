"""Utility functions for the HRMD receiver determination service."""

from .config_loader import Config, RouterConfig
from .error_handlers import (
    ConfigurationError,
    DirectoryLookupError,
    DocumentParseError,
    RoutingError,
    RoutingKeyUndefinedError,
)

__all__ = [
    "Config",
    "RouterConfig",
    "ConfigurationError",
    "DirectoryLookupError",
    "DocumentParseError",
    "RoutingError",
    "RoutingKeyUndefinedError",
]
