"""
Directory lookup for the broadcast fallback.
"""

from .directory_resolver import (
    DirectoryChannel,
    DirectoryFallbackResolver,
    build_lookup_request,
    parse_lookup_answer,
)
from .soap_channel import HttpChannelLocator, SoapDirectoryChannel

__all__ = [
    "DirectoryChannel",
    "DirectoryFallbackResolver",
    "build_lookup_request",
    "parse_lookup_answer",
    "HttpChannelLocator",
    "SoapDirectoryChannel",
]
