"""
Document processing modules: parsing, classification and targeted routing.
"""

from .document_parser import parse_document, read_payload
from .segment_classifier import classify_segments
from .person_route_extractor import PersonRouteExtractor, parameter_resolver
from .organization_scanner import BroadcastDecision, scan_organization_segments

__all__ = [
    "parse_document",
    "read_payload",
    "classify_segments",
    "PersonRouteExtractor",
    "parameter_resolver",
    "BroadcastDecision",
    "scan_organization_segments",
]
