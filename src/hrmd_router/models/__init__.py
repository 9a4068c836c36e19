"""Data structures for HRMD receiver determination."""

from .data_structures import (
    ClassifiedSegments,
    DirectoryAnswer,
    DirectoryEntry,
    Document,
    DynamicConfiguration,
    InfoSegment,
    LogicalRecord,
    MappingParameters,
    MessageContext,
    Node,
    RoutingOutcome,
    RoutingStage,
    RoutingTable,
    TimeSlice,
)

__all__ = [
    "ClassifiedSegments",
    "DirectoryAnswer",
    "DirectoryEntry",
    "Document",
    "DynamicConfiguration",
    "InfoSegment",
    "LogicalRecord",
    "MappingParameters",
    "MessageContext",
    "Node",
    "RoutingOutcome",
    "RoutingStage",
    "RoutingTable",
    "TimeSlice",
]
