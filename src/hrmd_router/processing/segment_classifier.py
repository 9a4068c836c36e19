"""
Segment classifier for HRMD IDocs.

Walks the document once, groups E1PLOGI logical records by their OTYPE
discriminator and collects each record's E1PITYP infotype segments into a
person bucket or an organizational bucket. This is the only place in the
package that knows how the IDoc tree is laid out.
"""

import logging
from typing import List, Optional

from ..models.data_structures import (
    COMPANY_CODE_FIELD,
    INFO_SEGMENT_TAG,
    INFO_TYPE_FIELD,
    LOGICAL_RECORD_TAG,
    OBJECT_ID_FIELD,
    RECORD_KIND_FIELD,
    TIME_SLICE_TAG,
    VALID_FROM_FIELD,
    VALID_UNTIL_FIELD,
    ClassifiedSegments,
    Document,
    InfoSegment,
    LogicalRecord,
    Node,
    TimeSlice,
)

logger = logging.getLogger(__name__)


def _build_time_slice(node: Node) -> TimeSlice:
    """Build a TimeSlice from an E1P0001 node.

    Missing BUKRS, BEGDA or ENDDA fields are kept as None.
    """
    return TimeSlice(
        company_code=node.child_text(COMPANY_CODE_FIELD),
        valid_from=node.child_text(VALID_FROM_FIELD),
        valid_until=node.child_text(VALID_UNTIL_FIELD),
    )


def _build_info_segment(node: Node, object_id: Optional[str] = None) -> InfoSegment:
    # E1P0001 repeats INFTY, so only the segment's own field counts
    info_type_code = node.child_text(INFO_TYPE_FIELD)
    time_slices = tuple(
        _build_time_slice(slice_node)
        for slice_node in node.iter(TIME_SLICE_TAG, prune=INFO_SEGMENT_TAG)
    )
    return InfoSegment(
        info_type_code=info_type_code,
        time_slices=time_slices,
        object_id=object_id,
    )


def extract_logical_records(document: Document) -> List[LogicalRecord]:
    """Build typed logical records from every E1PLOGI node of the document.

    A record's segments are its E1PITYP descendants, excluding those that
    belong to a nested E1PLOGI.
    """
    records: List[LogicalRecord] = []
    for record_node in document.iter(LOGICAL_RECORD_TAG):
        object_id = record_node.child_text(OBJECT_ID_FIELD)
        segments = tuple(
            _build_info_segment(segment_node, object_id)
            for segment_node in record_node.iter(
                INFO_SEGMENT_TAG, prune=LOGICAL_RECORD_TAG
            )
        )
        records.append(
            LogicalRecord(
                record_kind=record_node.child_text(RECORD_KIND_FIELD),
                object_id=object_id,
                segments=segments,
            )
        )
    return records


def classify_segments(document: Document) -> ClassifiedSegments:
    """Split the document's infotype segments into person and org buckets.

    Records whose OTYPE is "P" feed the person bucket; records with any other,
    empty or missing OTYPE feed the organizational bucket. Document order is
    kept within each bucket.

    Args:
        document: Parsed IDoc.

    Returns:
        ClassifiedSegments with both buckets.
    """
    person_segments: List[InfoSegment] = []
    organization_segments: List[InfoSegment] = []

    records = extract_logical_records(document)
    for record in records:
        if record.is_person:
            person_segments.extend(record.segments)
        else:
            organization_segments.extend(record.segments)

    logger.debug(
        "Classified %d logical records: %d person segments, %d organizational segments",
        len(records),
        len(person_segments),
        len(organization_segments),
        extra={"document_id": document.document_id},
    )

    return ClassifiedSegments(
        person_segments=tuple(person_segments),
        organization_segments=tuple(organization_segments),
    )
