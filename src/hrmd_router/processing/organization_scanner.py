"""Organization scanner: detects organizational-management infotypes."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..models.data_structures import InfoSegment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BroadcastDecision:
    """Outcome of the organizational scan.

    Attributes:
        broadcast: True if the message must go to every configured receiver.
        trigger_code: Infotype code that triggered the broadcast.
    """

    broadcast: bool
    trigger_code: Optional[str] = None


def scan_organization_segments(
    segments: Iterable[InfoSegment],
    management_infotypes: Iterable[str],
    document_id: Optional[str] = None,
) -> BroadcastDecision:
    """Check organizational segments for management infotypes.

    Stops at the first segment whose code is a management infotype. Segments
    with an absent or empty code simply do not match.

    Args:
        segments: Organizational infotype segments from the classifier.
        management_infotypes: Configured management infotype codes.
        document_id: IDoc number used in log records.

    Returns:
        BroadcastDecision naming the triggering code, if any.
    """
    codes = frozenset(management_infotypes)

    for segment in segments:
        code = segment.info_type_code
        if code and code in codes:
            logger.info(
                "Found management infotype %s (object %s), IDoc must be routed "
                "to all possible receivers",
                code,
                segment.object_id or "unknown",
                extra={"document_id": document_id},
            )
            return BroadcastDecision(broadcast=True, trigger_code=code)

    logger.info(
        "Could not find any of %s segments, continuing with targeted routing",
        sorted(codes),
        extra={"document_id": document_id},
    )
    return BroadcastDecision(broadcast=False)
