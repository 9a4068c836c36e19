"""
Person route extractor.

Collects company code to receiver system pairs from the personnel part of an
HRMD IDoc. Only organizational assignments (infotype 0001) are considered, and
within them only the time slice with the open-ended validity date: a person
carries the full history of assignments, and only the current one drives
routing.
"""

import logging
from typing import Callable, Iterable, List, Optional

from ..models.data_structures import (
    OPEN_ENDED_DATE,
    ORGANIZATIONAL_ASSIGNMENT_INFOTYPE,
    InfoSegment,
    MappingParameters,
    RoutingTable,
)
from ..utils.error_handlers import RoutingKeyUndefinedError

logger = logging.getLogger(__name__)

RoutingKeyResolver = Callable[[str], str]


def parameter_resolver(
    parameters: MappingParameters, prefix: str = "R"
) -> RoutingKeyResolver:
    """Build a resolver that looks company codes up in mapping parameters.

    Args:
        parameters: Operation-mapping parameters of the scenario.
        prefix: Prefix of the parameter names ("R" + "1000" -> "R1000").

    Returns:
        Callable mapping a company code to a system id, raising
        RoutingKeyUndefinedError for unknown codes.
    """

    def resolve(company_code: str) -> str:
        return parameters.get_string(f"{prefix}{company_code}")

    return resolve


class PersonRouteExtractor:
    """Fills a routing table from personnel infotype segments.

    Attributes:
        open_ended_date: ENDDA value marking the current assignment.
    """

    def __init__(self, open_ended_date: str = OPEN_ENDED_DATE) -> None:
        self.open_ended_date = open_ended_date

    def extract(
        self,
        segments: Iterable[InfoSegment],
        resolver: RoutingKeyResolver,
        routing_table: RoutingTable,
        warnings: Optional[List[str]] = None,
        document_id: Optional[str] = None,
    ) -> int:
        """Resolve current company codes and add them to the routing table.

        Unknown company codes are skipped with a warning; they never abort the
        document. Codes already in the table keep their first system id.

        Args:
            segments: Person infotype segments from the classifier.
            resolver: Company code to system id lookup.
            routing_table: Table receiving the resolved pairs.
            warnings: Optional list collecting warning messages.
            document_id: IDoc number used in log records.

        Returns:
            Number of pairs added to the table.
        """
        added = 0
        for segment in segments:
            if segment.info_type_code != ORGANIZATIONAL_ASSIGNMENT_INFOTYPE:
                continue

            for time_slice in segment.time_slices:
                if not time_slice.is_effective(self.open_ended_date):
                    continue

                company_code = time_slice.company_code
                if not company_code:
                    continue

                try:
                    system_id = resolver(company_code)
                except RoutingKeyUndefinedError as e:
                    message = (
                        f"No receiver system defined for company code "
                        f"'{company_code}': {e.message}"
                    )
                    logger.warning(message, extra={"document_id": document_id})
                    if warnings is not None:
                        warnings.append(message)
                    continue

                if not system_id:
                    continue

                if routing_table.add(company_code, system_id):
                    added += 1
                    logger.debug(
                        "Added BUKRS '%s' and SystemID '%s' to receivers table",
                        company_code,
                        system_id,
                        extra={"document_id": document_id},
                    )

        logger.debug(
            "Collected %d targeted receiver pair(s) from person segments",
            added,
            extra={"document_id": document_id},
        )
        return added
