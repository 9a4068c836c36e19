"""Directory fallback resolver.

Asks the integration directory for every receiver configured for the current
scenario and merges the answer into the routing table. The directory is read
through a channel that the resolver locates by (service, channel) identity; the
channel only moves bytes, this module owns the request and answer formats.

Request:
    <bas:IntegratedConfigurationReadRequest xmlns:bas="http://sap.com/xi/BASIS">
      <IntegratedConfigurationID>
        <SenderComponentID/><InterfaceName/><InterfaceNamespace/>
      </IntegratedConfigurationID>
    </bas:IntegratedConfigurationReadRequest>

Answer: the operation-mapping parameters of the integrated configuration,
under the element "MappingParamters" (spelled that way by the directory API),
one child per parameter with Name ("R1000") and Value ("SYS_A").
"""

import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from ..models.data_structures import (
    DirectoryAnswer,
    DirectoryEntry,
    MessageContext,
    Node,
    RoutingTable,
)
from ..processing.document_parser import parse_tree
from ..utils.error_handlers import DirectoryLookupError, DocumentParseError

logger = logging.getLogger(__name__)

BASIS_NAMESPACE = "http://sap.com/xi/BASIS"
MAPPING_PARAMETERS_TAGS = ("MappingParamters", "MappingParameters")


class DirectoryChannel(ABC):
    """Transport used to send one lookup request to the directory."""

    @abstractmethod
    def call(self, request: bytes, timeout: float) -> bytes:
        """
        Send a lookup request and return the raw answer.

        Args:
            request: Serialized IntegratedConfigurationReadRequest.
            timeout: Upper bound for the whole call in seconds.

        Returns:
            Raw answer payload.

        Raises:
            DirectoryLookupError: If the call fails or times out.
        """
        pass


ChannelLocator = Callable[[str, str], Optional[DirectoryChannel]]


def build_lookup_request(context: MessageContext) -> bytes:
    """Serialize the lookup request for the scenario described by `context`."""
    root = ET.Element(
        "bas:IntegratedConfigurationReadRequest", {"xmlns:bas": BASIS_NAMESPACE}
    )
    configuration_id = ET.SubElement(root, "IntegratedConfigurationID")
    ET.SubElement(configuration_id, "SenderComponentID").text = context.sender_service
    ET.SubElement(configuration_id, "InterfaceName").text = context.interface_name
    ET.SubElement(
        configuration_id, "InterfaceNamespace"
    ).text = context.interface_namespace
    return ET.tostring(root, encoding="utf-8")


def _find_mapping_parameters(root: Node) -> Optional[Node]:
    for tag in MAPPING_PARAMETERS_TAGS:
        if root.tag == tag:
            return root
        node = next(root.iter(tag), None)
        if node is not None:
            return node
    return None


def parse_lookup_answer(payload: bytes, parameter_prefix: str = "R") -> DirectoryAnswer:
    """Parse a directory answer into (company code, system id) pairs.

    Parameters with an empty name or value are skipped. The routing prefix is
    removed from parameter names so that the pairs share the key space of the
    targeted routing table.

    Args:
        payload: Raw answer bytes.
        parameter_prefix: Prefix of the parameter names.

    Returns:
        Pairs in answer order.

    Raises:
        DirectoryLookupError: If the answer is not XML or has no mapping
            parameters element.
    """
    try:
        root = parse_tree(payload)
    except DocumentParseError as e:
        raise DirectoryLookupError(
            f"Directory answer is not valid XML: {e.message}", original_error=e
        ) from e

    parameters = _find_mapping_parameters(root)
    if parameters is None:
        raise DirectoryLookupError(
            "Could not retrieve MappingParameters element from directory answer"
        )

    answer: DirectoryAnswer = []
    for parameter in parameters.children:
        name = parameter.find_text("Name")
        value = parameter.find_text("Value")
        if not name or not value:
            continue
        if parameter_prefix and name.startswith(parameter_prefix):
            name = name[len(parameter_prefix):]
        if name:
            answer.append(DirectoryEntry(company_code=name, system_id=value))

    return answer


class DirectoryFallbackResolver:
    """Looks up all receivers of a scenario and merges them into a routing table.

    Every failure (no channel, transport error, timeout, unusable answer) is
    logged and results in an empty answer; the resolver never aborts the
    document.

    Attributes:
        service: Directory-service identity.
        channel: Directory-channel identity.
        timeout_seconds: Upper bound for one directory call.
        parameter_prefix: Routing parameter prefix stripped from answer names.
    """

    def __init__(
        self,
        service: str,
        channel: str,
        channel_locator: ChannelLocator,
        timeout_seconds: float = 30.0,
        parameter_prefix: str = "R",
    ) -> None:
        self.service = service
        self.channel = channel
        self.channel_locator = channel_locator
        self.timeout_seconds = timeout_seconds
        self.parameter_prefix = parameter_prefix

    def lookup(
        self,
        context: MessageContext,
        warnings: Optional[List[str]] = None,
        document_id: Optional[str] = None,
    ) -> DirectoryAnswer:
        """Send one lookup request and return the parsed answer.

        Returns:
            The directory answer, empty if anything went wrong.
        """
        logger.debug(
            "Started to lookup all possible receiver systems of the scenario",
            extra={"document_id": document_id},
        )

        channel = self.channel_locator(self.service, self.channel)
        if channel is None:
            self._warn(
                f"Could not get channel '{self.channel}' of '{self.service}' "
                f"to perform directory lookup",
                warnings,
                document_id,
            )
            return []

        request = build_lookup_request(context)

        try:
            payload = channel.call(request, self.timeout_seconds)
            answer = parse_lookup_answer(payload, self.parameter_prefix)
        except DirectoryLookupError as e:
            self._warn(
                f"Directory lookup failed: {e.message}", warnings, document_id
            )
            return []
        except (TimeoutError, OSError) as e:
            self._warn(f"Directory lookup failed: {e}", warnings, document_id)
            return []
        except Exception as e:
            logger.exception(
                f"Unexpected directory lookup failure: {e}",
                extra={"document_id": document_id},
            )
            if warnings is not None:
                warnings.append(f"Directory lookup failed: {e}")
            return []

        logger.debug(
            "Directory lookup returned %d mapping parameter(s)",
            len(answer),
            extra={"document_id": document_id},
        )
        return answer

    def resolve(
        self,
        context: MessageContext,
        routing_table: RoutingTable,
        warnings: Optional[List[str]] = None,
        document_id: Optional[str] = None,
    ) -> DirectoryAnswer:
        """Look up all receivers and add the ones filling gaps to the table."""
        answer = self.lookup(context, warnings, document_id)
        added = routing_table.merge(answer)
        logger.debug(
            "Added %d of %d receiver pair(s) from lookup",
            added,
            len(answer),
            extra={"document_id": document_id},
        )
        return answer

    @staticmethod
    def _warn(
        message: str, warnings: Optional[List[str]], document_id: Optional[str]
    ) -> None:
        logger.warning(message, extra={"document_id": document_id})
        if warnings is not None:
            warnings.append(message)
