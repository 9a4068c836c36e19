"""
Document parser for inbound HRMD IDoc payloads.

Reads the raw payload from the input provider and converts the XML into the
immutable Node tree used by the rest of the pipeline. Namespaces are stripped
from element names and leaf text is whitespace-trimmed.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Any, Optional, Union

from ..models.data_structures import (
    CONTROL_RECORD_TAG,
    DOCUMENT_NUMBER_FIELD,
    Document,
    Node,
)
from ..utils.error_handlers import DocumentParseError

logger = logging.getLogger(__name__)

InputDocument = Union[bytes, bytearray, str, Any]


def _local_name(tag: str) -> str:
    """Strip a "{namespace}" prefix from an ElementTree tag."""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _convert(element: ET.Element) -> Node:
    """Convert an ElementTree element and its children to a Node.

    Comments and processing instructions are dropped. Only leaf elements keep
    their (stripped) text.

    Args:
        element: Parsed element.

    Returns:
        Immutable Node tree rooted at `element`.
    """
    children = tuple(
        _convert(child) for child in element if isinstance(child.tag, str)
    )
    text = None
    if not children and element.text is not None:
        text = element.text.strip()
    return Node(tag=_local_name(element.tag), text=text, children=children)


def read_payload(source: InputDocument) -> bytes:
    """Obtain the raw payload bytes from the input provider.

    Args:
        source: Raw bytes, an XML string, or any object with a read() method.

    Returns:
        Payload bytes.

    Raises:
        DocumentParseError: If the provider fails or returns something other
            than bytes or text.
    """
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, str):
        return source.encode("utf-8")

    reader = getattr(source, "read", None)
    if reader is None:
        raise DocumentParseError(
            f"Unsupported input document type: {type(source).__name__}"
        )

    try:
        data = reader()
    except OSError as e:
        raise DocumentParseError(
            f"Failed to read input document: {e}", original_error=e
        ) from e

    if isinstance(data, str):
        return data.encode("utf-8")
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    raise DocumentParseError(
        f"Input provider returned {type(data).__name__}, expected bytes"
    )


def parse_tree(payload: bytes) -> Node:
    """Parse XML bytes into a Node tree.

    Raises:
        DocumentParseError: If the payload is empty or not well-formed XML.
    """
    if not payload or not payload.strip():
        raise DocumentParseError("XML payload is empty")

    try:
        root_element = ET.fromstring(payload)
    except ET.ParseError as e:
        raise DocumentParseError(
            f"XML payload is not well-formed: {e}", original_error=e
        ) from e

    return _convert(root_element)


def parse_document(payload: bytes) -> Document:
    """Parse an IDoc XML payload into a Document.

    Args:
        payload: XML bytes.

    Returns:
        Document with the converted tree and the IDoc number (EDI_DC40/DOCNUM)
        when the control record is present.

    Raises:
        DocumentParseError: If the payload is empty or not well-formed XML.
    """
    logger.debug("Started to parse HRMD_A XML to document tree.")

    root = parse_tree(payload)
    document_id = _find_document_id(root)

    logger.debug(
        "Finished parsing of HRMD_A XML to document tree.",
        extra={"document_id": document_id},
    )
    return Document(root=root, document_id=document_id)


def _find_document_id(root: Node) -> Optional[str]:
    """Return DOCNUM of the EDI_DC40 control record, or None if absent or empty."""
    control = root if root.tag == CONTROL_RECORD_TAG else None
    if control is None:
        control = next(root.iter(CONTROL_RECORD_TAG), None)
    if control is None:
        return None
    return control.child_text(DOCUMENT_NUMBER_FIELD) or None
