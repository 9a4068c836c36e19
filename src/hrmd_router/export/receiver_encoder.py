"""
Receiver determination encoder.

Renders the final receiver set as the bus's ReceiverDetermination message:

    <?xml version='1.0' encoding='UTF-8'?>
    <ns1:Receivers xmlns:ns1="http://sap.com/xi/XI/System">
      <Receiver><Service>SYS_A</Service></Receiver>
    </ns1:Receivers>
"""

import logging
import xml.etree.ElementTree as ET
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

RECEIVERS_NAMESPACE = "http://sap.com/xi/XI/System"


def encode_receivers(
    receivers: Iterable[Optional[str]], document_id: Optional[str] = None
) -> bytes:
    """Encode distinct receiver system ids as a Receivers document.

    Empty and None ids are dropped, duplicates collapse to one entry. Entries
    are written in sorted order.

    Args:
        receivers: Receiver system ids.
        document_id: IDoc number used in log records.

    Returns:
        UTF-8 encoded XML document.
    """
    unique_ids = sorted({receiver for receiver in receivers if receiver})

    logger.debug(
        "Creating ReceiverDetermination XML. Final receivers count: %d",
        len(unique_ids),
        extra={"document_id": document_id},
    )

    root = ET.Element("ns1:Receivers", {"xmlns:ns1": RECEIVERS_NAMESPACE})
    for system_id in unique_ids:
        receiver = ET.SubElement(root, "Receiver")
        ET.SubElement(receiver, "Service").text = system_id

    return ET.tostring(root, encoding="UTF-8", xml_declaration=True)
