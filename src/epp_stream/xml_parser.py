"""
EPP XML Parser

Parses the EPP greeting (RFC 5730 section 2.4) and supplies the greeting
predicate injected into StreamSocketConnection.
"""

import logging
from datetime import datetime
from typing import List, Optional

from dateutil import parser as date_parser
from lxml import etree

from epp_stream.exceptions import EPPXMLError
from epp_stream.models import Greeting

logger = logging.getLogger("epp.parser")

# Namespaces
NS = {
    "epp": "urn:ietf:params:xml:ns:epp-1.0",
}

# Secure parser
_parser = etree.XMLParser(
    resolve_entities=False,
    no_network=True,
    remove_blank_text=True,
)


def _parse_datetime(text: Optional[str]) -> Optional[datetime]:
    """Parse ISO datetime string."""
    if not text:
        return None
    try:
        return date_parser.isoparse(text.strip())
    except ValueError:
        logger.debug(f"Unparseable svDate: {text!r}")
        return None


def _find_text(elem: etree._Element, path: str, default: str = None) -> Optional[str]:
    """Find element and return text."""
    found = elem.find(path, NS)
    if found is not None and found.text:
        return found.text
    return default


def _find_all_text(elem: etree._Element, path: str) -> List[str]:
    """Find all elements and return their text."""
    return [e.text for e in elem.findall(path, NS) if e.text]


def _parse_xml(xml_data: bytes) -> etree._Element:
    """Parse XML with secure parser."""
    try:
        return etree.fromstring(xml_data, _parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise EPPXMLError(f"XML parse error: {e}") from e


def parse_greeting(xml_data: bytes) -> Greeting:
    """
    Parse EPP greeting.

    Args:
        xml_data: Raw XML bytes

    Returns:
        Greeting object

    Raises:
        EPPXMLError: If the data is not an EPP greeting
    """
    root = _parse_xml(xml_data)

    if root.tag != f"{{{NS['epp']}}}epp":
        raise EPPXMLError(f"Unexpected root element: {root.tag}")

    greeting = root.find("epp:greeting", NS)
    if greeting is None:
        raise EPPXMLError("No greeting element found")

    return Greeting(
        server_id=_find_text(greeting, "epp:svID", ""),
        server_date=_parse_datetime(_find_text(greeting, "epp:svDate")),
        version=_find_all_text(greeting, "epp:svcMenu/epp:version"),
        lang=_find_all_text(greeting, "epp:svcMenu/epp:lang"),
        obj_uris=_find_all_text(greeting, "epp:svcMenu/epp:objURI"),
        ext_uris=_find_all_text(greeting, "epp:svcMenu/epp:svcExtension/epp:extURI"),
    )


def is_greeting_valid(xml_data: bytes) -> bool:
    """
    Check that a frame is an EPP greeting.

    Args:
        xml_data: Raw frame body

    Returns:
        True if the frame parses as a greeting
    """
    try:
        parse_greeting(xml_data)
    except EPPXMLError as e:
        logger.debug(f"Invalid greeting: {e}")
        return False
    return True
