#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Retrieval of the bridge UUID from the UPnP device description document (description.xml).

A Hue bridge description looks like:

    <root xmlns="urn:schemas-upnp-org:device-1-0">
      <device>
        <UDN>uuid:2f402f80-da50-11e1-9b23-001788255acc</UDN>
        ...
      </device>
    </root>

The UUID is the text of root/device/UDN with the "uuid:" prefix removed.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

import requests

from .internal_types import *
from .pkg_logging import logger
from .constants import DEFAULT_FETCH_TIMEOUT
from .exceptions import DescriptionFetchError, DescriptionParseError
from .target import Target

UUID_PREFIX = "uuid:"

REQUEST_HEADERS = {
    "Accept": "*/*",
    "Connection": "close",
  }

def _local_name(tag: str) -> str:
    """Strips an ElementTree "{namespace}" prefix from a tag."""
    return tag.rsplit('}', 1)[-1]

def _find_child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if isinstance(child.tag, str) and _local_name(child.tag) == name:
            return child
    return None

def parse_bridge_uuid(data: bytes) -> str:
    """Extracts the bridge UUID from the contents of description.xml.

       The "uuid:" prefix is removed if present; otherwise the UDN is returned unchanged.

       Raises DescriptionParseError if the data is not XML or has no non-empty root/device/UDN.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise DescriptionParseError(f"description.xml is not valid XML: {e}") from e
    if _local_name(root.tag) != 'root':
        raise DescriptionParseError(f"description.xml document element is <{root.tag}>, not <root>")
    device = _find_child(root, 'device')
    if device is None:
        raise DescriptionParseError("description.xml has no root/device element")
    udn = _find_child(device, 'UDN')
    if udn is None:
        raise DescriptionParseError("description.xml has no root/device/UDN element")
    value = (udn.text or '').strip()
    if value.startswith(UUID_PREFIX):
        value = value[len(UUID_PREFIX):]
    if value == '':
        raise DescriptionParseError("description.xml has an empty root/device/UDN element")
    return value

def fetch_description(
        target: Target,
        timeout: float=DEFAULT_FETCH_TIMEOUT,
        session: Optional[requests.Session]=None,
      ) -> bytes:
    """Performs a blocking HTTP GET of description.xml from the target and returns the body.

       Raises DescriptionFetchError on any transport failure, on a malformed HTTP response,
       or if the status code is not 200.
    """
    url = target.description_url
    logger.debug(f"Fetching {url}")
    getter = requests if session is None else session
    try:
        response = getter.get(url, headers=REQUEST_HEADERS, timeout=timeout)
        try:
            if response.status_code != 200:
                raise DescriptionFetchError(f"GET {url} returned HTTP status {response.status_code}")
            return response.content
        finally:
            response.close()
    except requests.RequestException as e:
        raise DescriptionFetchError(f"GET {url} failed: {e}") from e

def fetch_bridge_uuid(
        target: Target,
        timeout: float=DEFAULT_FETCH_TIMEOUT,
        session: Optional[requests.Session]=None,
      ) -> str:
    """Fetches description.xml from the target and returns the bridge UUID (blocking).

       Raises DescriptionFetchError or DescriptionParseError; both are HueSsdpError.
    """
    data = fetch_description(target, timeout=timeout, session=session)
    return parse_bridge_uuid(data)
