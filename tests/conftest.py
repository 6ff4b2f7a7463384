from __future__ import annotations

from typing import List, Optional, Tuple
from unittest.mock import Mock

import pytest
import requests

from hue_ssdp_responder import SsdpDatagram

HUE_DESCRIPTION_TEMPLATE = """<?xml version="1.0" encoding="UTF-8" ?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
  <specVersion>
    <major>1</major>
    <minor>0</minor>
  </specVersion>
  <URLBase>http://192.168.1.20:80/</URLBase>
  <device>
    <deviceType>urn:schemas-upnp-org:device:Basic:1</deviceType>
    <friendlyName>Philips hue (192.168.1.20)</friendlyName>
    <manufacturer>Royal Philips Electronics</manufacturer>
    <modelName>Philips hue bridge 2015</modelName>
    <UDN>{udn}</UDN>
  </device>
</root>
"""

def description_xml(udn: str) -> bytes:
    return HUE_DESCRIPTION_TEMPLATE.format(udn=udn).encode('utf-8')

def make_session(status_code: int=200, content: bytes=b'', exc: Optional[BaseException]=None) -> Mock:
    """A stand-in for requests.Session whose get() returns a canned response (or raises exc)."""
    session = Mock(spec=requests.Session)
    if exc is not None:
        session.get.side_effect = exc
    else:
        response = Mock(spec=requests.Response)
        response.status_code = status_code
        response.content = content
        session.get.return_value = response
    return session

def msearch(st: Optional[str]="upnp:rootdevice", mx: Optional[str]="1", statement: str="M-SEARCH * HTTP/1.1") -> bytes:
    lines = [statement, "HOST: 239.255.255.250:1900", 'MAN: "ssdp:discover"']
    if mx is not None:
        lines.append(f"MX: {mx}")
    if st is not None:
        lines.append(f"ST: {st}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode('utf-8')

class RecordingSender:
    """Collects (datagram, addr) pairs passed to a ReplySender."""

    sent: List[Tuple[SsdpDatagram, Tuple[str, int]]]

    def __init__(self) -> None:
        self.sent = []

    def __call__(self, datagram: SsdpDatagram, addr: Tuple[str, int]) -> None:
        self.sent.append((datagram, addr))

@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()
