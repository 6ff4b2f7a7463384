#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Simple utility functions used by this package
"""

from __future__ import annotations

from typing_extensions import SupportsIndex

import netifaces
from ipaddress import IPv4Address

from .internal_types import *

from requests.structures import CaseInsensitiveDict

def split_bytes_at_lf_or_crlf(data: bytes, maxsplit: SupportsIndex = -1) -> List[bytes]:
    """Split a byte string into lines at LF or CRLF, with the delimiters removed.

    If maxsplit is given, at most maxsplit splits are done.
    """
    lines = data.split(b'\n', maxsplit)
    # the last element was not followed by a delimiter, so any trailing '\r' belongs to it
    return [ line[:-1] if line.endswith(b'\r') else line for line in lines[:-1] ] + lines[-1:]

def split_headers_and_body(data: bytes) -> Tuple[bytes, bytes]:
    """Splits a byte string holding HTTP headers and an optional body at the first blank line.

    A bare '\n' is accepted as a line delimiter even though '\r\n' is required by the standard.

    Returns a Tuple[headers: bytes, body: bytes]. If there is no blank line, the body is b''.
    """
    for blank_line in (b'\r\n', b'\n'):
        if data.startswith(blank_line):
            return (b'', data[len(blank_line):])

    ends = [ (i, delim) for delim in (b'\n\r\n', b'\n\n') for i in [data.find(delim)] if i >= 0 ]
    if len(ends) == 0:
        return (data, b'')
    i, delim = min(ends)
    headers = data[:i]
    if headers.endswith(b'\r'):
        headers = headers[:-1]
    return (headers, data[i + len(delim):])

def parse_http_header_line(line: str) -> Optional[Tuple[str, str]]:
    """Parses a single "<name>: <value>" header line.

    Returns (name, value) with surrounding whitespace removed from the value, or None if the
    line is not a header line (no colon, empty name, or whitespace inside the name). The space
    after the colon is optional.
    """
    name, sep, value = line.partition(':')
    if sep == '' or name == '' or name != name.strip() or len(name.split()) != 1:
        return None
    return (name, value.strip())

def parse_http_headers(data: bytes) -> Tuple[CaseInsensitiveDict[str], bytes]:
    """Parse HTTP-style headers out of a byte string. Also returns the body of the message, if any.

    It is assumed that any preceding statement line (e.g., "HTTP/1.1 200 OK\r\n") has already been removed.

    Lines that are not of the form "<name>: <value>" are skipped. If a header name appears more
    than once, the last occurrence wins. Header names are compared case-insensitively, but the
    case of the last occurrence is preserved. Bytes that are not valid UTF-8 are replaced.

    Returns a tuple of (headers: CaseInsensitiveDict[str], body: bytes).
    """

    headers_data, body = split_headers_and_body(data)
    headers: CaseInsensitiveDict[str] = CaseInsensitiveDict()
    if len(headers_data) > 0:
        for raw_line in split_bytes_at_lf_or_crlf(headers_data):
            name_and_value = parse_http_header_line(raw_line.decode('utf-8', errors='replace'))
            if name_and_value is not None:
                name, value = name_and_value
                headers[name] = value
    return (headers, body)

def encode_http_header(name: str, value: str) -> bytes:
    """Encodes a header as a single '\r\n'-terminated line.

    SSDP clients expect each header on one line, so values are never wrapped.
    An empty value is encoded as "<name>:" with no trailing space.
    """
    if value == '':
        return name.encode() + b':\r\n'
    return name.encode() + b': ' + value.encode() + b'\r\n'

def get_default_gateway_interface() -> Optional[str]:
    """Returns the name of the interface that carries the default IPv4 route, or None if there is none."""
    default_gateways = netifaces.gateways().get('default', {})
    if netifaces.AF_INET not in default_gateways:
        return None
    return default_gateways[netifaces.AF_INET][1]

def get_interface_ip_addresses(include_loopback: bool=False) -> List[str]:
    """Returns one IPv4 address per local network interface.

       Multicast group membership is per interface, so joining a group once for each returned
       address covers every interface exactly once. The default gateway's interface comes first;
       loopback interfaces are skipped unless include_loopback is True.
    """
    default_ifname = get_default_gateway_interface()
    result: List[Tuple[bool, str]] = []
    for ifname in netifaces.interfaces():
        addrinfos = netifaces.ifaddresses(ifname).get(netifaces.AF_INET, [])
        if len(addrinfos) == 0:
            continue
        ip_str: str = addrinfos[0]['addr']
        if not include_loopback and IPv4Address(ip_str).is_loopback:
            continue
        result.append((ifname != default_ifname, ip_str))
    # stable sort keeps the netifaces order otherwise
    result.sort(key=lambda x: x[0])
    return [ ip for _, ip in result ]
