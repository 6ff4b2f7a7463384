#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Recognition of SSDP M-SEARCH discovery requests that a Hue bridge should answer.
"""

from __future__ import annotations

from .internal_types import *
from .pkg_logging import logger
from .constants import MSEARCH_STATEMENT, ACCEPTED_SEARCH_TARGETS

from .ssdp_datagram import SsdpDatagram

class DiscoveryRequest:
    """A validated M-SEARCH request for one of the accepted search targets."""

    src_addr: HostAndPort
    """The (address, port) the request was received from, and to which replies are sent"""

    search_target: str
    """The value of the ST header"""

    mx: int
    """The maximum number of seconds to wait before replying, from the MX header"""

    datagram: SsdpDatagram
    """The request datagram"""

    def __init__(self, src_addr: HostAndPort, search_target: str, mx: int, datagram: SsdpDatagram) -> None:
        self.src_addr = src_addr
        self.search_target = search_target
        self.mx = mx
        self.datagram = datagram

    def __str__(self) -> str:
        return f"DiscoveryRequest(src_addr={self.src_addr}, st='{self.search_target}', mx={self.mx})"

    def __repr__(self) -> str:
        return str(self)

def is_msearch(datagram: SsdpDatagram) -> bool:
    """Returns True if the datagram starts with the M-SEARCH statement line."""
    return datagram.statement_line.rstrip() == MSEARCH_STATEMENT

def parse_discovery_request(
        src_addr: HostAndPort,
        datagram: SsdpDatagram,
        accepted_search_targets: Iterable[str]=ACCEPTED_SEARCH_TARGETS,
      ) -> Optional[DiscoveryRequest]:
    """Returns a DiscoveryRequest if the datagram is an M-SEARCH request that should be answered,
       or None if it should be ignored.

       A request is answered only if its ST header is one of accepted_search_targets (compared
       case-sensitively) and its MX header is an unsigned integer. There is no default MX.
    """
    if not is_msearch(datagram):
        return None
    search_target = datagram.hdr_st
    if search_target is None or search_target not in accepted_search_targets:
        logger.debug(f"Ignoring M-SEARCH from {src_addr} for unsupported ST {search_target!r}")
        return None
    mx = datagram.hdr_mx
    if mx is None:
        logger.debug(f"Ignoring M-SEARCH from {src_addr} with missing or invalid MX {datagram.headers.get('MX', None)!r}")
        return None
    return DiscoveryRequest(src_addr, search_target, mx, datagram)
