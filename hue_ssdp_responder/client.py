# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SsdpSearchClient -- A minimal SSDP client that can:

  1. Send an M-SEARCH discovery request to the SSDP multicast address (or a unicast address)
  2. Receive and decode the HTTP/1.1 200 OK responses from remote nodes
  3. Return the responses received within a configurable timeout period

It is used to check that a running responder answers as a Hue bridge would.
"""

from __future__ import annotations

import asyncio
import socket
import re
import time
import datetime

from .internal_types import *
from .pkg_logging import logger
from .constants import SSDP_MULTICAST_ADDRESS, SSDP_PORT, MSEARCH_STATEMENT

from .ssdp_datagram import SsdpDatagram
from .ssdp_socket import SsdpSocket, SsdpSocketBinding, SsdpDatagramSubscriber

DEFAULT_RESPONSE_WAIT_TIME = 4.0
"""The default amount of time (in seconds) to wait for responses to come in."""

DEFAULT_SEARCH_TARGET = "upnp:rootdevice"

DEFAULT_MX = 2

class SsdpResponseInfo:
    socket_binding: SsdpSocketBinding
    """The socket binding on which the response was received"""

    src_addr: HostAndPort
    """The source address of the response"""

    datagram: SsdpDatagram
    """The response datagram"""

    http_version: str
    """The HTTP version string in the statement line (e.g. "1.1")"""

    status_code: int
    """The status code in the statement line (e.g. 200)"""

    status: str
    """The status string in the statement line (e.g. "OK")"""

    monotonic_time: float
    """The time.monotonic() at which the response was received"""

    utc_time: datetime.datetime
    """The UTC time at which the response was received"""

    def __init__(
            self,
            socket_binding: SsdpSocketBinding,
            src_addr: HostAndPort,
            datagram: SsdpDatagram,
            http_version: str,
            status_code: int,
            status: str
          ) -> None:
        self.socket_binding = socket_binding
        self.src_addr = src_addr
        self.datagram = datagram
        self.http_version = http_version
        self.status_code = status_code
        self.status = status
        self.monotonic_time = time.monotonic()
        self.utc_time = datetime.datetime.now(datetime.timezone.utc)

_response_statement_re = re.compile(r'^HTTP/(?P<version_major>[0-9]+)\.(?P<version_minor>[0-9]+) +(?P<status_code>[0-9]+)(?: +(?P<status>.*[^ ]))? *$')

def parse_response_statement(statement_line: str) -> Optional[Tuple[str, int, str]]:
    """Parses an "HTTP/<major>.<minor> <status_code> <status>" statement line.

       Returns (http_version, status_code, status), or None if the line is not a response statement."""
    m = _response_statement_re.match(statement_line)
    if m is None:
        return None
    status = m.group('status')
    return (f"{m.group('version_major')}.{m.group('version_minor')}", int(m.group('status_code')), '' if status is None else status)

def build_msearch_datagram(
        search_target: str=DEFAULT_SEARCH_TARGET,
        mx: int=DEFAULT_MX,
        multicast_address: str=SSDP_MULTICAST_ADDRESS,
        multicast_port: int=SSDP_PORT,
      ) -> SsdpDatagram:
    return SsdpDatagram(
        MSEARCH_STATEMENT,
        headers=[
            ("HOST", f"{multicast_address}:{multicast_port}"),
            ("MAN", '"ssdp:discover"'),
            ("MX", str(mx)),
            ("ST", search_target),
          ]
      )

class SsdpSearchClient(SsdpSocket):
    response_wait_time: float
    """The amount of time (in seconds) to wait for responses to come in."""

    destination: HostAndPort
    """The address to which M-SEARCH requests are sent; normally the SSDP multicast group."""

    multicast_address: str = SSDP_MULTICAST_ADDRESS
    multicast_port: int = SSDP_PORT

    def __init__(
            self,
            response_wait_time: float=DEFAULT_RESPONSE_WAIT_TIME,
            destination: Optional[HostAndPort]=None,
            multicast_address: str=SSDP_MULTICAST_ADDRESS,
            multicast_port: int=SSDP_PORT,
          ) -> None:
        super().__init__()
        self.response_wait_time = response_wait_time
        self.multicast_address = multicast_address
        self.multicast_port = multicast_port
        self.destination = (multicast_address, multicast_port) if destination is None else destination

    #@override
    async def add_socket_bindings(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            sock.bind(('', 0))
        except BaseException:
            sock.close()
            raise
        self.add_socket_binding(SsdpSocketBinding(sock))

    async def search(
            self,
            search_target: str=DEFAULT_SEARCH_TARGET,
            mx: int=DEFAULT_MX,
            response_wait_time: Optional[float]=None,
            max_responses: int=0,
          ) -> AsyncIterator[SsdpResponseInfo]:
        """Sends an M-SEARCH request and yields the 200 OK responses as they arrive, until
           response_wait_time has elapsed or max_responses (if nonzero) have been received.

        Usage:
            async with SsdpSearchClient() as client:
                async for response in client.search("ssdp:all"):
                    print(response.datagram.headers)
        """
        if response_wait_time is None:
            response_wait_time = self.response_wait_time
        # The subscriber must exist before the request is sent so that no response is missed
        async with SsdpDatagramSubscriber(self) as subscriber:
            request = build_msearch_datagram(search_target, mx, self.multicast_address, self.multicast_port)
            for socket_binding in self.socket_bindings:
                socket_binding.sendto(request, self.destination)
            end_time = time.monotonic() + response_wait_time
            n = 0
            while max_responses <= 0 or n < max_responses:
                remaining_time = end_time - time.monotonic()
                if remaining_time <= 0.0:
                    break
                try:
                    resp_tuple = await asyncio.wait_for(subscriber.receive(), remaining_time)
                except asyncio.TimeoutError:
                    break
                if resp_tuple is None:
                    break
                socket_binding, addr, datagram = resp_tuple
                parsed = parse_response_statement(datagram.statement_line)
                if parsed is None:
                    logger.debug(f"Ignoring non-response datagram from {addr}: {datagram.statement_line!r}")
                    continue
                http_version, status_code, status = parsed
                if status_code != 200:
                    logger.debug(f"Ignoring response from {addr} with status {status_code} {status}")
                    continue
                n += 1
                yield SsdpResponseInfo(socket_binding, addr, datagram, http_version, status_code, status)

    async def simple_search(
            self,
            search_target: str=DEFAULT_SEARCH_TARGET,
            mx: int=DEFAULT_MX,
            response_wait_time: Optional[float]=None,
            max_responses: int=0,
          ) -> List[SsdpResponseInfo]:
        """Waits for the search to complete and returns all responses."""
        return [ response async for response in self.search(search_target, mx, response_wait_time, max_responses) ]
