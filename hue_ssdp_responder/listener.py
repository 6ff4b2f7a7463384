#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SsdpListener -- Receives SSDP discovery requests on the multicast group (239.255.255.250:1900)
and hands the ones that a Hue bridge should answer to a handler.

A single UDP socket is bound to the wildcard address on the SSDP port. The multicast group is
joined on the default interface, or on each of a list of local interface addresses.
"""

from __future__ import annotations

import asyncio
import socket
import sys

from .internal_types import *
from .pkg_logging import logger
from .constants import SSDP_MULTICAST_ADDRESS, SSDP_PORT, ACCEPTED_SEARCH_TARGETS

from .ssdp_datagram import SsdpDatagram
from .ssdp_socket import SsdpSocket, SsdpSocketBinding, SsdpDatagramSubscriber
from .msearch import DiscoveryRequest, parse_discovery_request

DiscoveryHandler = Callable[[DiscoveryRequest], None]
"""A callback for accepted discovery requests. Called on the event loop; must not block."""

class SsdpListener(SsdpSocket):
    multicast_address: str = SSDP_MULTICAST_ADDRESS
    """The multicast group to join."""

    multicast_port: int = SSDP_PORT
    """The port to listen on."""

    interface_addresses: Optional[List[str]] = None
    """Local interface IPv4 addresses on which to join the multicast group. If None, the group is
       joined on the interface chosen by the operating system (INADDR_ANY)."""

    accepted_search_targets: FrozenSet[str]

    handler: DiscoveryHandler

    listener_task: Optional[asyncio.Task[None]] = None
    """The task that reads queued datagrams and passes accepted requests to the handler."""

    def __init__(
            self,
            handler: DiscoveryHandler,
            multicast_address: str=SSDP_MULTICAST_ADDRESS,
            multicast_port: int=SSDP_PORT,
            interface_addresses: Optional[Iterable[str]]=None,
            accepted_search_targets: Iterable[str]=ACCEPTED_SEARCH_TARGETS,
          ) -> None:
        super().__init__()
        self.handler = handler
        self.multicast_address = multicast_address
        self.multicast_port = multicast_port
        self.interface_addresses = None if interface_addresses is None else list(interface_addresses)
        self.accepted_search_targets = frozenset(accepted_search_targets)

    #@override
    async def add_socket_bindings(self) -> None:
        group_bin = socket.inet_aton(self.multicast_address)
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if sys.platform not in ( 'win32', 'cygwin' ) and hasattr(socket, 'SO_REUSEPORT'):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            # Multicast listeners MUST bind to 0.0.0.0:<port> to receive multicast packets
            sock.bind(('', self.multicast_port))
            if self.interface_addresses is None or len(self.interface_addresses) == 0:
                mreq = group_bin + socket.inet_aton('0.0.0.0')
                logger.debug(f"Joining multicast group {self.multicast_address} on the default interface")
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
            else:
                for interface_address in self.interface_addresses:
                    mreq = group_bin + socket.inet_aton(interface_address)
                    logger.debug(f"Joining multicast group {self.multicast_address} on {interface_address}")
                    sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
        except BaseException:
            sock.close()
            raise
        socket_binding = SsdpSocketBinding(sock, unicast_addr=sock.getsockname())
        self.add_socket_binding(socket_binding)

    async def finish_start(self) -> None:
        # The subscriber is registered before returning so that no datagram received after start() is missed
        subscriber = SsdpDatagramSubscriber(self)
        await subscriber.__aenter__()
        self.listener_task = asyncio.create_task(self._run_listener_task(subscriber))
        logger.info(f"Listening for SSDP discovery requests on {self.multicast_address}:{self.multicast_port}")

    async def wait_for_dependents_done(self) -> None:
        if self.listener_task is not None:
            self.listener_task.cancel()
            try:
                await self.listener_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"Exception while cancelling listener task: {e}")
            self.listener_task = None

    def process_datagram(self, addr: HostAndPort, datagram: SsdpDatagram) -> Optional[DiscoveryRequest]:
        """Filters one received datagram and passes it to the handler if it should be answered.

           Returns the accepted request, or None if the datagram was ignored."""
        request = parse_discovery_request(addr, datagram, self.accepted_search_targets)
        if request is None:
            return None
        logger.debug(f"Accepted {request}")
        self.handler(request)
        return request

    async def _run_listener_task(self, subscriber: SsdpDatagramSubscriber) -> None:
        logger.debug("SSDP listener task starting")
        try:
            try:
                async for socket_binding, addr, datagram in subscriber.iter_datagrams():
                    try:
                        self.process_datagram(addr, datagram)
                    except Exception as e:
                        logger.warning(f"Error handling datagram from {addr}: {e!r}")
            finally:
                await subscriber.__aexit__(None, None, None)
        except asyncio.CancelledError:
            logger.debug("SSDP listener task cancelled; exiting")
            raise
        except BaseException as e:
            logger.info(f"SSDP listener task exiting with exception: {e}")
            raise
        logger.debug("SSDP listener task exiting")

    def sendto(self, datagram: SsdpDatagram, addr: HostAndPort) -> None:
        """Sends a unicast datagram from the listening socket."""
        if len(self.socket_bindings) == 0:
            raise OSError(f"SsdpListener is not started; cannot send to {addr}")
        self.socket_bindings[0].sendto(datagram, addr)
