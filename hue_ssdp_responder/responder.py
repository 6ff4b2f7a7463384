#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HueSsdpResponder -- Answers SSDP discovery requests on behalf of a Hue bridge that cannot
receive multicast itself (e.g., one running in a docker container or on another subnet):

  1. Listen for M-SEARCH requests on the SSDP multicast group (239.255.255.250:1900)
  2. Keep the bridge UUID cached, fetching description.xml from the bridge at most once per refresh interval
  3. Reply to each accepted request after a random delay within its MX window, superseding any pending reply
  4. Point the discoverer at the real bridge's description.xml
"""

from __future__ import annotations

import requests

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    SSDP_MULTICAST_ADDRESS,
    SSDP_PORT,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_FETCH_TIMEOUT,
  )

from .target import Target
from .identity_cache import IdentityCache
from .reply_emitter import ReplyEmitter
from .scheduler import ResponseScheduler
from .listener import SsdpListener
from .msearch import DiscoveryRequest
from .ssdp_datagram import SsdpDatagram
from .util import get_interface_ip_addresses

class HueSsdpResponder(AsyncContextManager['HueSsdpResponder']):
    target: Target
    identity_cache: IdentityCache
    emitter: ReplyEmitter
    scheduler: ResponseScheduler

    listener: Optional[SsdpListener] = None
    """The multicast listener. Created by start()."""

    multicast_address: str
    multicast_port: int

    interface_addresses: Optional[List[str]]
    """Local interface addresses on which to join the multicast group, or None for the default interface."""

    def __init__(
            self,
            target: Union[Target, str],
            refresh_interval: float=DEFAULT_REFRESH_INTERVAL,
            fetch_timeout: float=DEFAULT_FETCH_TIMEOUT,
            interface_addresses: Optional[Iterable[str]]=None,
            all_interfaces: bool=False,
            multicast_address: str=SSDP_MULTICAST_ADDRESS,
            multicast_port: int=SSDP_PORT,
            session: Optional[requests.Session]=None,
          ) -> None:
        """Create a responder for a single bridge.

        Parameters:
            target:              The bridge's HTTP endpoint, as a Target or a "<host>:<port>" string.
            refresh_interval:    The minimum number of seconds between fetches of description.xml.
            fetch_timeout:       The HTTP timeout, in seconds, for fetching description.xml.
            interface_addresses: Local IPv4 addresses of the interfaces on which to join the multicast
                                    group. Defaults to the interface chosen by the operating system.
            all_interfaces:      If True and interface_addresses is None, join the multicast group on
                                    every non-loopback IPv4 interface.
            multicast_address:   The SSDP multicast group.
            multicast_port:      The SSDP port.
            session:             An optional requests.Session used to fetch description.xml.

        Raises TargetParseError if target is a string that is not "<host>:<port>".
        """
        if isinstance(target, str):
            target = Target.parse(target)
        self.target = target
        self.multicast_address = multicast_address
        self.multicast_port = multicast_port
        if interface_addresses is None and all_interfaces:
            interface_addresses = get_interface_ip_addresses(include_loopback=False)
        self.interface_addresses = None if interface_addresses is None else list(interface_addresses)
        self.identity_cache = IdentityCache(
            target,
            refresh_interval=refresh_interval,
            fetch_timeout=fetch_timeout,
            session=session,
          )
        self.emitter = ReplyEmitter(target, lambda: self.identity_cache.uuid, self._send_reply)
        self.scheduler = ResponseScheduler(self.identity_cache, self.emitter)

    @property
    def uuid(self) -> str:
        """The cached bridge UUID, or '' if it is not yet known."""
        return self.identity_cache.uuid

    def on_discovery_request(self, request: DiscoveryRequest) -> None:
        addr, port = request.src_addr
        self.scheduler.on_discovery(addr, port, request.mx)

    def _send_reply(self, datagram: SsdpDatagram, addr: HostAndPort) -> None:
        if self.listener is None:
            raise OSError(f"Responder is not started; cannot send to {addr}")
        self.listener.sendto(datagram, addr)

    async def start(self) -> None:
        logger.debug(f"Starting SSDP responder for {self.target}")
        listener = SsdpListener(
            self.on_discovery_request,
            multicast_address=self.multicast_address,
            multicast_port=self.multicast_port,
            interface_addresses=self.interface_addresses,
          )
        await listener.start()
        self.listener = listener
        logger.info(f"Responding to SSDP discovery on behalf of {self.target}")

    async def stop(self) -> None:
        if self.listener is not None:
            await self.listener.stop()

    def set_final_exception(self, exc: BaseException) -> None:
        """Stops the responder; wait_for_done() will raise exc."""
        if self.listener is not None:
            self.listener.set_final_exception(exc)

    async def wait_for_done(self) -> None:
        """Waits until the responder is stopped, then cancels any pending reply."""
        try:
            if self.listener is not None:
                await self.listener.wait_for_done()
        finally:
            await self.scheduler.aclose()
            self.identity_cache.close()

    async def stop_and_wait(self) -> None:
        await self.stop()
        await self.wait_for_done()

    async def __aenter__(self) -> HueSsdpResponder:
        await self.start()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        if self.listener is not None:
            if exc is None:
                self.listener.set_final_result()
            else:
                self.listener.set_final_exception(exc)
        try:
            await self.wait_for_done()
        except Exception:
            pass
        return False
