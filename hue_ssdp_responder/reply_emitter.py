#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
ReplyEmitter -- Sends the three SSDP discovery replies of a Hue bridge.

A real Hue bridge answers each matching M-SEARCH with three unicast datagrams that share
the same headers and differ only in their ST/USN pair:

    ST: upnp:rootdevice                          USN: uuid:<uuid>::upnp:rootdevice
    ST: uuid:<uuid>                              USN: uuid:<uuid>
    ST: urn:schemas-upnp-org:device:basic:1      USN: uuid:<uuid>

LOCATION points at the description.xml of the real bridge, so discoverers talk to it directly.
"""

from __future__ import annotations

from .internal_types import *
from .pkg_logging import logger
from .constants import SSDP_MULTICAST_ADDRESS, SSDP_PORT, SERVER_STRING, REPLY_CACHE_MAX_AGE
from .exceptions import HueSsdpError

from .ssdp_datagram import SsdpDatagram
from .target import Target

REPLY_STATEMENT = "HTTP/1.1 200 OK"

BASIC_DEVICE_SEARCH_TARGET = "urn:schemas-upnp-org:device:basic:1"

ReplySender = Callable[[SsdpDatagram, HostAndPort], None]
"""A function that sends a datagram to a unicast (address, port)"""

UuidSource = Callable[[], str]
"""A function that returns the current bridge UUID"""

def _search_target_pairs(uuid: str) -> List[Tuple[str, str]]:
    return [
        ("upnp:rootdevice", f"uuid:{uuid}::upnp:rootdevice"),
        (f"uuid:{uuid}", f"uuid:{uuid}"),
        (BASIC_DEVICE_SEARCH_TARGET, f"uuid:{uuid}"),
      ]

def build_reply_datagrams(target: Target, uuid: str) -> List[SsdpDatagram]:
    """Returns the three reply datagrams, in the order they are sent.

       An empty uuid produces replies with empty identifiers."""
    results: List[SsdpDatagram] = []
    for st, usn in _search_target_pairs(uuid):
        results.append(SsdpDatagram(
            REPLY_STATEMENT,
            headers=[
                ("HOST", f"{SSDP_MULTICAST_ADDRESS}:{SSDP_PORT}"),
                ("CACHE-CONTROL", f"max-age={REPLY_CACHE_MAX_AGE}"),
                ("EXT", ""),
                ("LOCATION", target.description_url),
                ("SERVER", SERVER_STRING),
                ("hue-bridgeid", uuid),
                ("ST", st),
                ("USN", usn),
              ]
          ))
    return results

class ReplyEmitter:
    target: Target
    uuid_source: UuidSource
    sender: ReplySender

    def __init__(self, target: Target, uuid_source: UuidSource, sender: ReplySender) -> None:
        self.target = target
        self.uuid_source = uuid_source
        self.sender = sender

    def respond(self, addr: str, port: int) -> None:
        """Sends the three reply datagrams to (addr, port). There is no retry; send errors are logged and dropped."""
        uuid = self.uuid_source()
        if uuid == '':
            logger.debug(f"Replying to {addr}:{port} before the bridge UUID is known")
        for datagram in build_reply_datagrams(self.target, uuid):
            try:
                self.sender(datagram, (addr, port))
            except (OSError, HueSsdpError) as e:
                logger.warning(f"Unable to send discovery reply to {addr}:{port}: {e}")
        logger.info(f"Sent discovery replies for {self.target} to {addr}:{port}")
