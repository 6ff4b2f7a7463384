# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package hue_ssdp_responder answers SSDP discovery requests on behalf of a Philips Hue bridge.

SSDP discovery (used, e.g., by Amazon Echo devices to find Hue bridges) relies on UDP multicast,
which does not cross subnet boundaries or the docker network bridge. A Hue bridge emulator such as
HA-Bridge or node-red-contrib-amazon-echo that runs in a container or on another subnet is
therefore never discovered. This package runs on the discoverer's subnet, answers the M-SEARCH
requests that a Hue bridge would answer, and points the discoverer at the bridge's
description.xml over plain unicast HTTP, so the bridge can be anywhere that is reachable.
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict, HostAndPort

from .exceptions import HueSsdpError, TargetParseError, DescriptionFetchError, DescriptionParseError

from .target import Target
from .ssdp_datagram import SsdpDatagram
from .ssdp_socket import SsdpSocket, SsdpSocketBinding, SsdpDatagramSubscriber
from .msearch import DiscoveryRequest, parse_discovery_request
from .description import fetch_bridge_uuid, parse_bridge_uuid
from .identity_cache import Identity, IdentityCache
from .reply_emitter import ReplyEmitter, build_reply_datagrams
from .scheduler import ResponseScheduler, PendingReply
from .listener import SsdpListener
from .responder import HueSsdpResponder
from .client import SsdpSearchClient, SsdpResponseInfo, DEFAULT_RESPONSE_WAIT_TIME
from .util import CaseInsensitiveDict
from .constants import SSDP_MULTICAST_ADDRESS, SSDP_PORT, ACCEPTED_SEARCH_TARGETS, DEFAULT_REFRESH_INTERVAL

__all__ = [
    '__version__',
    'Jsonable', 'JsonableDict', 'HostAndPort',
    'HueSsdpError', 'TargetParseError', 'DescriptionFetchError', 'DescriptionParseError',
    'Target',
    'SsdpDatagram',
    'SsdpSocket', 'SsdpSocketBinding', 'SsdpDatagramSubscriber',
    'DiscoveryRequest', 'parse_discovery_request',
    'fetch_bridge_uuid', 'parse_bridge_uuid',
    'Identity', 'IdentityCache',
    'ReplyEmitter', 'build_reply_datagrams',
    'ResponseScheduler', 'PendingReply',
    'SsdpListener',
    'HueSsdpResponder',
    'SsdpSearchClient', 'SsdpResponseInfo', 'DEFAULT_RESPONSE_WAIT_TIME',
    'CaseInsensitiveDict',
    'SSDP_MULTICAST_ADDRESS', 'SSDP_PORT', 'ACCEPTED_SEARCH_TARGETS', 'DEFAULT_REFRESH_INTERVAL',
]
