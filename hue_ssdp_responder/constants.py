# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

SSDP_MULTICAST_ADDRESS = "239.255.255.250"
"""The multicast address used by SSDP for UDP multicast."""

SSDP_PORT = 1900
"""The port number used by SSDP for UDP multicast."""

MSEARCH_STATEMENT = "M-SEARCH * HTTP/1.1"
"""The statement line that every SSDP discovery request starts with."""

ACCEPTED_SEARCH_TARGETS = frozenset([
    "urn:schemas-upnp-org:device:Basic:1",
    "upnp:rootdevice",
    "ssdpsearch:all",
    "ssdp:all",
  ])
"""The ST header values that will be answered. Matched case-sensitively."""

MAX_MX = 0xffff
"""The largest MX value accepted in a discovery request."""

MAX_DATAGRAM_SIZE = 1024
"""Received datagrams are truncated to this many bytes before parsing."""

DEFAULT_REFRESH_INTERVAL = 300
"""Minimum number of seconds between two fetches of description.xml from the bridge."""

DEFAULT_FETCH_TIMEOUT = 10.0
"""Timeout in seconds for the HTTP fetch of description.xml."""

DESCRIPTION_PATH = "/description.xml"
"""The path of the UPnP device description document on the bridge."""

SERVER_STRING = "Linux/3.14.0 UPnP/1.0 IpBridge/1.24.0"
"""The SERVER header sent in discovery replies."""

REPLY_CACHE_MAX_AGE = 100
"""The max-age value of the CACHE-CONTROL header sent in discovery replies."""
