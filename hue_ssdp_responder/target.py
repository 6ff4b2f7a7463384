#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""The HTTP endpoint of the real Hue bridge (or emulator) that replies point at."""

from __future__ import annotations

import socket

from .internal_types import *
from .constants import DESCRIPTION_PATH
from .exceptions import TargetParseError

def resolve_port(port: Union[str, int]) -> int:
    """Returns a TCP port number for a decimal port or a service name such as "http".

       Raises TargetParseError if the port is out of range or the service name is unknown."""
    if isinstance(port, str) and not (port.isascii() and port.isdigit()):
        if port == '':
            raise TargetParseError("Target port must not be empty")
        try:
            return socket.getservbyname(port, 'tcp')
        except OSError as e:
            raise TargetParseError(f"Unknown TCP service name {port!r}: {e}") from e
    result = int(port)
    if not 0 < result < 65536:
        raise TargetParseError(f"Target port {port!r} is out of range")
    return result

class Target:
    """An immutable "<host>:<port>" HTTP endpoint. Service-name ports are resolved to numbers."""

    __slots__ = ('_host', '_port')

    _host: str
    _port: int

    def __init__(self, host: str, port: Union[str, int]) -> None:
        if host == '':
            raise TargetParseError("Target host must not be empty")
        self._host = host
        self._port = resolve_port(port)

    @classmethod
    def parse(cls, value: str) -> Target:
        """Parses "<host>:<port>", splitting on the first colon.

           Raises TargetParseError if there is no colon, the host is empty, or the port cannot be resolved."""
        host, sep, port = value.partition(':')
        if sep == '':
            raise TargetParseError(f"Target must be in the form '<host>:<port>', got {value!r}")
        return cls(host, port)

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def description_url(self) -> str:
        """The URL of description.xml on the target"""
        return f"http://{self._host}:{self._port}{DESCRIPTION_PATH}"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Target):
            return NotImplemented
        return self._host == other._host and self._port == other._port

    def __hash__(self) -> int:
        return hash((self._host, self._port))

    def __str__(self) -> str:
        return f"{self._host}:{self._port}"

    def __repr__(self) -> str:
        return f"Target({self._host!r}, {self._port!r})"
