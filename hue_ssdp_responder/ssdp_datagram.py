#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Abstraction of a Datagram packet used in the SSDP protocol.
"""

from __future__ import annotations

from .internal_types import *

from .constants import MAX_MX

from .util import (
    CaseInsensitiveDict,
    split_bytes_at_lf_or_crlf,
    parse_http_headers,
    encode_http_header,
)

HeaderItems = Union[Mapping[str, str], Iterable[Tuple[str, str]]]
"""Headers given as a mapping or as a sequence of (name, value) pairs"""

class SsdpDatagram(Mapping[str, str]):
    """An SSDP datagram, either parsed from received bytes or built from a statement line and headers.

    The datagram is read-only once constructed. It behaves as a case-insensitive mapping from
    header name to header value. A built datagram emits its headers in the order given, with
    the case given.
    """

    _raw_data: bytes
    _statement_line: str
    _headers: CaseInsensitiveDict[str]
    _body: bytes

    def __init__(
            self,
            statement: Optional[str]=None,
            headers: Optional[HeaderItems]=None,
            body: bytes=b'',
            raw_data: Optional[bytes]=None,
          ):
        """Either statement (with optional headers and body) or raw_data must be given, but not both."""
        if raw_data is not None:
            if statement is not None or headers is not None or body != b'':
                raise ValueError("If raw_data is provided, statement, headers, and body must not be")
            self._parse(raw_data)
        elif statement is not None:
            self._build(statement, headers, body)
        else:
            raise ValueError("Either statement or raw_data must be provided")

    def _parse(self, raw_data: bytes) -> None:
        self._raw_data = raw_data
        first_line_and_rest = split_bytes_at_lf_or_crlf(raw_data, 1)
        self._statement_line = first_line_and_rest[0].decode('utf-8', errors='replace')
        rest = first_line_and_rest[1] if len(first_line_and_rest) > 1 else b''
        self._headers, self._body = parse_http_headers(rest)

    def _build(self, statement: str, headers: Optional[HeaderItems], body: bytes) -> None:
        self._statement_line = statement
        self._body = body
        self._headers = CaseInsensitiveDict()
        if headers is not None:
            pairs = headers.items() if isinstance(headers, Mapping) else headers
            for name, value in pairs:
                self._headers[name] = value
        lines = [ statement.encode('utf-8') + b'\r\n' ]
        lines.extend(encode_http_header(name, value) for name, value in self._headers.items())
        lines.append(b'\r\n')
        self._raw_data = b''.join(lines) + body

    def __str__(self) -> str:
        return f"SsdpDatagram('{self._statement_line}', headers={dict(self._headers)}, body={self._body!r})"

    def __repr__(self) -> str:
        return str(self)

    @property
    def raw_data(self) -> bytes:
        """The bytes sent or received on the wire"""
        return self._raw_data

    @property
    def statement_line(self) -> str:
        """The first line of the datagram; e.g., "M-SEARCH * HTTP/1.1" or "HTTP/1.1 200 OK"."""
        return self._statement_line

    @property
    def body(self) -> bytes:
        return self._body

    @property
    def headers(self) -> CaseInsensitiveDict[str]:
        """The headers. Treat as read-only."""
        return self._headers

    @property
    def hdr_st(self) -> Optional[str]:
        """The "ST" (search target) header, or None if it is not present"""
        return self._headers.get('ST')

    @property
    def hdr_mx(self) -> Optional[int]:
        """The "MX" (maximum response delay, in seconds) header as an unsigned integer.

           None if the header is missing, is not a string of decimal digits, or is larger than MAX_MX."""
        value = self._headers.get('MX')
        if value is None or not value.isascii() or not value.isdigit():
            return None
        mx = int(value)
        return None if mx > MAX_MX else mx

    @property
    def hdr_usn(self) -> Optional[str]:
        return self._headers.get('USN')

    @property
    def hdr_location(self) -> Optional[str]:
        return self._headers.get('LOCATION')

    def __getitem__(self, key: str) -> str:
        return self._headers[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, SsdpDatagram):
            return NotImplemented
        return self._raw_data == other._raw_data

    def __hash__(self) -> int:
        return hash(self._raw_data)
