"""
Tests for the line-splitting and interface helpers.
"""
import netifaces

from hue_ssdp_responder import util
from hue_ssdp_responder.util import split_bytes_at_lf_or_crlf, split_headers_and_body


def test_split_lines_at_lf_or_crlf():
    assert split_bytes_at_lf_or_crlf(b'a\r\nb\nc') == [b'a', b'b', b'c']
    assert split_bytes_at_lf_or_crlf(b'a\r\nb\r\n', 1) == [b'a', b'b\r\n']
    assert split_bytes_at_lf_or_crlf(b'') == [b'']


def test_split_headers_and_body():
    assert split_headers_and_body(b'ST: x\r\n\r\nbody') == (b'ST: x', b'body')
    assert split_headers_and_body(b'ST: x\n\nbody') == (b'ST: x', b'body')
    assert split_headers_and_body(b'\r\nbody') == (b'', b'body')
    assert split_headers_and_body(b'ST: x') == (b'ST: x', b'')


def test_interface_addresses_put_default_route_first(monkeypatch):
    ifaddresses = {
        "lo": {netifaces.AF_INET: [{"addr": "127.0.0.1"}]},
        "docker0": {netifaces.AF_INET: [{"addr": "172.17.0.1"}]},
        "eth0": {netifaces.AF_INET: [{"addr": "192.168.1.10"}, {"addr": "192.168.1.11"}]},
        "wg0": {},
      }
    monkeypatch.setattr(util.netifaces, "interfaces", lambda: list(ifaddresses))
    monkeypatch.setattr(util.netifaces, "ifaddresses", lambda name: ifaddresses[name])
    monkeypatch.setattr(util.netifaces, "gateways", lambda: {"default": {netifaces.AF_INET: ("192.168.1.1", "eth0")}})

    assert util.get_interface_ip_addresses() == ["192.168.1.10", "172.17.0.1"]
    assert util.get_interface_ip_addresses(include_loopback=True) == ["192.168.1.10", "127.0.0.1", "172.17.0.1"]


def test_interface_addresses_without_default_route(monkeypatch):
    monkeypatch.setattr(util.netifaces, "interfaces", lambda: ["eth0"])
    monkeypatch.setattr(util.netifaces, "ifaddresses", lambda name: {netifaces.AF_INET: [{"addr": "10.0.0.5"}]})
    monkeypatch.setattr(util.netifaces, "gateways", lambda: {})

    assert util.get_default_gateway_interface() is None
    assert util.get_interface_ip_addresses() == ["10.0.0.5"]
