"""
Tests for the SSDP listener's datagram intake and filtering.
"""
import asyncio
import socket
from typing import List
from unittest.mock import Mock

import pytest

from hue_ssdp_responder import SsdpListener, SsdpDatagram, DiscoveryRequest

from conftest import msearch

SRC = ("192.168.1.50", 50000)


async def test_process_datagram_forwards_accepted_request():
    received: List[DiscoveryRequest] = []
    listener = SsdpListener(received.append)
    request = listener.process_datagram(SRC, SsdpDatagram(raw_data=msearch(st="ssdp:all", mx="2")))
    assert request is not None
    assert received == [request]
    assert request.mx == 2


async def test_process_datagram_drops_unmatched():
    received: List[DiscoveryRequest] = []
    listener = SsdpListener(received.append)
    for data in (
            msearch(statement="NOTIFY * HTTP/1.1"),
            msearch(st="urn:dial-multiscreen-org:service:dial:1"),
            msearch(mx=None),
            msearch(mx="x"),
            b'random bytes',
          ):
        assert listener.process_datagram(SRC, SsdpDatagram(raw_data=data)) is None
    assert received == []


async def test_received_datagrams_are_queued_to_handler():
    received: List[DiscoveryRequest] = []
    listener = SsdpListener(received.append)
    await listener.finish_start()
    try:
        binding = Mock()
        listener.datagram_received(binding, SRC, msearch(st="upnp:rootdevice", mx="1"))
        listener.datagram_received(binding, SRC, b'HTTP/1.1 200 OK\r\n\r\n')
        listener.datagram_received(binding, ("192.168.1.51", 50001), msearch(st="ssdp:all", mx="3"))
        for _ in range(20):
            if len(received) >= 2:
                break
            await asyncio.sleep(0.01)
        assert [r.src_addr for r in received] == [SRC, ("192.168.1.51", 50001)]
    finally:
        listener.set_final_result()
        await listener.wait_for_done()
    assert listener.listener_task is None


async def test_oversized_datagram_is_truncated_not_fatal():
    received: List[DiscoveryRequest] = []
    listener = SsdpListener(received.append)
    await listener.finish_start()
    try:
        binding = Mock()
        padded = msearch(st="upnp:rootdevice", mx="1").rstrip(b'\r\n') + b'\r\nX-Padding: ' + b'x' * 4000 + b'\r\n\r\n'
        late_st = b'M-SEARCH * HTTP/1.1\r\nX-Padding: ' + b'x' * 2000 + b'\r\nST: ssdp:all\r\nMX: 1\r\n\r\n'
        listener.datagram_received(binding, SRC, late_st)
        listener.datagram_received(binding, SRC, padded)
        for _ in range(20):
            if len(received) >= 1:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.02)
        assert len(received) == 1
        assert received[0].search_target == "upnp:rootdevice"
    finally:
        listener.set_final_result()
        await listener.wait_for_done()


async def test_handler_errors_do_not_stop_listener():
    calls: List[DiscoveryRequest] = []

    def flaky_handler(request: DiscoveryRequest) -> None:
        calls.append(request)
        if len(calls) == 1:
            raise RuntimeError("handler failed")

    listener = SsdpListener(flaky_handler)
    await listener.finish_start()
    try:
        binding = Mock()
        listener.datagram_received(binding, SRC, msearch())
        listener.datagram_received(binding, SRC, msearch())
        for _ in range(20):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.01)
        assert len(calls) == 2
        assert not listener.listener_task.done()
    finally:
        listener.set_final_result()
        await listener.wait_for_done()


async def test_start_binds_reusable_socket():
    listener = SsdpListener(lambda request: None, multicast_port=0)
    await listener.start()
    try:
        assert len(listener.socket_bindings) == 1
        sock = listener.socket_bindings[0].sock
        assert sock.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR) != 0
        assert listener.socket_bindings[0].unicast_addr[1] != 0
        assert listener.listener_task is not None
    finally:
        await listener.stop_and_wait()


async def test_sendto_before_start_fails():
    listener = SsdpListener(lambda request: None)
    with pytest.raises(OSError):
        listener.sendto(SsdpDatagram("HTTP/1.1 200 OK"), SRC)
