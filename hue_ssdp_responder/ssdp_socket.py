#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SsdpSocket -- An abstract base class for an SSDP socket that can:

  1. Listen on either a multicast or unicast address
  2. Receive and decode SsdpDatagrams from remote nodes and deliver them to any number of async subscribers
  3. Send SsdpDatagrams to a remote multicast or unicast address

  The subscriber interface is a simple async iterator that returns a sequence of
  (SsdpSocketBinding, HostAndPort, SsdpDatagram) tuples until the socket is closed. Received
  datagrams are queued to subscribers from the transport callback, so a slow subscriber never
  stalls reception.

  Subclasses must implement the add_socket_bindings() method to create and bind the sockets that
  will be used to receive and send datagrams.
"""

from __future__ import annotations

import asyncio
from asyncio import Future
import socket
from abc import abstractmethod

from .internal_types import *
from .pkg_logging import logger
from .constants import MAX_DATAGRAM_SIZE
from .exceptions import HueSsdpError
from .ssdp_datagram import SsdpDatagram

MAX_QUEUE_SIZE = 1000

class SsdpSocketBinding:
    """
    An encapsulation of the binding of an SsdpSocket to a single low-level
    bound datagram socket.

    Instances of this class are created prior to loop.create_datagram_endpoint,
    and are later bound to the _SsdpSocketProtocol instance that is created by
    loop.create_datagram_endpoint.
    """

    ssdp_socket: Optional[SsdpSocket] = None
    """The SsdpSocket that is bound to this low-level socket. """

    index: int = -1
    """The index of this socket binding within SsdpSocket. Set to -1 until this socket binding is added."""

    sock: Optional[socket.socket] = None
    """The low-level socket that is bound to this SsdpSocket."""

    _protocol: Optional[_SsdpSocketProtocol] = None
    _transport: Optional[asyncio.DatagramTransport] = None

    unicast_addr: HostAndPort
    """The local ip address and port associated with this binding."""

    sockname: str
    """The name of the socket as it should be displayed in logs, etc"""

    def __init__(self, sock: socket.socket, unicast_addr: Optional[HostAndPort]=None, sockname: Optional[str]=None):
        self.sock = sock
        if unicast_addr is None:
            unicast_addr = sock.getsockname()
            assert isinstance(unicast_addr, tuple)
        self.unicast_addr = unicast_addr
        if sockname is None:
            bound_addr = sock.getsockname()
            if bound_addr == unicast_addr:
                sockname = str(bound_addr)
            else:
                sockname = f"{bound_addr}@{unicast_addr}"
        self.sockname = sockname

    def attach_to_ssdp_socket(self, ssdp_socket: SsdpSocket, index: int) -> None:
        if self.index >= 0:
            raise HueSsdpError(f"Attempt to reattach SsdpSocketBinding: {self}")
        assert self.ssdp_socket is None or self.ssdp_socket == ssdp_socket
        self.ssdp_socket = ssdp_socket
        self.index = index

    @property
    def transport(self) -> Optional[asyncio.DatagramTransport]:
        return self._transport

    @transport.setter
    def transport(self, transport: Optional[asyncio.DatagramTransport]) -> None:
        if transport != self._transport:
            assert self._transport is None or transport is None
        self._transport = transport

    @property
    def protocol(self) -> Optional[_SsdpSocketProtocol]:
        return self._protocol

    @protocol.setter
    def protocol(self, protocol: _SsdpSocketProtocol) -> None:
        if protocol != self._protocol:
            assert self._protocol is None
        self._protocol = protocol

    def sendto(self, datagram: SsdpDatagram, addr: HostAndPort) -> None:
        logger.debug(f"Sending SsdpDatagram via {self} to {addr}: {datagram}")
        if self.transport is None:
            raise HueSsdpError(f"Cannot send on closed {self}")
        self.transport.sendto(datagram.raw_data, addr)

    def __str__(self) -> str:
        return f"SsdpSocketBinding({self.index}: {self.sockname})"

    def __repr__(self) -> str:
        return str(self)

class _SsdpSocketProtocol(asyncio.DatagramProtocol):
    """An adapter between the asyncio transport and SsdpSocket. There is one instance of this class
       created for each low-level socket."""
    socket_binding: SsdpSocketBinding

    def __init__(self, socket_binding: SsdpSocketBinding):
        self.socket_binding = socket_binding
        socket_binding.protocol = self

    @property
    def ssdp_socket(self) -> SsdpSocket:
        assert self.socket_binding.ssdp_socket is not None
        return self.socket_binding.ssdp_socket

    @property
    def transport(self) -> Optional[asyncio.DatagramTransport]:
        return self.socket_binding.transport

    @transport.setter
    def transport(self, transport: Optional[asyncio.DatagramTransport]) -> None:
        self.socket_binding.transport = transport

    def connection_made(self, transport: asyncio.BaseTransport):
        """Called when a connection is made."""
        # asyncio datagram transports do not inherit from asyncio.DatagramTransport, so no isinstance check here
        assert self.transport is None
        try:
            self.transport = transport # type: ignore[assignment]
            self.ssdp_socket.connection_made(self.socket_binding)
        except BaseException as e:
            self.ssdp_socket.set_final_exception(e)
            raise

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        """Called when some datagram is received."""
        try:
            self.ssdp_socket.datagram_received(self.socket_binding, addr, data)
        except BaseException as e:
            self.ssdp_socket.set_final_exception(e)
            raise

    def error_received(self, exc: Exception):
        """Called when a send or receive operation raises an OSError.

        (Other than BlockingIOError or InterruptedError.)
        """
        self.ssdp_socket.error_received(self.socket_binding, exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Called when the connection is lost or closed."""
        try:
            self.ssdp_socket.connection_lost(self.socket_binding, exc)
        except BaseException as e:
            self.ssdp_socket.set_final_exception(e)
            raise
        self.transport = None


class SsdpDatagramSubscriber(
        AsyncContextManager['SsdpDatagramSubscriber'],
        AsyncIterable[Tuple[SsdpSocketBinding, HostAndPort, SsdpDatagram]]
      ):
    ssdp_socket: SsdpSocket
    queue: asyncio.Queue[Optional[Tuple[SsdpSocketBinding, HostAndPort, SsdpDatagram]]]
    final_result: Future[None]
    eos: bool = False
    eos_exc: Optional[Exception] = None

    def __init__(self, ssdp_socket: SsdpSocket, max_queue_size: int=MAX_QUEUE_SIZE):
        self.ssdp_socket = ssdp_socket
        self.queue = asyncio.Queue(max_queue_size)
        self.final_result = asyncio.get_running_loop().create_future()

    async def __aenter__(self) -> SsdpDatagramSubscriber:
        self.ssdp_socket.add_subscriber(self)
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        self.ssdp_socket.remove_subscriber(self)
        self.set_final_result()
        try:
            # ensure that final_result has been awaited
            await self.final_result
        except Exception:
            pass
        return False

    async def iter_datagrams(self) -> AsyncIterator[Tuple[SsdpSocketBinding, HostAndPort, SsdpDatagram]]:
        while True:
            result = await self.receive()
            if result is None:
                break
            yield result

    def __aiter__(self) -> AsyncIterator[Tuple[SsdpSocketBinding, HostAndPort, SsdpDatagram]]:
        return self.iter_datagrams()

    def _wake_waiters(self) -> None:
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            # queue is full so waiters will wake up soon
            pass

    def set_final_result(self) -> None:
        if not self.final_result.done():
            self.final_result.set_result(None)
            self._wake_waiters()
            self.eos = True
            self.eos_exc = None

    def set_final_exception(self, e: BaseException) -> None:
        if not self.final_result.done():
            self.final_result.set_exception(e)
            self._wake_waiters()
            self.eos = True
            self.eos_exc = None

    async def receive(self) -> Optional[Tuple[SsdpSocketBinding, HostAndPort, SsdpDatagram]]:
        """Returns the next received (socket_binding, src_addr, datagram), or None at end of stream."""
        if self.final_result.done():
            await self.final_result
            return None
        if self.eos and self.queue.empty():
            if self.eos_exc is None:
                self.set_final_result()
            else:
                self.set_final_exception(self.eos_exc)
            await self.final_result
            return None
        try:
            result = await self.queue.get()
            self.queue.task_done()
            if result is None:
                if not self.final_result.done():
                    assert self.eos
                    if self.eos_exc is None:
                        self.set_final_result()
                    else:
                        self.set_final_exception(self.eos_exc)
                await self.final_result
                return None
        except asyncio.CancelledError:
            # e.g., a wait_for() timeout in the caller; the subscriber remains usable
            raise
        except BaseException as e:
            self.set_final_exception(e)
            raise
        return result

    def on_datagram(self, socket_binding: SsdpSocketBinding, addr: HostAndPort, datagram: SsdpDatagram) -> None:
        if not self.eos and not self.final_result.done():
            try:
                self.queue.put_nowait((socket_binding, addr, datagram))
            except asyncio.QueueFull:
                logger.warning(f"Queue full, dropping datagram from {socket_binding} {addr}: {datagram}")

    def on_end_of_stream(self, exc: Optional[Exception]=None) -> None:
        if not self.eos and not self.final_result.done():
            self.eos = True
            self.eos_exc = exc
            self._wake_waiters()

class SsdpSocket(AsyncContextManager['SsdpSocket']):
    """
    An abstract async SSDP socket that can:

      1. Listen on either a multicast or unicast address
      2. Receive and decode SsdpDatagrams from remote nodes and deliver them to any number of async subscribers
      3. Send SsdpDatagrams to a remote multicast or unicast address

      Subclasses must implement add_socket_bindings().
    """

    socket_bindings: List[SsdpSocketBinding]
    """A list of SsdpSocketBinding instances, one for each low-level socket that is in use."""

    final_result: Future[None]
    """A future that is set when the ssdp_socket is stopped."""

    datagram_subscribers: Set[SsdpDatagramSubscriber]
    """A set of subscribers that wish to receive SSDP Datagrams."""

    max_datagram_size: int = MAX_DATAGRAM_SIZE
    """Received datagrams are truncated to this many bytes before they are parsed."""

    def __init__(self):
        self.final_result = asyncio.get_running_loop().create_future()
        self.socket_bindings = []
        self.datagram_subscribers = set()

    def add_subscriber(self, subscriber: SsdpDatagramSubscriber) -> None:
        self.datagram_subscribers.add(subscriber)

    def remove_subscriber(self, subscriber: SsdpDatagramSubscriber) -> None:
        self.datagram_subscribers.discard(subscriber)

    def add_socket_binding(self, socket_binding: SsdpSocketBinding) -> None:
        if socket_binding.index >= 0:
            raise HueSsdpError(f"Attempt to reattach SsdpSocketBinding: {socket_binding}")
        i = len(self.socket_bindings)
        self.socket_bindings.append(socket_binding)
        socket_binding.attach_to_ssdp_socket(self, i)
        logger.debug(f"Added socket binding {i}: {socket_binding}")

    @abstractmethod
    async def add_socket_bindings(self) -> None:
        """Abstract method that creates and binds the sockets that will be used to receive
           and send datagrams, and adds them with self.add_socket_binding().
           Must be overridden by subclasses."""
        raise NotImplementedError()

    async def finish_start(self) -> None:
        """Called after the socket is up and running.  Subclasses can override to do additional
           initialization."""
        pass

    async def start(self) -> None:
        try:
            loop = asyncio.get_running_loop()
            await self.add_socket_bindings()
            if len(self.socket_bindings) == 0:
                raise HueSsdpError("No datagram sockets were added to SsdpSocket")

            for socket_binding in self.socket_bindings:
                untyped_transport, protocol = await loop.create_datagram_endpoint(
                    lambda: _SsdpSocketProtocol(socket_binding),
                    sock=socket_binding.sock
                  )
                transport: asyncio.DatagramTransport = untyped_transport # type: ignore[assignment]
                assert isinstance(protocol, _SsdpSocketProtocol)
                logger.debug(f"Created datagram endpoint for {socket_binding}. transport={transport}, protocol={protocol}")
                socket_binding.protocol = protocol
                socket_binding.transport = transport

            await self.finish_start()

        except BaseException as e:
            self.set_final_exception(e)
            try:
                await self.wait_for_done()
            except BaseException:
                pass
            raise

    async def stop(self) -> None:
        """Stops the SsdpSocket."""
        self.set_final_result()

    async def wait_for_dependents_done(self) -> None:
        """Called after final_result has been awaited.  Subclasses can override to do additional
           cleanup."""
        pass

    async def wait_for_done(self) -> None:
        try:
            await self.final_result
        finally:
            await self.wait_for_dependents_done()

    async def stop_and_wait(self) -> None:
        await self.stop()
        await self.wait_for_done()

    def connection_made(self, socket_binding: SsdpSocketBinding) -> None:
        """Called when a connection is made."""
        logger.debug(f"Connection made: {socket_binding}")

    def datagram_received(self, socket_binding: SsdpSocketBinding, addr: HostAndPort, data: bytes):
        """Called when some datagram is received. Datagrams that cannot be parsed are dropped."""
        if len(data) > self.max_datagram_size:
            logger.debug(f"Truncating {len(data)}-byte datagram from {addr} to {self.max_datagram_size} bytes")
            data = data[:self.max_datagram_size]
        try:
            datagram = SsdpDatagram(raw_data=data)
        except Exception as e:
            logger.debug(f"Error parsing datagram from {addr}, raw=[{data!r}]: {e}")
            return
        logger.debug(f"Received datagram from {socket_binding} {addr}: {datagram}")
        for subscriber in list(self.datagram_subscribers):
            try:
                subscriber.on_datagram(socket_binding, addr, datagram)
            except Exception as e:
                logger.warning(f"Subscriber raised exception processing datagram {datagram}: {e}")

    def error_received(self, socket_binding: SsdpSocketBinding, exc: Exception) -> None:
        """Called when a send or receive operation raises an OSError.

        On a UDP socket these are transient (e.g., ICMP port unreachable from a previous reply),
        so they are logged and reception continues.
        """
        logger.info(f"Error received from transport {socket_binding}: {exc}")

    def connection_lost(self, socket_binding: SsdpSocketBinding, exc: Optional[Exception]) -> None:
        """Called when the connection is lost or closed."""
        logger.debug(f"Connection to transport lost on {socket_binding}, exc={exc}")
        for subscriber in list(self.datagram_subscribers):
            try:
                subscriber.on_end_of_stream(exc)
            except Exception as e:
                logger.warning(f"Subscriber raised exception processing transport connection loss: {e}")
        if exc is None:
            self.set_final_result()
        else:
            self.set_final_exception(exc)

    def _close_all_transports(self) -> None:
        for socket_binding in self.socket_bindings:
            if not socket_binding.transport is None:
                try:
                    socket_binding.transport.close()
                except Exception as e:
                    logger.error(f"Error closing transport on {socket_binding}: {e}")
                socket_binding.transport = None

    def _close_all_socks(self) -> None:
        for socket_binding in self.socket_bindings:
            if not socket_binding.sock is None:
                try:
                    socket_binding.sock.close()
                    socket_binding.sock = None
                except Exception as e:
                    logger.error(f"Error closing socket on {socket_binding}: {e}")

    def _end_subscribers(self) -> None:
        for subscriber in list(self.datagram_subscribers):
            subscriber.on_end_of_stream(None)

    def set_final_exception(self, exc: BaseException) -> None:
        assert not exc is None
        if not self.final_result.done():
            logger.debug(f"SsdpSocket: Setting final exception: {exc}")
            self.final_result.set_exception(exc)
            self._end_subscribers()
            self._close_all_transports()
            self._close_all_socks()

    def set_final_result(self) -> None:
        if not self.final_result.done():
            logger.debug(f"SsdpSocket: Setting final result to success")
            self.final_result.set_result(None)
            self._end_subscribers()
            self._close_all_transports()
            self._close_all_socks()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        if exc is None:
            self.set_final_result()
        else:
            self.set_final_exception(exc)
        try:
            # ensure that final_result has been awaited
            await self.wait_for_done()
        except Exception:
            pass
        return False
