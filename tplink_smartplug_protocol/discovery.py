#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SmartPlugDiscovery -- A broadcast discovery client that can:

  1. Bind a local UDP port (typically 0.0.0.0:8755) to capture replies
  2. Send one encrypted "get_sysinfo" query to the subnet broadcast address (typically 255.255.255.255:9999)
  3. Decrypt and collect every reply received within a configurable time window

Expiry of the window is the normal end of a discovery, not an error; an empty
subnet yields an empty result.
"""

from __future__ import annotations

import asyncio
from asyncio import Future
import time
import datetime

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    SMARTPLUG_PORT,
    DISCOVERY_BROADCAST_ADDRESS,
    DISCOVERY_LISTEN_ADDRESS,
    DISCOVERY_LISTEN_PORT,
    DEFAULT_DISCOVERY_WAIT_TIME,
    MAX_DISCOVERY_REPLY_SIZE,
  )
from .exceptions import SmartPlugError, SmartPlugConnectionError, SmartPlugTransportError
from .cipher import encrypt, decrypt_str
from .commands import GET_SYSINFO
from .util import create_udp_socket, run_blocking

MAX_QUEUE_SIZE = 1000

class DiscoveryResponse:
    src_addr: HostAndPort
    """The (host, port) from which the reply arrived. Not validated against the payload's identity."""

    payload: str
    """The decrypted plaintext reply"""

    monotonic_time: float
    """The local time (in seconds) since an arbitrary point in the past at which
       the reply was received, as returned by time.monotonic()."""

    utc_time: datetime.datetime
    """The UTC time at which the reply was received."""

    def __init__(self, src_addr: HostAndPort, payload: str) -> None:
        self.src_addr = src_addr
        self.payload = payload
        self.monotonic_time = time.monotonic()
        self.utc_time = datetime.datetime.now(datetime.timezone.utc)

    def __str__(self) -> str:
        return f"DiscoveryResponse({self.src_addr[0]}:{self.src_addr[1]}, {self.payload!r})"

    def __repr__(self) -> str:
        return str(self)

class _DiscoveryProtocol(asyncio.DatagramProtocol):
    """An adapter between the asyncio transport and SmartPlugDiscovery. Received datagrams
       are queued in arrival order; a transport error queues an end-of-stream marker."""

    queue: asyncio.Queue[Optional[Tuple[HostAndPort, bytes]]]
    error: Optional[Exception] = None
    closed: Future[None]

    def __init__(self, closed: Future[None], max_queue_size: int=MAX_QUEUE_SIZE):
        self.queue = asyncio.Queue(max_queue_size)
        self.closed = closed

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        """Called when some datagram is received."""
        try:
            self.queue.put_nowait(((addr[0], addr[1]), data))
        except asyncio.QueueFull:
            logger.warning(f"Queue full, dropping discovery reply from {addr}")

    def error_received(self, exc: Exception):
        """Called when a send or receive operation raises an OSError.

        (Other than BlockingIOError or InterruptedError.)
        """
        logger.info(f"Error received from discovery transport: {exc}")
        if self.error is None:
            self.error = exc
            try:
                # wake up any waiting tasks
                self.queue.put_nowait(None)
            except asyncio.QueueFull:
                # queue is full so waiters will wake up soon
                pass

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Called when the connection is lost or closed."""
        logger.debug(f"Discovery transport closed, exc={exc}")
        if not self.closed.done():
            self.closed.set_result(None)

class SmartPlugDiscovery(AsyncContextManager['SmartPlugDiscovery'], AsyncIterable[DiscoveryResponse]):
    """
    A broadcast discovery client. Entering the context binds the listening socket; search() sends the
    query and arms the deadline; iterating yields replies until the deadline expires.

    Usage:
        async with SmartPlugDiscovery(response_wait_time=2.0) as discovery:
            await discovery.search()
            async for response in discovery:
                print(response.src_addr, response.payload)
    """

    response_wait_time: float
    """The length (in seconds) of the discovery window, measured from the moment the query is sent."""

    broadcast_addresses: List[str]
    """The addresses the query is sent to. Defaults to the network-wide broadcast address."""

    port: int
    """The UDP port the query is sent to."""

    bind_address: str
    """The local address the listening socket binds to."""

    bind_port: int
    """The local port the listening socket binds to."""

    max_responses: int
    """If > 0, iteration stops after this many replies."""

    partial_results_on_error: bool
    """If True, a transport error during the window ends iteration quietly with what was collected.
       If False (the default), it raises SmartPlugTransportError."""

    max_reply_size: int
    """Replies longer than this many bytes are dropped as truncated."""

    end_time: float = 0.0
    _transport: Optional[asyncio.DatagramTransport] = None
    _protocol: Optional[_DiscoveryProtocol] = None
    _closed: Optional[Future[None]] = None

    def __init__(
            self,
            response_wait_time: float=DEFAULT_DISCOVERY_WAIT_TIME,
            broadcast_addresses: Optional[Iterable[str]]=None,
            port: int=SMARTPLUG_PORT,
            bind_address: str=DISCOVERY_LISTEN_ADDRESS,
            bind_port: int=DISCOVERY_LISTEN_PORT,
            max_responses: int=0,
            partial_results_on_error: bool=False,
            max_reply_size: int=MAX_DISCOVERY_REPLY_SIZE,
          ) -> None:
        self.response_wait_time = response_wait_time
        if broadcast_addresses is None:
            broadcast_addresses = [ DISCOVERY_BROADCAST_ADDRESS ]
        self.broadcast_addresses = list(broadcast_addresses)
        if len(self.broadcast_addresses) == 0:
            raise SmartPlugError("At least one broadcast address is required for discovery")
        self.port = port
        self.bind_address = bind_address
        self.bind_port = bind_port
        self.max_responses = max_responses
        self.partial_results_on_error = partial_results_on_error
        self.max_reply_size = max_reply_size

    @property
    def local_addr(self) -> HostAndPort:
        """The (address, port) the listening socket is actually bound to."""
        if self._transport is None:
            raise SmartPlugError("SmartPlugDiscovery is not started")
        sockname = self._transport.get_extra_info('sockname')
        return (sockname[0], sockname[1])

    async def start(self) -> None:
        """Binds the listening socket."""
        if self._transport is not None:
            raise SmartPlugError("SmartPlugDiscovery is already started")
        loop = asyncio.get_running_loop()
        bind_addr: HostAndPort = (self.bind_address, self.bind_port)
        try:
            sock = create_udp_socket(bind_addr, broadcast=True)
        except OSError as e:
            raise SmartPlugConnectionError(f"Cannot bind discovery socket to {bind_addr[0]}:{bind_addr[1]}: {e}") from e
        closed: Future[None] = loop.create_future()
        try:
            untyped_transport, protocol = await loop.create_datagram_endpoint(
                lambda: _DiscoveryProtocol(closed),
                sock=sock
              )
        except OSError as e:
            sock.close()
            raise SmartPlugConnectionError(f"Cannot open discovery endpoint on {bind_addr[0]}:{bind_addr[1]}: {e}") from e
        assert isinstance(protocol, _DiscoveryProtocol)
        # asyncio datagram transports do not inherit from asyncio.DatagramTransport
        self._transport = untyped_transport # type: ignore[assignment]
        self._protocol = protocol
        self._closed = closed
        logger.debug(f"Discovery socket bound to {bind_addr}")

    async def stop(self) -> None:
        """Closes the listening socket and waits for the close to complete."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            assert self._closed is not None
            await self._closed

    async def search(self) -> None:
        """Sends the discovery query once to each broadcast address and arms the deadline."""
        if self._transport is None or self._protocol is None:
            raise SmartPlugError("SmartPlugDiscovery is not started")
        data = encrypt(GET_SYSINFO)
        for broadcast_address in self.broadcast_addresses:
            dest: HostAndPort = (broadcast_address, self.port)
            logger.debug(f"Sending discovery query to {dest}")
            try:
                self._transport.sendto(data, dest)
            except OSError as e:
                raise SmartPlugTransportError(f"Sending discovery query to {dest[0]}:{dest[1]} failed: {e}") from e
            # asyncio reports immediate send failures through error_received()
            if self._protocol.error is not None:
                raise SmartPlugTransportError(
                    f"Sending discovery query to {dest[0]}:{dest[1]} failed: {self._protocol.error}"
                  ) from self._protocol.error
        self.end_time = time.monotonic() + self.response_wait_time

    async def iter_responses(self) -> AsyncIterator[DiscoveryResponse]:
        """Yields decrypted replies in local arrival order until the deadline expires."""
        if self._protocol is None:
            raise SmartPlugError("SmartPlugDiscovery is not started")
        queue = self._protocol.queue
        n = 0
        while True:
            if self.max_responses > 0 and n >= self.max_responses:
                break
            remaining_time = self.end_time - time.monotonic()
            if remaining_time <= 0.0:
                break
            try:
                item = await asyncio.wait_for(queue.get(), remaining_time)
            except asyncio.TimeoutError:
                break
            if item is None:
                exc = self._protocol.error
                if self.partial_results_on_error:
                    logger.warning(f"Discovery ended early after {n} replies: {exc}")
                    break
                raise SmartPlugTransportError(f"Discovery receive failed: {exc}") from exc
            src_addr, data = item
            if len(data) > self.max_reply_size:
                logger.warning(f"Dropping truncated discovery reply from {src_addr}: {len(data)} bytes")
                continue
            response = DiscoveryResponse(src_addr, decrypt_str(data))
            logger.debug(f"Received discovery reply: {response}")
            n += 1
            yield response

    def __aiter__(self) -> AsyncIterator[DiscoveryResponse]:
        return self.iter_responses()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        await self.stop()
        return False

async def async_discover(
        response_wait_time: float=DEFAULT_DISCOVERY_WAIT_TIME,
        broadcast_addresses: Optional[Iterable[str]]=None,
        port: int=SMARTPLUG_PORT,
        bind_address: str=DISCOVERY_LISTEN_ADDRESS,
        bind_port: int=DISCOVERY_LISTEN_PORT,
        max_responses: int=0,
        partial_results_on_error: bool=False,
      ) -> List[DiscoveryResponse]:
    """A simple discovery that sends the query, waits out the whole window (or until max_responses
       replies have arrived) and returns the replies in arrival order. Duplicate replies are kept.

       Early out/incremental results can be obtained by using SmartPlugDiscovery directly.
    """
    results: List[DiscoveryResponse] = []
    async with SmartPlugDiscovery(
            response_wait_time=response_wait_time,
            broadcast_addresses=broadcast_addresses,
            port=port,
            bind_address=bind_address,
            bind_port=bind_port,
            max_responses=max_responses,
            partial_results_on_error=partial_results_on_error,
          ) as discovery:
        await discovery.search()
        async for response in discovery:
            results.append(response)
    return results

def discover(
        response_wait_time: float=DEFAULT_DISCOVERY_WAIT_TIME,
        broadcast_addresses: Optional[Iterable[str]]=None,
        port: int=SMARTPLUG_PORT,
        bind_address: str=DISCOVERY_LISTEN_ADDRESS,
        bind_port: int=DISCOVERY_LISTEN_PORT,
        max_responses: int=0,
        partial_results_on_error: bool=False,
      ) -> List[DiscoveryResponse]:
    """Blocking version of async_discover()."""
    result = run_blocking(async_discover(
        response_wait_time=response_wait_time,
        broadcast_addresses=broadcast_addresses,
        port=port,
        bind_address=bind_address,
        bind_port=bind_port,
        max_responses=max_responses,
        partial_results_on_error=partial_results_on_error,
      ))
    assert isinstance(result, list)
    return result
