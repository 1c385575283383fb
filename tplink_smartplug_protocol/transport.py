#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
A single request/response exchange with one smart plug:

  1. Encrypt a plaintext command and send it as one UDP datagram to the plug (port 9999)
  2. Wait, bounded by a deadline, for one datagram back from that plug
  3. Decrypt the reply and return it as plaintext

No retries are made; at most one datagram is sent and at most one is awaited.
"""

from __future__ import annotations

import asyncio
from asyncio import Future
import socket

from .internal_types import *
from .pkg_logging import logger
from .constants import SMARTPLUG_PORT, DEFAULT_TIMEOUT, MAX_REPLY_SIZE
from .exceptions import SmartPlugConnectionError, SmartPlugTransportError, SmartPlugTimeoutError
from .cipher import encrypt, decrypt_str
from .util import create_udp_socket, run_blocking

class _ExchangeProtocol(asyncio.DatagramProtocol):
    """An adapter between the asyncio transport and a single exchange. The first datagram
       from the addressed plug resolves the reply future."""

    remote_addr: HostAndPort
    max_reply_size: int
    reply: Future[bytes]
    closed: Future[None]

    def __init__(self, remote_addr: HostAndPort, max_reply_size: int, reply: Future[bytes], closed: Future[None]):
        self.remote_addr = remote_addr
        self.max_reply_size = max_reply_size
        self.reply = reply
        self.closed = closed

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        """Called when some datagram is received."""
        src_addr: HostAndPort = (addr[0], addr[1])
        if src_addr != self.remote_addr:
            logger.debug(f"Ignoring datagram from unexpected sender {src_addr} (expected {self.remote_addr})")
            return
        if self.reply.done():
            logger.debug(f"Ignoring extra datagram from {src_addr}")
            return
        if len(data) > self.max_reply_size:
            self.reply.set_exception(SmartPlugTransportError(
                f"Reply from {src_addr} truncated: {len(data)} bytes exceeds limit of {self.max_reply_size}"))
        else:
            self.reply.set_result(data)

    def error_received(self, exc: Exception):
        """Called when a send or receive operation raises an OSError."""
        logger.debug(f"Transport error during exchange with {self.remote_addr}: {exc}")
        if not self.reply.done():
            err = SmartPlugTransportError(f"Exchange with {self.remote_addr[0]}:{self.remote_addr[1]} failed: {exc}")
            err.__cause__ = exc
            self.reply.set_exception(err)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Called when the transport is closed."""
        if not self.reply.done():
            self.reply.set_exception(SmartPlugTransportError(f"Socket closed before a reply arrived: {exc}"))
        if not self.closed.done():
            self.closed.set_result(None)

async def _send_and_receive(
        transport: asyncio.DatagramTransport,
        data: bytes,
        remote_addr: HostAndPort,
        reply: Future[bytes]
      ) -> bytes:
    try:
        transport.sendto(data, remote_addr)
    except OSError as e:
        raise SmartPlugTransportError(f"Sending to {remote_addr[0]}:{remote_addr[1]} failed: {e}") from e
    return await reply

async def _resolve(host: str, port: int) -> HostAndPort:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, port, family=socket.AF_INET, type=socket.SOCK_DGRAM)
    except OSError as e:
        raise SmartPlugTransportError(f"Cannot resolve smart plug address {host}:{port}: {e}") from e
    if len(infos) == 0:
        raise SmartPlugTransportError(f"Cannot resolve smart plug address {host}:{port}")
    sockaddr = infos[0][4]
    return (str(sockaddr[0]), int(sockaddr[1]))

async def async_exec_command(
        host: str,
        command: str,
        timeout: float=DEFAULT_TIMEOUT,
        port: int=SMARTPLUG_PORT,
        local_addr: Optional[HostAndPort]=None,
        max_reply_size: int=MAX_REPLY_SIZE,
      ) -> str:
    """Sends one plaintext command to the smart plug at host:port and returns its plaintext reply.

    Parameters:
        host:            The IP address or host name of the plug.
        command:         The plaintext (JSON) command string.
        timeout:         Deadline in seconds covering name resolution, the send and the receive.
        port:            The UDP port of the plug. Defaults to 9999.
        local_addr:      The local (address, port) to bind to. Defaults to an ephemeral port on all interfaces.
        max_reply_size:  Replies longer than this many bytes are treated as truncated.

    Raises:
        SmartPlugConnectionError:  The local socket could not be created or bound.
        SmartPlugTimeoutError:     Name resolution or the reply did not complete before the deadline.
        SmartPlugTransportError:   The address could not be resolved, or the send or receive failed.
    """
    loop = asyncio.get_running_loop()
    end_time = loop.time() + timeout
    try:
        remote_addr = await asyncio.wait_for(_resolve(host, port), timeout)
    except asyncio.TimeoutError as e:
        raise SmartPlugTimeoutError(f"Resolving {host}:{port} did not complete within {timeout} seconds") from e
    data = encrypt(command)

    bind_addr: HostAndPort = ('0.0.0.0', 0) if local_addr is None else local_addr
    try:
        sock = create_udp_socket(bind_addr)
    except OSError as e:
        raise SmartPlugConnectionError(f"Cannot bind UDP socket to {bind_addr[0]}:{bind_addr[1]}: {e}") from e

    reply: Future[bytes] = loop.create_future()
    closed: Future[None] = loop.create_future()
    try:
        untyped_transport, _ = await loop.create_datagram_endpoint(
            lambda: _ExchangeProtocol(remote_addr, max_reply_size, reply, closed),
            sock=sock
          )
    except OSError as e:
        sock.close()
        raise SmartPlugConnectionError(f"Cannot open datagram endpoint on {bind_addr[0]}:{bind_addr[1]}: {e}") from e
    # asyncio datagram transports do not inherit from asyncio.DatagramTransport
    transport: asyncio.DatagramTransport = untyped_transport # type: ignore[assignment]

    try:
        logger.debug(f"Sending command to {remote_addr}: {command}")
        try:
            raw_reply = await asyncio.wait_for(
                _send_and_receive(transport, data, remote_addr, reply),
                max(end_time - loop.time(), 0.0)
              )
        except asyncio.TimeoutError as e:
            raise SmartPlugTimeoutError(f"No reply from {host}:{port} within {timeout} seconds") from e
    finally:
        transport.close()
        await closed

    result = decrypt_str(raw_reply)
    logger.debug(f"Received reply from {remote_addr}: {result}")
    return result

def exec_command(
        host: str,
        command: str,
        timeout: float=DEFAULT_TIMEOUT,
        port: int=SMARTPLUG_PORT,
        local_addr: Optional[HostAndPort]=None,
        max_reply_size: int=MAX_REPLY_SIZE,
      ) -> str:
    """Blocking version of async_exec_command(). Runs the exchange on a private event loop,
       so it may be called from any thread that is not already running an event loop."""
    result = run_blocking(async_exec_command(
        host,
        command,
        timeout=timeout,
        port=port,
        local_addr=local_addr,
        max_reply_size=max_reply_size,
      ))
    assert isinstance(result, str)
    return result
