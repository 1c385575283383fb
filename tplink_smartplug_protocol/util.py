#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Simple utility functions used by this package
"""

from __future__ import annotations

import asyncio
import socket
from ipaddress import IPv4Address

import netifaces

from .internal_types import *
from .pkg_logging import logger

def run_blocking(coro: Awaitable[Any]) -> Any:
    """Runs a coroutine to completion on a private event loop and returns its result.

    Each call creates and closes its own loop, so independent calls may be made
    concurrently from different threads. Must not be called from a thread that already
    has a running event loop.
    """
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    finally:
        asyncio.set_event_loop(None)
        loop.close()

def create_udp_socket(bind_addr: HostAndPort, broadcast: bool=False) -> socket.socket:
    """Creates a non-blocking IPv4 UDP socket bound to bind_addr. SO_REUSEADDR is not set, so
    binding a port that another socket holds fails.

    Raises OSError if the socket cannot be created or bound; the socket is closed
    before the error propagates.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        if broadcast:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.setblocking(False)
        sock.bind(bind_addr)
    except BaseException:
        sock.close()
        raise
    return sock

def get_local_broadcast_addresses() -> List[str]:
    """Returns the directed broadcast address of every local IPv4 subnet, without duplicates.
       Subnets on the default gateway interface come first, then the rest in interface order.
       Loopback interfaces and interfaces without a broadcast address are skipped."""
    result_with_priority: List[Tuple[int, int, str]] = []
    _, default_gateway_ifname = get_default_ip_gateway()
    for ifname in netifaces.interfaces():
        ifinfo = netifaces.ifaddresses(ifname)
        for addrinfo in ifinfo.get(netifaces.AF_INET, []):
            broadcast = addrinfo.get('broadcast')
            if broadcast is None or IPv4Address(addrinfo['addr']).is_loopback:
                continue
            priority = 0 if ifname == default_gateway_ifname else 1
            logger.debug(f"Found broadcast address {broadcast} on interface {ifname}")
            result_with_priority.append((priority, len(result_with_priority), broadcast))
    result: List[str] = []
    for _, _, broadcast in sorted(result_with_priority):
        if broadcast not in result:
            result.append(broadcast)
    return result

def get_default_ip_gateway() -> Tuple[Optional[str], Optional[str]]:
    """Returns the (gateway_ip_address: str, gateway_interface_name: str) for the default IPv4 gateway, if any.
       returns (None, None) if there is no default gateway."""
    gws = netifaces.gateways()
    if "default" in gws:
        default_gateway_infos = gws["default"]
        if netifaces.AF_INET in default_gateway_infos:
            gw_ip, gw_interface_name = default_gateway_infos[netifaces.AF_INET][:2]
            return (gw_ip, gw_interface_name)
    return (None, None)
