#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Fixtures that simulate smart plugs with real loopback UDP sockets.
"""

from __future__ import annotations

import socket
import threading

import pytest

from tplink_smartplug_protocol.internal_types import *
from tplink_smartplug_protocol.cipher import encrypt, decrypt_str

PlugHandler = Callable[[str], Union[None, str, List[str]]]
"""Maps a received plaintext command to no reply, one reply, or several replies."""

class FakePlug:
    """A thread that answers encrypted commands on a loopback UDP socket."""

    sock: socket.socket
    handler: PlugHandler
    received: List[Tuple[HostAndPort, str]]
    reply_sock: Optional[socket.socket] = None

    def __init__(self, handler: PlugHandler, host: str='127.0.0.1', port: int=0, reply_from_other_socket: bool=False):
        self.handler = handler
        self.received = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind((host, port))
        self.sock.settimeout(0.05)
        if reply_from_other_socket:
            self.reply_sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            self.reply_sock.bind((host, 0))
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def addr(self) -> HostAndPort:
        host, port = self.sock.getsockname()
        return (host, port)

    def start(self) -> FakePlug:
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2.0)
        self.sock.close()
        if self.reply_sock is not None:
            self.reply_sock.close()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                data, addr = self.sock.recvfrom(65535)
            except socket.timeout:
                continue
            except OSError:
                break
            command = decrypt_str(data)
            self.received.append(((addr[0], addr[1]), command))
            replies = self.handler(command)
            if replies is None:
                continue
            if isinstance(replies, str):
                replies = [ replies ]
            out_sock = self.sock if self.reply_sock is None else self.reply_sock
            for reply in replies:
                out_sock.sendto(encrypt(reply), addr)

@pytest.fixture
def fake_plug_factory() -> Iterator[Callable[..., FakePlug]]:
    plugs: List[FakePlug] = []

    def factory(handler: PlugHandler, **kwargs: Any) -> FakePlug:
        plug = FakePlug(handler, **kwargs).start()
        plugs.append(plug)
        return plug

    yield factory
    for plug in plugs:
        plug.stop()

def get_free_udp_port(host: str='127.0.0.1') -> int:
    """Returns a UDP port on host that was free a moment ago."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.bind((host, 0))
        return sock.getsockname()[1]
    finally:
        sock.close()

def can_rebind_udp_port(host: str, port: int) -> bool:
    """True if a fresh socket (without SO_REUSEADDR) can bind host:port."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.bind((host, port))
        return True
    except OSError:
        return False
    finally:
        sock.close()

SYSINFO_HS110 = {
    "sw_ver": "1.2.5 Build 171213 Rel.101523",
    "hw_ver": "1.0",
    "type": "IOT.SMARTPLUGSWITCH",
    "model": "HS110(EU)",
    "mac": "50:C7:BF:01:F8:CD",
    "deviceId": "8006588E50AD389303FF31AB6302907A17442F16",
    "hwId": "45E29DA8382494D2E82688B52A0B2EB5",
    "fwId": "00000000000000000000000000000000",
    "oemId": "3D341ECE302C0642C99E31CE2430544B",
    "alias": "Kitchen",
    "icon_hash": "",
    "relay_state": 1,
    "on_time": 3922,
    "active_mode": "schedule",
    "feature": "TIM:ENE",
    "updating": 0,
    "rssi": -71,
    "led_off": 0,
    "latitude": 51.476938,
    "longitude": 7.216309,
    "err_code": 0,
}

SYSINFO_HS105 = dict(SYSINFO_HS110, model="HS105(US)", alias="Lamp", feature="TIM",
                     deviceId="80062952E2F3D9461CFB91FF21B7868F194F627A", mac="50:C7:BF:02:AA:01", relay_state=0)
