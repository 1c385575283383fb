# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package tplink_smartplug_protocol implements the local-network UDP protocol of TP-Link HS1xx smart plugs.

Every datagram exchanged with a plug is a JSON command or reply obfuscated with a
simple autokey XOR cipher (seed key 0xAB). Commands are sent to UDP port 9999 of
a plug; discovery broadcasts a "get_sysinfo" query to 255.255.255.255:9999 and
collects the replies that arrive on a local port within a time window.

The cipher is an obfuscation scheme only; it provides no confidentiality or
authentication.
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict, HostAndPort

from .exceptions import (
    SmartPlugError,
    SmartPlugConnectionError,
    SmartPlugTransportError,
    SmartPlugTimeoutError,
    MalformedReplyError,
    SmartPlugDeviceError,
  )

from .cipher import encrypt, decrypt, decrypt_str
from .transport import exec_command, async_exec_command
from .discovery import SmartPlugDiscovery, DiscoveryResponse, discover, async_discover
from .commands import Action, TimeOption, Days
from .responses import (
    parse_response,
    SysInfo,
    CloudInfo,
    DeviceTime,
    EmeterRealtime,
    MonthlyUsage,
    DailyUsage,
    WifiNetwork,
    ScheduleRule,
    NextAction,
  )
from .device import SmartPlug, DeviceModel, DiscoveredDevice, discover_devices, async_discover_devices
from .constants import (
    SMARTPLUG_PORT,
    DISCOVERY_BROADCAST_ADDRESS,
    DISCOVERY_LISTEN_PORT,
    DEFAULT_TIMEOUT,
    DEFAULT_DISCOVERY_WAIT_TIME,
  )

__all__ = [
    '__version__',
    'Jsonable', 'JsonableDict', 'HostAndPort',
    'SmartPlugError', 'SmartPlugConnectionError', 'SmartPlugTransportError', 'SmartPlugTimeoutError',
    'MalformedReplyError', 'SmartPlugDeviceError',
    'encrypt', 'decrypt', 'decrypt_str',
    'exec_command', 'async_exec_command',
    'SmartPlugDiscovery', 'DiscoveryResponse', 'discover', 'async_discover',
    'Action', 'TimeOption', 'Days',
    'parse_response', 'SysInfo', 'CloudInfo', 'DeviceTime', 'EmeterRealtime', 'MonthlyUsage',
    'DailyUsage', 'WifiNetwork', 'ScheduleRule', 'NextAction',
    'SmartPlug', 'DeviceModel', 'DiscoveredDevice', 'discover_devices', 'async_discover_devices',
    'SMARTPLUG_PORT', 'DISCOVERY_BROADCAST_ADDRESS', 'DISCOVERY_LISTEN_PORT',
    'DEFAULT_TIMEOUT', 'DEFAULT_DISCOVERY_WAIT_TIME',
]
