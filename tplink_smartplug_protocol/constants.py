# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

SMARTPLUG_PORT = 9999
"""The UDP port on which smart plugs listen for commands and discovery queries."""

DISCOVERY_BROADCAST_ADDRESS = "255.255.255.255"
"""The network-wide broadcast address to which discovery queries are sent."""

DISCOVERY_LISTEN_ADDRESS = "0.0.0.0"
"""The local address that the discovery socket binds to by default."""

DISCOVERY_LISTEN_PORT = 8755
"""The fixed local port that the discovery socket binds to in order to capture replies."""

CIPHER_SEED_KEY = 0xAB
"""The initial key byte of the autokey XOR cipher."""

MAX_REPLY_SIZE = 1500
"""The largest single-exchange reply (in bytes) that is accepted without being treated as truncated."""

MAX_DISCOVERY_REPLY_SIZE = 2048
"""The largest discovery reply (in bytes) that is accepted without being treated as truncated."""

DEFAULT_TIMEOUT = 3.0
"""The default deadline (in seconds) for a single command exchange."""

DEFAULT_DISCOVERY_WAIT_TIME = 4.0
"""The default amount of time (in seconds) to wait for discovery replies to come in."""
