#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import sys
import argparse
import json
import dataclasses
import asyncio
import logging

from tplink_smartplug_protocol.internal_types import *

from tplink_smartplug_protocol import (
    __version__ as pkg_version,
    SmartPlug,
    SmartPlugDiscovery,
    DeviceModel,
    decrypt_str,
    encrypt,
    DEFAULT_TIMEOUT,
    DEFAULT_DISCOVERY_WAIT_TIME,
    DISCOVERY_LISTEN_PORT,
    SMARTPLUG_PORT,
  )
from tplink_smartplug_protocol.constants import DISCOVERY_LISTEN_ADDRESS
from tplink_smartplug_protocol.device import decode_discovery_responses
from tplink_smartplug_protocol.util import get_local_broadcast_addresses

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

def _to_jsonable(obj: Any) -> Jsonable:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        result = dataclasses.asdict(obj)
        result.pop('raw', None)
        return result
    if isinstance(obj, list):
        return [ _to_jsonable(x) for x in obj ]
    return obj

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    def _print_json(self, data: Any) -> None:
        print(json.dumps(_to_jsonable(data), indent=2, sort_keys=True))
        sys.stdout.flush()

    def _plug(self) -> SmartPlug:
        model: Optional[DeviceModel] = None
        if self._args.model is not None:
            model = DeviceModel.from_model_string(self._args.model)
        return SmartPlug(self._args.host, model=model, timeout=self._args.timeout, port=self._args.port)

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    async def cmd_scan(self) -> int:
        response_wait_time: float = self._args.wait_time
        broadcast_addresses: Optional[List[str]] = self._args.broadcast_addresses
        if self._args.interface_broadcasts:
            broadcast_addresses = (broadcast_addresses or []) + get_local_broadcast_addresses()
        if broadcast_addresses is not None and len(broadcast_addresses) == 0:
            broadcast_addresses = None
        async with SmartPlugDiscovery(
                response_wait_time=response_wait_time,
                broadcast_addresses=broadcast_addresses,
                port=self._args.port,
                bind_address=self._args.bind_address,
                bind_port=self._args.bind_port,
                max_responses=self._args.max_responses,
                partial_results_on_error=self._args.partial,
              ) as discovery:
            await discovery.search()
            async for response in discovery:
                if self._args.raw:
                    summary: JsonableDict = {
                        "src_addr": f"{response.src_addr[0]}:{response.src_addr[1]}",
                        "payload": response.payload,
                        "utc_time": response.utc_time.isoformat(),
                    }
                    self._print_json(summary)
                    continue
                for device in decode_discovery_responses([response]):
                    self._print_json({
                        "ip_address": device.ip_address,
                        "model": device.model.value,
                        "alias": device.sysinfo.alias,
                        "device_id": device.sysinfo.device_id,
                        "mac": device.sysinfo.mac,
                        "is_on": device.sysinfo.is_on,
                    })
        return 0

    async def cmd_exec(self) -> int:
        reply = await self._plug().exec(self._args.command)
        print(reply)
        return 0

    async def cmd_info(self) -> int:
        self._print_json(await self._plug().get_sysinfo())
        return 0

    async def cmd_on(self) -> int:
        await self._plug().turn_on()
        return 0

    async def cmd_off(self) -> int:
        await self._plug().turn_off()
        return 0

    async def cmd_led(self) -> int:
        await self._plug().set_led(self._args.state == 'on')
        return 0

    async def cmd_alias(self) -> int:
        await self._plug().set_alias(self._args.alias)
        return 0

    async def cmd_reboot(self) -> int:
        await self._plug().reboot()
        return 0

    async def cmd_emeter(self) -> int:
        plug = self._plug()
        if self._args.year is None:
            self._print_json(await plug.get_emeter_realtime())
        elif self._args.month is None:
            self._print_json(await plug.get_monthly_stats(self._args.year))
        else:
            self._print_json(await plug.get_daily_stats(self._args.year, self._args.month))
        return 0

    async def cmd_encrypt(self) -> int:
        print(encrypt(self._args.text).hex())
        return 0

    async def cmd_decrypt(self) -> int:
        print(decrypt_str(bytes.fromhex(self._args.hex)))
        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    async def arun(self) -> int:
        """Run the tplink-smartplug command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Discover and control TP-Link HS1xx smart plugs on the local network.")


        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')

        def add_plug_parser(name: str, description: str) -> argparse.ArgumentParser:
            p = subparsers.add_parser(name, description=description)
            p.add_argument('host', help='The IP address or host name of the plug')
            p.add_argument('--timeout', type=float, default=DEFAULT_TIMEOUT,
                           help=f'''Reply deadline in seconds. Default: {DEFAULT_TIMEOUT}''')
            p.add_argument('--port', type=int, default=SMARTPLUG_PORT,
                           help=f'''The UDP port of the plug. Default: {SMARTPLUG_PORT}''')
            p.add_argument('--model', default=None,
                           help='''The plug model (e.g., HS110). Default: not checked''')
            return p

        # ======================= scan

        parser_scan = subparsers.add_parser('scan', description="Discover smart plugs on the local network")
        parser_scan.add_argument('--wait-time', type=float, default=DEFAULT_DISCOVERY_WAIT_TIME,
                            help=f'''The amount of time to wait for replies, in seconds. Default: {DEFAULT_DISCOVERY_WAIT_TIME}''')
        parser_scan.add_argument('-b', '--broadcast', dest="broadcast_addresses", action='append', default=[],
                            help='''A broadcast address to send the query to. May be repeated. Default: 255.255.255.255''')
        parser_scan.add_argument('--interface-broadcasts', action='store_true', default=False,
                            help='''Also send the query to the broadcast address of every local subnet.''')
        parser_scan.add_argument('--port', type=int, default=SMARTPLUG_PORT,
                            help=f'''The UDP port to send the query to. Default: {SMARTPLUG_PORT}''')
        parser_scan.add_argument('--bind-address', default=DISCOVERY_LISTEN_ADDRESS,
                            help=f'''The local address to receive replies on. Default: {DISCOVERY_LISTEN_ADDRESS}''')
        parser_scan.add_argument('--bind-port', type=int, default=DISCOVERY_LISTEN_PORT,
                            help=f'''The local port to receive replies on. Default: {DISCOVERY_LISTEN_PORT}''')
        parser_scan.add_argument('--max-responses', type=int, default=0,
                            help='The maximum number of replies to return. Default: 0 (no limit)')
        parser_scan.add_argument('--partial', action='store_true', default=False,
                            help='Keep replies received before a network error instead of failing. Default: False')
        parser_scan.add_argument('--raw', action='store_true', default=False,
                            help='Print undecoded plaintext replies. Default: False')
        parser_scan.set_defaults(func=self.cmd_scan)

        # ======================= exec

        parser_exec = add_plug_parser('exec', "Send a raw JSON command to a plug and print the reply")
        parser_exec.add_argument('command', help='The plaintext JSON command')
        parser_exec.set_defaults(func=self.cmd_exec)

        # ======================= info, on, off, reboot

        add_plug_parser('info', "Print plug system information").set_defaults(func=self.cmd_info)
        add_plug_parser('on', "Turn the plug relay on").set_defaults(func=self.cmd_on)
        add_plug_parser('off', "Turn the plug relay off").set_defaults(func=self.cmd_off)
        add_plug_parser('reboot', "Reboot the plug").set_defaults(func=self.cmd_reboot)

        # ======================= led

        parser_led = add_plug_parser('led', "Turn the plug status LED on or off")
        parser_led.add_argument('state', choices=['on', 'off'])
        parser_led.set_defaults(func=self.cmd_led)

        # ======================= alias

        parser_alias = add_plug_parser('alias', "Set the plug's alias")
        parser_alias.add_argument('alias')
        parser_alias.set_defaults(func=self.cmd_alias)

        # ======================= emeter

        parser_emeter = add_plug_parser('emeter', "Print energy meter readings (HS110 only)")
        parser_emeter.add_argument('--year', type=int, default=None,
                            help='''Print monthly statistics for a year instead of realtime readings''')
        parser_emeter.add_argument('--month', type=int, default=None,
                            help='''With --year, print daily statistics for a month''')
        parser_emeter.set_defaults(func=self.cmd_emeter)

        # ======================= encrypt, decrypt

        parser_encrypt = subparsers.add_parser('encrypt', description="Encrypt plaintext and print it as hex")
        parser_encrypt.add_argument('text')
        parser_encrypt.set_defaults(func=self.cmd_encrypt)

        parser_decrypt = subparsers.add_parser('decrypt', description="Decrypt a hex datagram payload")
        parser_decrypt.add_argument('hex')
        parser_decrypt.set_defaults(func=self.cmd_decrypt)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"tplink-smartplug: error: {ex}", file=sys.stderr)
        except BaseException as ex:
            print(f"tplink-smartplug: Unhandled exception: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            rc = loop.run_until_complete(self.arun())
        finally:
            loop.close()
        return rc

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    sys.exit(run())
