#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SmartPlug -- convenience wrapper over the single-exchange transport for one plug.

All plug models share one implementation. Model-specific behavior is expressed as
capabilities of DeviceModel (e.g., only the HS110 has an energy meter) rather than
through subclassing.
"""

from __future__ import annotations

import datetime
from enum import Enum

from .internal_types import *
from .pkg_logging import logger
from .constants import SMARTPLUG_PORT, DEFAULT_TIMEOUT, DEFAULT_DISCOVERY_WAIT_TIME
from .exceptions import SmartPlugError, MalformedReplyError
from . import commands
from .commands import Action, Days, TimeOption
from .transport import async_exec_command
from .discovery import DiscoveryResponse, async_discover
from .responses import (
    parse_response,
    get_section,
    get_result,
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
from .util import run_blocking

class DeviceModel(Enum):
    """Supported plug models."""
    HS100 = "HS100"
    HS105 = "HS105"
    HS110 = "HS110"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_model_string(cls, model: str) -> DeviceModel:
        """Maps a sysinfo "model" string such as "HS110(EU)" to a DeviceModel."""
        base = model.split('(', 1)[0].strip().upper()
        try:
            return cls(base)
        except ValueError:
            return cls.UNKNOWN

    @property
    def has_emeter(self) -> bool:
        return self == DeviceModel.HS110

class SmartPlug:
    """A smart plug at a known address.

    Every method performs one exchange with the plug and raises the transport errors of
    async_exec_command(), MalformedReplyError if the reply cannot be decoded, and
    SmartPlugDeviceError if the plug reports a failure.
    """

    host: str
    port: int
    timeout: float
    model: Optional[DeviceModel]
    """The plug model, if known. Filled in by get_sysinfo()."""

    def __init__(
            self,
            host: str,
            model: Optional[DeviceModel]=None,
            timeout: float=DEFAULT_TIMEOUT,
            port: int=SMARTPLUG_PORT
          ) -> None:
        self.host = host
        self.model = model
        self.timeout = timeout
        self.port = port

    @classmethod
    def from_discovery(cls, response: DiscoveryResponse, timeout: float=DEFAULT_TIMEOUT) -> SmartPlug:
        sysinfo = SysInfo.from_json(get_section(parse_response(response.payload), 'system', 'get_sysinfo'))
        return cls(
            response.src_addr[0],
            model=DeviceModel.from_model_string(sysinfo.model),
            timeout=timeout,
            port=response.src_addr[1],
          )

    def __str__(self) -> str:
        model = "?" if self.model is None else self.model.value
        return f"SmartPlug({model} @ {self.host}:{self.port})"

    def __repr__(self) -> str:
        return str(self)

    async def exec(self, command: str) -> str:
        """Sends a raw plaintext command and returns the raw plaintext reply."""
        return await async_exec_command(self.host, command, timeout=self.timeout, port=self.port)

    async def _query(self, command: str, area: str, sub_command: str) -> JsonableDict:
        return get_result(await self.exec(command), area, sub_command)

    def _require_emeter(self) -> None:
        if self.model is not None and not self.model.has_emeter:
            raise SmartPlugError(f"{self} has no energy meter")

    # System

    async def get_sysinfo(self) -> SysInfo:
        sysinfo = SysInfo.from_json(await self._query(commands.GET_SYSINFO, 'system', 'get_sysinfo'))
        self.model = DeviceModel.from_model_string(sysinfo.model)
        return sysinfo

    async def set_relay_state(self, on: bool) -> None:
        await self._query(commands.set_relay_state(on), 'system', 'set_relay_state')

    async def turn_on(self) -> None:
        await self.set_relay_state(True)

    async def turn_off(self) -> None:
        await self.set_relay_state(False)

    async def set_led(self, on: bool) -> None:
        await self._query(commands.set_led_off(not on), 'system', 'set_led_off')

    async def set_alias(self, alias: str) -> None:
        await self._query(commands.set_alias(alias), 'system', 'set_dev_alias')

    async def reboot(self) -> None:
        await self._query(commands.REBOOT, 'system', 'reboot')

    async def reset(self) -> None:
        """Factory reset. The plug forgets its WiFi settings."""
        await self._query(commands.RESET, 'system', 'reset')

    # WLAN

    async def scan_wifi(self) -> List[WifiNetwork]:
        result = await self._query(commands.SCAN_WIFI, 'netif', 'get_scaninfo')
        ap_list = result.get('ap_list', [])
        if not isinstance(ap_list, list):
            raise MalformedReplyError(f"ap_list is not a list: {result}")
        return [ WifiNetwork.from_json(x) for x in ap_list ]

    async def set_wifi(self, ssid: str, password: str, key_type: int) -> None:
        await self._query(commands.set_wifi(ssid, password, key_type), 'netif', 'set_stainfo')

    # Cloud

    async def get_cloud_info(self) -> CloudInfo:
        return CloudInfo.from_json(await self._query(commands.GET_CLOUD_INFO, 'cnCloud', 'get_info'))

    async def set_cloud_server_url(self, server: str) -> None:
        await self._query(commands.set_cloud_server_url(server), 'cnCloud', 'set_server_url')

    async def cloud_bind(self, username: str, password: str) -> None:
        await self._query(commands.cloud_bind(username, password), 'cnCloud', 'bind')

    async def cloud_unbind(self) -> None:
        await self._query(commands.CLOUD_UNBIND, 'cnCloud', 'unbind')

    # Time

    async def get_time(self) -> DeviceTime:
        return DeviceTime.from_json(await self._query(commands.GET_TIME, 'time', 'get_time'))

    async def get_timezone(self) -> int:
        result = await self._query(commands.GET_TIMEZONE, 'time', 'get_timezone')
        index = result.get('index')
        if not isinstance(index, int):
            raise MalformedReplyError(f"Timezone index missing from reply: {result}")
        return index

    async def set_timezone(self, when: datetime.datetime, index: int) -> None:
        await self._query(commands.set_timezone(when, index), 'time', 'set_timezone')

    # Schedule

    async def get_next_action(self) -> NextAction:
        return NextAction.from_json(await self._query(commands.GET_NEXT_SCHEDULE_ACTION, 'schedule', 'get_next_action'))

    async def get_schedule_rules(self) -> List[ScheduleRule]:
        result = await self._query(commands.GET_SCHEDULE_RULES, 'schedule', 'get_rules')
        rule_list = result.get('rule_list', [])
        if not isinstance(rule_list, list):
            raise MalformedReplyError(f"rule_list is not a list: {result}")
        return [ ScheduleRule.from_json(x) for x in rule_list ]

    async def add_schedule_rule(
            self,
            name: str,
            action: Action,
            minutes: int,
            days: Optional[Days]=None,
            time_opt: TimeOption=TimeOption.NONE,
            enable: bool=True,
            on_date: Optional[datetime.date]=None,
          ) -> str:
        """Adds a rule and returns its id."""
        command = commands.add_schedule_rule(
            name, action, minutes, days=days, time_opt=time_opt, enable=enable, on_date=on_date)
        result = await self._query(command, 'schedule', 'add_rule')
        rule_id = result.get('id')
        if not isinstance(rule_id, str):
            raise MalformedReplyError(f"Rule id missing from reply: {result}")
        return rule_id

    async def edit_schedule_rule(
            self,
            rule_id: str,
            name: str,
            action: Action,
            minutes: int,
            days: Optional[Days]=None,
            time_opt: TimeOption=TimeOption.NONE,
            enable: bool=True,
            on_date: Optional[datetime.date]=None,
          ) -> None:
        command = commands.edit_schedule_rule(
            rule_id, name, action, minutes, days=days, time_opt=time_opt, enable=enable, on_date=on_date)
        await self._query(command, 'schedule', 'edit_rule')

    async def delete_schedule_rule(self, rule_id: str) -> None:
        await self._query(commands.delete_schedule_rule(rule_id), 'schedule', 'delete_rule')

    async def delete_all_schedule_rules(self) -> None:
        await self._query(commands.DELETE_ALL_SCHEDULE_RULES, 'schedule', 'delete_all_rules')

    # Energy meter

    async def get_emeter_realtime(self) -> EmeterRealtime:
        self._require_emeter()
        return EmeterRealtime.from_json(await self._query(commands.GET_METER, 'emeter', 'get_realtime'))

    async def get_daily_stats(self, year: int, month: int) -> List[DailyUsage]:
        self._require_emeter()
        result = await self._query(commands.get_daily_stats(year, month), 'emeter', 'get_daystat')
        day_list = result.get('day_list', [])
        if not isinstance(day_list, list):
            raise MalformedReplyError(f"day_list is not a list: {result}")
        return [ DailyUsage.from_json(x) for x in day_list ]

    async def get_monthly_stats(self, year: int) -> List[MonthlyUsage]:
        self._require_emeter()
        result = await self._query(commands.get_monthly_stats(year), 'emeter', 'get_monthstat')
        month_list = result.get('month_list', [])
        if not isinstance(month_list, list):
            raise MalformedReplyError(f"month_list is not a list: {result}")
        return [ MonthlyUsage.from_json(x) for x in month_list ]

    async def erase_emeter_stats(self) -> None:
        self._require_emeter()
        await self._query(commands.ERASE_EMETER_STATS, 'emeter', 'erase_emeter_stat')

class DiscoveredDevice:
    """A plug found by discovery, with its decoded sysinfo."""

    response: DiscoveryResponse
    sysinfo: SysInfo
    model: DeviceModel

    def __init__(self, response: DiscoveryResponse, sysinfo: SysInfo) -> None:
        self.response = response
        self.sysinfo = sysinfo
        self.model = DeviceModel.from_model_string(sysinfo.model)

    @property
    def ip_address(self) -> str:
        return self.response.src_addr[0]

    def plug(self, timeout: float=DEFAULT_TIMEOUT) -> SmartPlug:
        """Returns a SmartPlug for this device."""
        return SmartPlug(self.ip_address, model=self.model, timeout=timeout, port=self.response.src_addr[1])

    def __str__(self) -> str:
        return f"DiscoveredDevice({self.model.value} '{self.sysinfo.alias}' @ {self.ip_address}, id={self.sysinfo.device_id})"

    def __repr__(self) -> str:
        return str(self)

def decode_discovery_responses(responses: Iterable[DiscoveryResponse]) -> List[DiscoveredDevice]:
    """Decodes the sysinfo of each discovery reply. Replies that cannot be decoded are
       skipped with a warning."""
    results: List[DiscoveredDevice] = []
    for response in responses:
        try:
            sysinfo = SysInfo.from_json(get_section(parse_response(response.payload), 'system', 'get_sysinfo'))
        except MalformedReplyError as e:
            logger.warning(f"Skipping undecodable discovery reply from {response.src_addr}: {e}")
            continue
        results.append(DiscoveredDevice(response, sysinfo))
    return results

async def async_discover_devices(
        response_wait_time: float=DEFAULT_DISCOVERY_WAIT_TIME,
        **kwargs: Any
      ) -> List[DiscoveredDevice]:
    """Runs async_discover() and decodes the replies. Keyword arguments are passed to async_discover()."""
    responses = await async_discover(response_wait_time=response_wait_time, **kwargs)
    return decode_discovery_responses(responses)

def discover_devices(response_wait_time: float=DEFAULT_DISCOVERY_WAIT_TIME, **kwargs: Any) -> List[DiscoveredDevice]:
    """Blocking version of async_discover_devices()."""
    result = run_blocking(async_discover_devices(response_wait_time=response_wait_time, **kwargs))
    assert isinstance(result, list)
    return result
