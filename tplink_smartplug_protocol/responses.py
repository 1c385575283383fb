#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Decoding of plaintext smart plug replies into structured data.

A reply mirrors the shape of its command: {"<area>": {"<sub-command>": {...result...}}}.
Every result object carries an "err_code" (0 on success) and, on failure, an "err_msg".
Failures to interpret a reply raise MalformedReplyError; a non-zero err_code raises
SmartPlugDeviceError.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from .internal_types import *
from .exceptions import MalformedReplyError, SmartPlugDeviceError

def parse_response(plaintext: str) -> JsonableDict:
    """Parses a decrypted reply into a JSON object."""
    try:
        result = json.loads(plaintext)
    except ValueError as e:
        raise MalformedReplyError(f"Reply is not valid JSON: {e}: {plaintext!r}") from e
    if not isinstance(result, dict):
        raise MalformedReplyError(f"Reply is not a JSON object: {plaintext!r}")
    return result

def get_section(response: JsonableDict, area: str, sub_command: str) -> JsonableDict:
    """Returns response[area][sub_command], which must be a JSON object."""
    area_data = response.get(area)
    if not isinstance(area_data, dict):
        raise MalformedReplyError(f"Reply has no '{area}' object: {response}")
    section = area_data.get(sub_command)
    if not isinstance(section, dict):
        raise MalformedReplyError(f"Reply has no '{area}.{sub_command}' object: {response}")
    return section

def check_error(section: JsonableDict) -> JsonableDict:
    """Raises SmartPlugDeviceError if a result object reports a non-zero err_code. Returns the section."""
    err_code = section.get('err_code', 0)
    if not isinstance(err_code, int):
        raise MalformedReplyError(f"err_code is not an integer: {section}")
    if err_code != 0:
        err_msg = section.get('err_msg')
        raise SmartPlugDeviceError(err_code, None if err_msg is None else str(err_msg))
    return section

def get_result(plaintext: str, area: str, sub_command: str) -> JsonableDict:
    """Parses a reply and returns the error-checked result object for area.sub_command."""
    return check_error(get_section(parse_response(plaintext), area, sub_command))

def _get(data: JsonableDict, key: str, typ: Union[type, Tuple[type, ...]], default: Any=None, required: bool=False) -> Any:
    if key not in data:
        if required:
            raise MalformedReplyError(f"Reply is missing required field '{key}': {data}")
        return default
    value = data[key]
    if typ is float and isinstance(value, int) and not isinstance(value, bool):
        value = float(value)
    if not isinstance(value, typ):
        raise MalformedReplyError(f"Field '{key}' has unexpected type {type(value).__name__}: {data}")
    return value

@dataclass
class SysInfo:
    """The "system.get_sysinfo" result."""
    sw_ver: str
    hw_ver: str
    model: str
    mac: str
    device_id: str
    alias: str = ""
    type: str = ""
    hw_id: str = ""
    fw_id: str = ""
    oem_id: str = ""
    icon_hash: str = ""
    relay_state: int = 0
    """0 = OFF; 1 = ON"""
    active_mode: str = ""
    """"schedule" when running a schedule"""
    feature: str = ""
    """e.g. "TIM:ENE" (Timer, Energy Monitor)"""
    updating: int = 0
    rssi: int = 0
    """Signal strength in dBm"""
    led_off: int = 0
    """0 = LED on (default); 1 = LED off"""
    latitude: float = 0.0
    longitude: float = 0.0
    raw: JsonableDict = field(default_factory=dict, repr=False)

    @classmethod
    def from_json(cls, data: JsonableDict) -> SysInfo:
        return cls(
            sw_ver=_get(data, 'sw_ver', str, required=True),
            hw_ver=_get(data, 'hw_ver', str, required=True),
            model=_get(data, 'model', str, required=True),
            mac=_get(data, 'mac', str, default=None) or _get(data, 'mic_mac', str, required=True),
            device_id=_get(data, 'deviceId', str, required=True),
            alias=_get(data, 'alias', str, ""),
            type=_get(data, 'type', str, "") or _get(data, 'mic_type', str, ""),
            hw_id=_get(data, 'hwId', str, ""),
            fw_id=_get(data, 'fwId', str, ""),
            oem_id=_get(data, 'oemId', str, ""),
            icon_hash=_get(data, 'icon_hash', str, ""),
            relay_state=_get(data, 'relay_state', int, 0),
            active_mode=_get(data, 'active_mode', str, ""),
            feature=_get(data, 'feature', str, ""),
            updating=_get(data, 'updating', int, 0),
            rssi=_get(data, 'rssi', int, 0),
            led_off=_get(data, 'led_off', int, 0),
            latitude=_get(data, 'latitude', float, 0.0),
            longitude=_get(data, 'longitude', float, 0.0),
            raw=data,
          )

    @property
    def is_on(self) -> bool:
        return self.relay_state == 1

    @property
    def is_led_on(self) -> bool:
        return self.led_off == 0

    @property
    def features(self) -> Set[str]:
        return set(x for x in self.feature.split(':') if x != '')

@dataclass
class CloudInfo:
    """The "cnCloud.get_info" result."""
    username: str = ""
    server: str = ""
    binded: int = 0

    @classmethod
    def from_json(cls, data: JsonableDict) -> CloudInfo:
        return cls(
            username=_get(data, 'username', str, ""),
            server=_get(data, 'server', str, ""),
            binded=_get(data, 'binded', int, 0),
          )

    @property
    def is_bound(self) -> bool:
        return self.binded == 1

@dataclass
class DeviceTime:
    """The "time.get_time" result, in the device's local time."""
    year: int
    month: int
    mday: int
    hour: int
    min: int
    sec: int

    @classmethod
    def from_json(cls, data: JsonableDict) -> DeviceTime:
        return cls(*(_get(data, key, int, required=True) for key in ('year', 'month', 'mday', 'hour', 'min', 'sec')))

@dataclass
class EmeterRealtime:
    """The "emeter.get_realtime" result, in amps, volts, watts and kWh.

    Newer firmware reports milli-units ("current_ma", "voltage_mv", "power_mw", "total_wh");
    both forms are accepted.
    """
    current: float
    voltage: float
    power: float
    total: float

    @classmethod
    def from_json(cls, data: JsonableDict) -> EmeterRealtime:
        def value(name: str, milli_name: str) -> float:
            if name in data:
                return _get(data, name, float)
            if milli_name in data:
                return _get(data, milli_name, float) / 1000.0
            raise MalformedReplyError(f"Reply is missing required field '{name}': {data}")
        return cls(
            current=value('current', 'current_ma'),
            voltage=value('voltage', 'voltage_mv'),
            power=value('power', 'power_mw'),
            total=value('total', 'total_wh'),
          )

@dataclass
class MonthlyUsage:
    year: int
    month: int
    energy: float

    @classmethod
    def from_json(cls, data: JsonableDict) -> MonthlyUsage:
        energy = _get(data, 'energy', float) if 'energy' in data else _get(data, 'energy_wh', float, required=True) / 1000.0
        return cls(_get(data, 'year', int, required=True), _get(data, 'month', int, required=True), energy)

@dataclass
class DailyUsage:
    year: int
    month: int
    day: int
    energy: float

    @classmethod
    def from_json(cls, data: JsonableDict) -> DailyUsage:
        energy = _get(data, 'energy', float) if 'energy' in data else _get(data, 'energy_wh', float, required=True) / 1000.0
        return cls(
            _get(data, 'year', int, required=True),
            _get(data, 'month', int, required=True),
            _get(data, 'day', int, required=True),
            energy,
          )

@dataclass
class WifiNetwork:
    """An access point reported by "netif.get_scaninfo"."""
    ssid: str
    key_type: int

    @classmethod
    def from_json(cls, data: JsonableDict) -> WifiNetwork:
        return cls(_get(data, 'ssid', str, required=True), _get(data, 'key_type', int, 0))

@dataclass
class ScheduleRule:
    """A rule reported by "schedule.get_rules". year/month/day are set only when repeat is 0."""
    id: str
    name: str
    enable: int
    smin: int
    repeat: int
    sact: int
    wday: List[int]
    year: int = 0
    month: int = 0
    day: int = 0
    stime_opt: int = 0

    @classmethod
    def from_json(cls, data: JsonableDict) -> ScheduleRule:
        wday = _get(data, 'wday', list, [])
        if not all(isinstance(x, int) and not isinstance(x, bool) for x in wday):
            raise MalformedReplyError(f"Field 'wday' is not a list of integers: {data}")
        return cls(
            id=_get(data, 'id', str, required=True),
            name=_get(data, 'name', str, ""),
            enable=_get(data, 'enable', int, 0),
            smin=_get(data, 'smin', int, 0),
            repeat=_get(data, 'repeat', int, 0),
            sact=_get(data, 'sact', int, 0),
            wday=list(wday),
            year=_get(data, 'year', int, 0),
            month=_get(data, 'month', int, 0),
            day=_get(data, 'day', int, 0),
            stime_opt=_get(data, 'stime_opt', int, 0),
          )

    @property
    def is_enabled(self) -> bool:
        return self.enable == 1

@dataclass
class NextAction:
    """The "schedule.get_next_action" result."""
    rule_id: str
    type: int
    schd_time: int
    """Scheduled time, in seconds after local midnight"""
    action: int

    @classmethod
    def from_json(cls, data: JsonableDict) -> NextAction:
        return cls(
            rule_id=_get(data, 'id', str, ""),
            type=_get(data, 'type', int, -1),
            schd_time=_get(data, 'schd_time', int, 0),
            action=_get(data, 'action', int, -1),
          )
