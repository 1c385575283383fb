#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Catalog of plaintext smart plug commands.

Every command is a JSON object keyed by functional area ("system", "netif",
"cnCloud", "time", "schedule", "emeter"), each holding a sub-command name and
its parameter object. Fixed commands are string constants; parameterized
commands are built with json.dumps so that user-supplied strings are escaped.
"""

from __future__ import annotations

import datetime
import json
from dataclasses import dataclass
from enum import IntEnum

from .internal_types import *

class Action(IntEnum):
    """The relay action taken by a schedule rule."""
    OFF = 0
    ON = 1

class TimeOption(IntEnum):
    """How the start time of a schedule rule is interpreted."""
    NONE = 0
    """smin is minutes after midnight."""
    SUNRISE = 1
    SUNSET = 2

@dataclass
class Days:
    """A set of weekdays on which a schedule rule repeats."""
    sunday: bool = False
    monday: bool = False
    tuesday: bool = False
    wednesday: bool = False
    thursday: bool = False
    friday: bool = False
    saturday: bool = False

    @classmethod
    def every_day(cls) -> Days:
        return cls(True, True, True, True, True, True, True)

    def to_list(self) -> List[int]:
        """The "wday" list, Sunday first, 1 for each selected day."""
        return [ int(x) for x in (
            self.sunday, self.monday, self.tuesday, self.wednesday, self.thursday, self.friday, self.saturday) ]

    def __str__(self) -> str:
        return '[' + ','.join(str(x) for x in self.to_list()) + ']'

def _dumps(obj: JsonableDict) -> str:
    return json.dumps(obj, separators=(',', ':'))

# System commands
GET_SYSINFO = '{"system":{"get_sysinfo":{}}}'
REBOOT = '{"system":{"reboot":{"delay":1}}}'
RESET = '{"system":{"reset":{"delay":1}}}'
TURN_ON = '{"system":{"set_relay_state":{"state":1}}}'
TURN_OFF = '{"system":{"set_relay_state":{"state":0}}}'
TURN_LED_ON = '{"system":{"set_led_off":{"off":0}}}'
TURN_LED_OFF = '{"system":{"set_led_off":{"off":1}}}'

# WLAN commands
SCAN_WIFI = '{"netif":{"get_scaninfo":{"refresh":1}}}'

# Cloud commands
GET_CLOUD_INFO = '{"cnCloud":{"get_info":null}}'
CLOUD_UNBIND = '{"cnCloud":{"unbind":null}}'

# Time commands
GET_TIME = '{"time":{"get_time":{}}}'
GET_TIMEZONE = '{"time":{"get_timezone":null}}'

# Schedule commands
GET_NEXT_SCHEDULE_ACTION = '{"schedule":{"get_next_action":null}}'
GET_SCHEDULE_RULES = '{"schedule":{"get_rules":null}}'
DELETE_ALL_SCHEDULE_RULES = '{"schedule":{"delete_all_rules":null,"erase_runtime_stat":null}}'

# Energy meter commands (HS110 only)
GET_METER = '{"system":{"get_sysinfo":{}},"emeter":{"get_realtime":{},"get_vgain_igain":{}}}'
ERASE_EMETER_STATS = '{"emeter":{"erase_emeter_stat":null}}'

def set_relay_state(on: bool) -> str:
    return TURN_ON if on else TURN_OFF

def set_led_off(off: bool) -> str:
    return TURN_LED_OFF if off else TURN_LED_ON

def set_alias(alias: str) -> str:
    return _dumps({"system": {"set_dev_alias": {"alias": alias}}})

def set_wifi(ssid: str, password: str, key_type: int) -> str:
    return _dumps({"netif": {"set_stainfo": {"ssid": ssid, "password": password, "key_type": key_type}}})

def set_cloud_server_url(server: str) -> str:
    return _dumps({"cnCloud": {"set_server_url": {"server": server}}})

def cloud_bind(username: str, password: str) -> str:
    return _dumps({"cnCloud": {"bind": {"username": username, "password": password}}})

def set_timezone(when: datetime.datetime, index: int) -> str:
    """Sets the device clock to a local time and the timezone to a device timezone index."""
    return _dumps({"time": {"set_timezone": {
        "year": when.year, "month": when.month, "mday": when.day,
        "hour": when.hour, "min": when.minute, "sec": when.second,
        "index": index,
      }}})

def _rule_params(
        name: str,
        action: Action,
        minutes: int,
        days: Optional[Days],
        time_opt: TimeOption,
        enable: bool,
        on_date: Optional[datetime.date],
      ) -> JsonableDict:
    """Common parameters of add_rule/edit_rule. A rule with days repeats weekly; a rule with
       on_date runs once on that date."""
    if (days is None) == (on_date is None):
        raise ValueError("Exactly one of days or on_date must be provided for a schedule rule")
    params: JsonableDict = {
        "stime_opt": int(time_opt),
        "wday": (days or Days()).to_list(),
        "smin": minutes,
        "enable": int(enable),
        "repeat": int(days is not None),
        "etime_opt": -1,
        "name": name,
        "eact": -1,
        "month": 0 if on_date is None else on_date.month,
        "sact": int(action),
        "year": 0 if on_date is None else on_date.year,
        "longitude": 0,
        "day": 0 if on_date is None else on_date.day,
        "force": 0,
        "latitude": 0,
        "emin": 0,
      }
    return params

def add_schedule_rule(
        name: str,
        action: Action,
        minutes: int,
        days: Optional[Days]=None,
        time_opt: TimeOption=TimeOption.NONE,
        enable: bool=True,
        on_date: Optional[datetime.date]=None,
      ) -> str:
    """Adds a schedule rule and enables the schedule as a whole."""
    params = _rule_params(name, action, minutes, days, time_opt, enable, on_date)
    return _dumps({"schedule": {"add_rule": params, "set_overall_enable": {"enable": 1}}})

def edit_schedule_rule(
        rule_id: str,
        name: str,
        action: Action,
        minutes: int,
        days: Optional[Days]=None,
        time_opt: TimeOption=TimeOption.NONE,
        enable: bool=True,
        on_date: Optional[datetime.date]=None,
      ) -> str:
    params = _rule_params(name, action, minutes, days, time_opt, enable, on_date)
    params["id"] = rule_id
    return _dumps({"schedule": {"edit_rule": params}})

def delete_schedule_rule(rule_id: str) -> str:
    return _dumps({"schedule": {"delete_rule": {"id": rule_id}}})

def get_daily_stats(year: int, month: int) -> str:
    return _dumps({"emeter": {"get_daystat": {"month": month, "year": year}}})

def get_monthly_stats(year: int) -> str:
    return _dumps({"emeter": {"get_monthstat": {"year": year}}})
