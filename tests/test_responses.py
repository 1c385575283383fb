#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import json

import pytest

from tplink_smartplug_protocol import MalformedReplyError, SmartPlugDeviceError, SmartPlugTransportError
from tplink_smartplug_protocol.responses import (
    parse_response,
    get_result,
    SysInfo,
    CloudInfo,
    DeviceTime,
    EmeterRealtime,
    MonthlyUsage,
    DailyUsage,
    ScheduleRule,
    NextAction,
)

from conftest import SYSINFO_HS110

def test_parse_response_rejects_non_json() -> None:
    with pytest.raises(MalformedReplyError):
        parse_response('{"system":')
    with pytest.raises(MalformedReplyError):
        parse_response('[1, 2]')

def test_malformed_is_not_transport_error() -> None:
    assert not issubclass(MalformedReplyError, SmartPlugTransportError)

def test_get_result_checks_err_code() -> None:
    reply = '{"system":{"set_dev_alias":{"err_code":-3,"err_msg":"invalid argument"}}}'
    with pytest.raises(SmartPlugDeviceError) as exc_info:
        get_result(reply, 'system', 'set_dev_alias')
    assert exc_info.value.err_code == -3
    assert exc_info.value.err_msg == "invalid argument"

def test_get_result_missing_section() -> None:
    with pytest.raises(MalformedReplyError):
        get_result('{"system":{}}', 'system', 'get_sysinfo')
    with pytest.raises(MalformedReplyError):
        get_result('{"emeter":{"get_realtime":{}}}', 'system', 'get_sysinfo')

def test_sysinfo() -> None:
    reply = json.dumps({"system": {"get_sysinfo": SYSINFO_HS110}})
    info = SysInfo.from_json(get_result(reply, 'system', 'get_sysinfo'))
    assert info.model == "HS110(EU)"
    assert info.alias == "Kitchen"
    assert info.device_id == SYSINFO_HS110["deviceId"]
    assert info.is_on
    assert info.is_led_on
    assert info.features == {"TIM", "ENE"}
    assert info.rssi == -71
    assert info.raw["on_time"] == 3922

def test_sysinfo_missing_field() -> None:
    data = dict(SYSINFO_HS110)
    del data["deviceId"]
    with pytest.raises(MalformedReplyError):
        SysInfo.from_json(data)

def test_sysinfo_wrong_type() -> None:
    with pytest.raises(MalformedReplyError):
        SysInfo.from_json(dict(SYSINFO_HS110, relay_state="on"))

def test_cloud_info() -> None:
    info = CloudInfo.from_json({"username": "me", "server": "devs.tplinkcloud.com", "binded": 1, "err_code": 0})
    assert info.is_bound

def test_device_time() -> None:
    t = DeviceTime.from_json({"year": 2023, "month": 1, "mday": 2, "hour": 3, "min": 4, "sec": 5, "err_code": 0})
    assert (t.year, t.month, t.mday, t.hour, t.min, t.sec) == (2023, 1, 2, 3, 4, 5)

def test_emeter_realtime_both_units() -> None:
    legacy = EmeterRealtime.from_json({"current": 0.015, "voltage": 235, "power": 0.98, "total": 32.4})
    assert legacy.voltage == 235.0
    milli = EmeterRealtime.from_json({"current_ma": 15, "voltage_mv": 235000, "power_mw": 980, "total_wh": 32400})
    assert milli.current == pytest.approx(0.015)
    assert milli.voltage == pytest.approx(235.0)
    assert milli.power == pytest.approx(0.98)
    assert milli.total == pytest.approx(32.4)
    with pytest.raises(MalformedReplyError):
        EmeterRealtime.from_json({"current": 1.0})

def test_usage_stats() -> None:
    assert MonthlyUsage.from_json({"year": 2016, "month": 11, "energy": 1.089}).energy == 1.089
    assert DailyUsage.from_json({"year": 2016, "month": 11, "day": 24, "energy_wh": 26}).energy == pytest.approx(0.026)

def test_schedule_rule_and_next_action() -> None:
    rule = ScheduleRule.from_json({"id": "A1", "name": "evening", "enable": 1, "smin": 1140, "repeat": 1,
                                   "sact": 1, "wday": [0, 1, 1, 1, 1, 1, 0], "stime_opt": 0})
    assert rule.is_enabled
    assert rule.wday == [0, 1, 1, 1, 1, 1, 0]
    action = NextAction.from_json({"id": "A1", "type": 1, "schd_time": 68400, "action": 1, "err_code": 0})
    assert action.rule_id == "A1"
    assert action.schd_time == 68400

@pytest.mark.parametrize("wday", [[None], ["a"], [1, 2.5]])
def test_schedule_rule_bad_wday(wday) -> None:
    with pytest.raises(MalformedReplyError):
        ScheduleRule.from_json({"id": "A1", "wday": wday})
