#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import asyncio
import json

import pytest

from tplink_smartplug_protocol import (
    SmartPlug,
    DeviceModel,
    DiscoveryResponse,
    SmartPlugError,
    SmartPlugDeviceError,
    discover_devices,
)
from tplink_smartplug_protocol.commands import Action, Days
from tplink_smartplug_protocol.device import decode_discovery_responses

from conftest import SYSINFO_HS110, SYSINFO_HS105

class PlugState:
    """A minimal HS110 simulation keyed on the command area and sub-command."""

    def __init__(self, sysinfo):
        self.sysinfo = dict(sysinfo)
        self.rules = []

    def handle(self, command: str) -> str:
        request = json.loads(command)
        reply = {}
        for area, subs in request.items():
            reply[area] = {}
            for sub, params in subs.items():
                reply[area][sub] = self.handle_one(area, sub, params)
        return json.dumps(reply)

    def handle_one(self, area, sub, params):
        ok = {"err_code": 0}
        if (area, sub) == ("system", "get_sysinfo"):
            return dict(self.sysinfo)
        if (area, sub) == ("system", "set_relay_state"):
            self.sysinfo["relay_state"] = params["state"]
            return ok
        if (area, sub) == ("system", "set_led_off"):
            self.sysinfo["led_off"] = params["off"]
            return ok
        if (area, sub) == ("system", "set_dev_alias"):
            if params["alias"] == "":
                return {"err_code": -3, "err_msg": "invalid argument"}
            self.sysinfo["alias"] = params["alias"]
            return ok
        if (area, sub) == ("emeter", "get_realtime"):
            return {"current": 0.015, "voltage": 235.6, "power": 0.98, "total": 32.448, "err_code": 0}
        if (area, sub) == ("emeter", "get_monthstat"):
            return {"month_list": [{"year": params["year"], "month": 11, "energy": 1.089}], "err_code": 0}
        if (area, sub) == ("schedule", "add_rule"):
            self.rules.append(dict(params, id=f"R{len(self.rules)}"))
            return {"id": f"R{len(self.rules) - 1}", "err_code": 0}
        if (area, sub) == ("schedule", "get_rules"):
            return {"rule_list": self.rules, "enable": 1, "err_code": 0}
        if (area, sub) == ("time", "get_timezone"):
            return {"index": 39, "err_code": 0}
        return {"err_code": -1, "err_msg": "module not support"}

@pytest.fixture
def hs110(fake_plug_factory):
    state = PlugState(SYSINFO_HS110)
    plug = fake_plug_factory(state.handle)
    host, port = plug.addr
    return state, SmartPlug(host, timeout=2.0, port=port)

def test_device_model_from_string() -> None:
    assert DeviceModel.from_model_string("HS110(EU)") == DeviceModel.HS110
    assert DeviceModel.from_model_string("hs105(US)") == DeviceModel.HS105
    assert DeviceModel.from_model_string("HS100") == DeviceModel.HS100
    assert DeviceModel.from_model_string("KL130(US)") == DeviceModel.UNKNOWN

def test_hs105_behaves_like_hs100() -> None:
    assert not DeviceModel.HS105.has_emeter
    assert not DeviceModel.HS100.has_emeter
    assert DeviceModel.HS110.has_emeter

def test_get_sysinfo_sets_model(hs110) -> None:
    _, plug = hs110
    assert plug.model is None
    info = asyncio.run(plug.get_sysinfo())
    assert info.alias == "Kitchen"
    assert plug.model == DeviceModel.HS110

def test_relay_led_alias(hs110) -> None:
    state, plug = hs110

    async def amain():
        await plug.turn_off()
        assert state.sysinfo["relay_state"] == 0
        await plug.turn_on()
        assert state.sysinfo["relay_state"] == 1
        await plug.set_led(False)
        assert state.sysinfo["led_off"] == 1
        await plug.set_alias("Pantry")
        return await plug.get_sysinfo()

    info = asyncio.run(amain())
    assert info.alias == "Pantry"
    assert info.is_on
    assert not info.is_led_on

def test_device_error_is_raised(hs110) -> None:
    _, plug = hs110
    with pytest.raises(SmartPlugDeviceError) as exc_info:
        asyncio.run(plug.set_alias(""))
    assert exc_info.value.err_code == -3
    with pytest.raises(SmartPlugDeviceError):
        asyncio.run(plug.get_cloud_info())

def test_emeter(hs110) -> None:
    _, plug = hs110
    realtime = asyncio.run(plug.get_emeter_realtime())
    assert realtime.voltage == pytest.approx(235.6)
    months = asyncio.run(plug.get_monthly_stats(2016))
    assert [ (m.year, m.month) for m in months ] == [ (2016, 11) ]

def test_emeter_refused_without_capability() -> None:
    plug = SmartPlug("127.0.0.1", model=DeviceModel.HS105)
    with pytest.raises(SmartPlugError):
        asyncio.run(plug.get_emeter_realtime())

def test_schedule_and_timezone(hs110) -> None:
    _, plug = hs110

    async def amain():
        rule_id = await plug.add_schedule_rule("evening", Action.ON, 1140, days=Days.every_day())
        return rule_id, await plug.get_schedule_rules(), await plug.get_timezone()

    rule_id, rules, tz = asyncio.run(amain())
    assert rule_id == "R0"
    assert [ r.name for r in rules ] == [ "evening" ]
    assert rules[0].is_enabled
    assert tz == 39

def test_decode_discovery_responses_skips_malformed() -> None:
    responses = [
        DiscoveryResponse(('10.0.0.5', 9999), json.dumps({"system": {"get_sysinfo": SYSINFO_HS110}})),
        DiscoveryResponse(('10.0.0.6', 9999), 'not json'),
        DiscoveryResponse(('10.0.0.7', 9999), json.dumps({"system": {"get_sysinfo": SYSINFO_HS105}})),
    ]
    devices = decode_discovery_responses(responses)
    assert [ d.ip_address for d in devices ] == [ '10.0.0.5', '10.0.0.7' ]
    assert [ d.model for d in devices ] == [ DeviceModel.HS110, DeviceModel.HS105 ]
    plug = devices[1].plug()
    assert plug.host == '10.0.0.7'
    assert plug.model == DeviceModel.HS105

def test_from_discovery() -> None:
    response = DiscoveryResponse(('10.0.0.5', 9999), json.dumps({"system": {"get_sysinfo": SYSINFO_HS110}}))
    plug = SmartPlug.from_discovery(response)
    assert (plug.host, plug.port, plug.model) == ('10.0.0.5', 9999, DeviceModel.HS110)

def test_discover_devices(fake_plug_factory) -> None:
    state = PlugState(SYSINFO_HS105)
    fake = fake_plug_factory(state.handle)
    host, port = fake.addr
    devices = discover_devices(response_wait_time=0.3, broadcast_addresses=[host], port=port,
                               bind_address='127.0.0.1', bind_port=0)
    assert len(devices) == 1
    assert devices[0].sysinfo.device_id == SYSINFO_HS105["deviceId"]
    assert devices[0].model == DeviceModel.HS105
