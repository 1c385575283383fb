#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import json

from tplink_smartplug_protocol import __version__
from tplink_smartplug_protocol.__main__ import run
from tplink_smartplug_protocol.commands import GET_SYSINFO, TURN_OFF

from conftest import SYSINFO_HS110, get_free_udp_port

def sysinfo_reply(command: str) -> str:
    if command == GET_SYSINFO:
        return json.dumps({"system": {"get_sysinfo": SYSINFO_HS110}})
    return '{"system":{"set_relay_state":{"err_code":0}}}'

def test_version(capsys) -> None:
    assert run(['version']) == 0
    assert capsys.readouterr().out.strip() == __version__

def test_no_command(capsys) -> None:
    assert run([]) == 1

def test_bad_arguments() -> None:
    assert run(['info']) == 2

def test_encrypt_decrypt(capsys) -> None:
    assert run(['encrypt', '{}']) == 0
    hex_text = capsys.readouterr().out.strip()
    assert hex_text == "d0ad"
    assert run(['decrypt', hex_text]) == 0
    assert capsys.readouterr().out.strip() == '{}'

def test_info(fake_plug_factory, capsys) -> None:
    plug = fake_plug_factory(sysinfo_reply)
    host, port = plug.addr
    assert run(['info', host, '--port', str(port), '--timeout', '2']) == 0
    info = json.loads(capsys.readouterr().out)
    assert info["alias"] == "Kitchen"
    assert "raw" not in info

def test_off(fake_plug_factory) -> None:
    plug = fake_plug_factory(sysinfo_reply)
    host, port = plug.addr
    assert run(['off', host, '--port', str(port), '--timeout', '2']) == 0
    assert plug.received[0][1] == TURN_OFF

def test_timeout_reports_error(capsys) -> None:
    rc = run(['info', '127.0.0.1', '--port', str(get_free_udp_port()), '--timeout', '0.2'])
    assert rc == 1
    assert "tplink-smartplug: error:" in capsys.readouterr().err

def test_scan(fake_plug_factory, capsys) -> None:
    plug = fake_plug_factory(sysinfo_reply)
    host, port = plug.addr
    rc = run(['scan', '--wait-time', '0.3', '-b', host, '--port', str(port),
              '--bind-address', '127.0.0.1', '--bind-port', '0'])
    assert rc == 0
    device = json.loads(capsys.readouterr().out)
    assert device["ip_address"] == host
    assert device["model"] == "HS110"
    assert device["device_id"] == SYSINFO_HS110["deviceId"]

def test_scan_raw(fake_plug_factory, capsys) -> None:
    plug = fake_plug_factory(sysinfo_reply)
    host, port = plug.addr
    rc = run(['scan', '--raw', '--wait-time', '0.3', '-b', host, '--port', str(port),
              '--bind-address', '127.0.0.1', '--bind-port', '0'])
    assert rc == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["src_addr"] == f"{host}:{port}"
    assert json.loads(summary["payload"])["system"]["get_sysinfo"]["alias"] == "Kitchen"
