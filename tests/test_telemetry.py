"""Test platform telemetry providers."""
import sys

import pytest

from netlens.exceptions import TelemetryError
from netlens.models import PingStatus
from netlens.telemetry import (
    LinuxTelemetry, MacTelemetry, WindowsTelemetry, create_telemetry,
)


@pytest.mark.parametrize("platform,provider", [
    ("win32", WindowsTelemetry),
    ("darwin", MacTelemetry),
    ("linux", LinuxTelemetry),
    ("freebsd13", LinuxTelemetry),
])
def test_create_telemetry(platform, provider):
    assert type(create_telemetry(platform)) is provider


def test_linux_commands():
    telemetry = LinuxTelemetry()

    assert telemetry.ping_command("8.8.8.8", 2500) == [
        'ping', '-n', '-c', '1', '-W', '3', '8.8.8.8',
    ]
    assert telemetry.ping_command("8.8.8.8", 2000, payload_size=1472, dont_fragment=True) == [
        'ping', '-n', '-c', '1', '-W', '2', '-s', '1472', '-M', 'do', '8.8.8.8',
    ]
    assert telemetry.traceroute_command("8.8.8.8", 20, 2000) == [
        'traceroute', '-n', '-q', '3', '-m', '20', '-w', '2', '8.8.8.8',
    ]


def test_mac_commands():
    assert MacTelemetry().ping_command("1.1.1.1", 1500, payload_size=1000, dont_fragment=True) == [
        'ping', '-n', '-c', '1', '-W', '1500', '-s', '1000', '-D', '1.1.1.1',
    ]


def test_windows_commands():
    telemetry = WindowsTelemetry()

    assert telemetry.ping_command("8.8.8.8", 2000, payload_size=1472, dont_fragment=True) == [
        'ping', '-n', '1', '-w', '2000', '-l', '1472', '-f', '8.8.8.8',
    ]
    assert telemetry.traceroute_command("8.8.8.8", 15, 1000) == [
        'tracert', '-d', '-h', '15', '-w', '1000', '8.8.8.8',
    ]


class CommandTelemetry(LinuxTelemetry):
    def __init__(self, args):
        self.args = args

    def ping_command(self, target, timeout_ms, payload_size=None, dont_fragment=False):
        return self.args


@pytest.mark.asyncio
async def test_run_command_captures_output():
    output = await LinuxTelemetry().run_command([sys.executable, "-c", "print('hello')"])
    assert output.strip() == "hello"


@pytest.mark.asyncio
async def test_run_command_missing_executable():
    with pytest.raises(TelemetryError):
        await LinuxTelemetry().run_command(["/nonexistent/netlens-tool"])


@pytest.mark.asyncio
async def test_ping_parses_tool_output():
    script = "print('64 bytes from 10.0.0.1: icmp_seq=1 ttl=64 time=0.42 ms')"
    reply = await CommandTelemetry([sys.executable, "-c", script]).ping("10.0.0.1", 1000)

    assert reply.status == PingStatus.SUCCESS
    assert reply.rtt_ms == 0.42


@pytest.mark.asyncio
async def test_ping_without_tool_is_an_error_reply():
    reply = await CommandTelemetry(["/nonexistent/ping"]).ping("10.0.0.1", 1000)

    assert reply.status == PingStatus.ERROR
    assert reply.ok is False


@pytest.mark.asyncio
async def test_hung_ping_is_a_timeout_reply():
    telemetry = CommandTelemetry([sys.executable, "-c", "import time; time.sleep(30)"])
    telemetry.PROCESS_GRACE = 0.5
    reply = await telemetry.ping("10.0.0.1", 100)

    assert reply.status == PingStatus.TIMEOUT


@pytest.mark.asyncio
async def test_mac_wifi_is_unsupported():
    with pytest.raises(TelemetryError):
        await MacTelemetry().scan_wifi()
