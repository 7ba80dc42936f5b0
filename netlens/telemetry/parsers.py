"""
Parsers for platform tool output

Pure functions: text in, structured values out. Anything that does not
match its grammar yields None (or is skipped) instead of raising, so a
garbled line degrades to "no data" for that line only.
"""

import ipaddress
import re
from typing import Optional

from ..models import PingReply, PingStatus, RawHop, WifiConnection, WifiNetwork


MAX_RTT_COLUMNS = 3

_HOP_LINE = re.compile(r'^\s*(\d+)\s+(.*)$')
_RTT_TOKEN = re.compile(r'^(<)?(\d+(?:\.\d+)?)(ms)?$')
_TIMEOUT_MARKERS = ('*',)


def parse_address(token: str) -> Optional[str]:
    """Return the IP in token (bare, [bracketed] or (parenthesised)) or None"""
    candidate = token.strip().strip('[]()').rstrip(':,')
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


def parse_hop_line(line: str) -> Optional[RawHop]:
    """
    Parse one hop line of traceroute / tracert output.

    Handles both layouts::

         3  10.0.0.1  12.1 ms  11.8 ms *            (traceroute -n)
         3    12 ms    11 ms     *     10.0.0.1     (tracert -d)
         4     *        *        *     Request timed out.

    ``<1 ms`` is read as 1 ms. Only the first three latency columns and
    the first address are kept. Lines with a hop index but neither a
    latency, a timeout marker nor an address are rejected.
    """
    match = _HOP_LINE.match(line)
    if not match:
        return None

    hop = int(match.group(1))
    if hop < 1:
        return None

    tokens = match.group(2).split()
    rtts: list[Optional[float]] = []
    address: Optional[str] = None
    has_timeout = False

    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token in _TIMEOUT_MARKERS:
            has_timeout = True
            if len(rtts) < MAX_RTT_COLUMNS:
                rtts.append(None)
            i += 1
            continue

        rtt_match = _RTT_TOKEN.match(token)
        if rtt_match:
            unit_inline = rtt_match.group(3) is not None
            unit_next = i + 1 < len(tokens) and tokens[i + 1] == 'ms'
            if unit_inline or unit_next:
                if len(rtts) < MAX_RTT_COLUMNS:
                    rtts.append(float(rtt_match.group(2)))
                i += 2 if unit_next else 1
                continue

        if address is None:
            address = parse_address(token)
        i += 1

    if not rtts and not has_timeout and address is None:
        return None

    return RawHop(hop=hop, rtts=tuple(rtts), address=address, has_timeout=has_timeout)


# --- ping -------------------------------------------------------------------

_POSIX_RTT = re.compile(r'time[=<]\s*(\d+(?:\.\d+)?)\s*ms', re.IGNORECASE)
_POSIX_FROM = re.compile(r'bytes from\s+([^\s:]+)', re.IGNORECASE)
_POSIX_FRAG = ('message too long', 'frag needed', 'fragmentation needed')
_POSIX_UNREACHABLE = ('unreachable',)
_POSIX_NAME_ERROR = (
    'unknown host', 'name or service not known', 'cannot resolve',
    'temporary failure in name resolution',
)
_POSIX_LOSS = re.compile(r'(\d+)\s+(?:packets\s+)?received', re.IGNORECASE)


def parse_posix_ping(output: str) -> PingReply:
    """Parse the output of a single-echo Linux or macOS ``ping``"""
    text = output or ''
    lowered = text.lower()

    rtt = _POSIX_RTT.search(text)
    if rtt:
        responder = _POSIX_FROM.search(text)
        return PingReply(
            status=PingStatus.SUCCESS,
            rtt_ms=float(rtt.group(1)),
            responder=parse_address(responder.group(1)) if responder else None,
        )

    if any(marker in lowered for marker in _POSIX_FRAG):
        return PingReply(status=PingStatus.FRAGMENTATION_NEEDED, detail="fragmentation needed")

    if any(marker in lowered for marker in _POSIX_NAME_ERROR):
        return PingReply(status=PingStatus.ERROR, detail="name resolution failed")

    if any(marker in lowered for marker in _POSIX_UNREACHABLE):
        return PingReply(status=PingStatus.UNREACHABLE, detail="destination unreachable")

    received = _POSIX_LOSS.search(text)
    if received and int(received.group(1)) == 0:
        return PingReply(status=PingStatus.TIMEOUT, detail="no reply")

    return PingReply(status=PingStatus.ERROR, detail="unrecognised ping output")


_WIN_RTT = re.compile(r'(?:time|时间)\s*[=<]\s*(\d+(?:\.\d+)?)\s*ms', re.IGNORECASE)
_WIN_FROM = re.compile(r'(?:Reply from|来自)\s+([0-9a-fA-F.:]+)')
_WIN_FRAG = ('needs to be fragmented', '需要拆分', '需要分段')
_WIN_UNREACHABLE = ('unreachable', '无法访问')
_WIN_TIMEOUT = ('request timed out', '请求超时')
_WIN_NAME_ERROR = ('could not find host', '找不到主机')


def parse_windows_ping(output: str) -> PingReply:
    """Parse the output of ``ping -n 1`` on Windows (English or Chinese locale)"""
    text = output or ''
    lowered = text.lower()

    if any(marker in lowered for marker in _WIN_FRAG):
        return PingReply(status=PingStatus.FRAGMENTATION_NEEDED, detail="fragmentation needed")

    # "Reply from <gw>: Destination host unreachable." carries no TTL
    if any(marker in lowered for marker in _WIN_UNREACHABLE):
        return PingReply(status=PingStatus.UNREACHABLE, detail="destination unreachable")

    rtt = _WIN_RTT.search(text)
    if rtt and 'ttl' in lowered:
        responder = _WIN_FROM.search(text)
        return PingReply(
            status=PingStatus.SUCCESS,
            rtt_ms=float(rtt.group(1)),
            responder=parse_address(responder.group(1)) if responder else None,
        )

    if any(marker in lowered for marker in _WIN_TIMEOUT):
        return PingReply(status=PingStatus.TIMEOUT, detail="request timed out")

    if any(marker in lowered for marker in _WIN_NAME_ERROR):
        return PingReply(status=PingStatus.ERROR, detail="name resolution failed")

    return PingReply(status=PingStatus.ERROR, detail="unrecognised ping output")


# --- default gateway --------------------------------------------------------

_LINUX_GATEWAY = re.compile(r'^default\s+via\s+(\S+)', re.MULTILINE)
_MAC_GATEWAY = re.compile(r'^\s*gateway:\s*(\S+)', re.MULTILINE)
_WIN_GATEWAY = re.compile(r'^\s*0\.0\.0\.0\s+0\.0\.0\.0\s+(\S+)', re.MULTILINE)


def _first_address(pattern: re.Pattern, output: str) -> Optional[str]:
    for match in pattern.finditer(output or ''):
        address = parse_address(match.group(1))
        if address:
            return address
    return None


def parse_linux_gateway(output: str) -> Optional[str]:
    """Default gateway from ``ip -4 route show default``"""
    return _first_address(_LINUX_GATEWAY, output)


def parse_mac_gateway(output: str) -> Optional[str]:
    """Default gateway from ``route -n get default``"""
    return _first_address(_MAC_GATEWAY, output)


def parse_windows_gateway(output: str) -> Optional[str]:
    """Default gateway from ``route print -4 0.0.0.0``"""
    return _first_address(_WIN_GATEWAY, output)


# --- WiFi -------------------------------------------------------------------

_NMCLI_SPLIT = re.compile(r'(?<!\\):')


def _nmcli_fields(line: str) -> list[str]:
    return [
        part.replace('\\:', ':').replace('\\\\', '\\')
        for part in _NMCLI_SPLIT.split(line)
    ]


def _to_int(value: Optional[str]) -> int:
    if not value:
        return 0
    match = re.search(r'\d+', value)
    return int(match.group(0)) if match else 0


def parse_nmcli_wifi(output: str) -> tuple[list[WifiNetwork], Optional[WifiConnection]]:
    """
    Parse ``nmcli -t -f ACTIVE,SSID,BSSID,SIGNAL,CHAN,SECURITY,RATE device wifi list``.

    Returns the visible networks and, when one row is marked active,
    the current connection.
    """
    networks: list[WifiNetwork] = []
    current: Optional[WifiConnection] = None

    for line in (output or '').splitlines():
        if not line.strip():
            continue
        fields = _nmcli_fields(line)
        if len(fields) < 6:
            continue

        active, ssid, bssid, signal, channel, security = fields[:6]
        rate = fields[6] if len(fields) > 6 else ''
        network = WifiNetwork(
            ssid=ssid,
            bssid=bssid.lower(),
            signal=min(100, _to_int(signal)),
            channel=_to_int(channel),
            authentication=security,
        )
        networks.append(network)

        if active.strip().lower() in ('yes', '*') and current is None:
            current = WifiConnection(
                ssid=ssid,
                bssid=network.bssid,
                channel=network.channel,
                signal=network.signal,
                authentication=security,
                receive_rate=rate,
                transmit_rate=rate,
            )

    return networks, current


def _netsh_field(block: str, *labels: str) -> str:
    pattern = re.compile(
        r'^\s*(?:' + '|'.join(re.escape(label) for label in labels) + r')[^:\n]*:\s*(.*?)\s*$',
        re.MULTILINE,
    )
    match = pattern.search(block)
    return match.group(1) if match else ''


_NETSH_SSID_SPLIT = re.compile(r'^SSID \d+\s*:', re.MULTILINE)
_NETSH_BSSID_SPLIT = re.compile(r'^\s*BSSID \d+\s*:\s*(\S+)\s*$', re.MULTILINE)


def parse_netsh_networks(output: str) -> list[WifiNetwork]:
    """
    Parse ``netsh wlan show networks mode=bssid``.

    One record is produced per BSSID, since every access point
    occupies its own channel even when several share an SSID.
    """
    networks: list[WifiNetwork] = []
    blocks = _NETSH_SSID_SPLIT.split(output or '')

    for block in blocks[1:]:
        lines = block.splitlines()
        ssid = lines[0].strip() if lines else ''
        network_type = _netsh_field(block, 'Network type', '网络类型')
        authentication = _netsh_field(block, 'Authentication', '身份验证')

        bssid_parts = _NETSH_BSSID_SPLIT.split(block)
        # [preamble, bssid1, body1, bssid2, body2, ...]
        for i in range(1, len(bssid_parts) - 1, 2):
            bssid = bssid_parts[i]
            body = bssid_parts[i + 1]
            networks.append(WifiNetwork(
                ssid=ssid,
                bssid=bssid.lower(),
                signal=min(100, _to_int(_netsh_field(body, 'Signal', '信号'))),
                channel=_to_int(_netsh_field(body, 'Channel', '信道')),
                authentication=authentication,
                network_type=network_type,
            ))

    return networks


def parse_netsh_interfaces(output: str) -> Optional[WifiConnection]:
    """Parse ``netsh wlan show interfaces``; None when not associated"""
    text = output or ''
    if '无接口' in text or 'There is no wireless interface' in text:
        return None

    ssid = _netsh_field(text, 'SSID')
    if not ssid:
        return None

    return WifiConnection(
        ssid=ssid,
        bssid=_netsh_field(text, 'BSSID').lower(),
        channel=_to_int(_netsh_field(text, 'Channel', '信道')),
        signal=min(100, _to_int(_netsh_field(text, 'Signal', '信号'))),
        authentication=_netsh_field(text, 'Authentication', '身份验证'),
        cipher=_netsh_field(text, 'Cipher', '密码'),
        receive_rate=_netsh_field(text, 'Receive rate', '接收速率'),
        transmit_rate=_netsh_field(text, 'Transmit rate', '传输速率'),
        radio_type=_netsh_field(text, 'Radio type', '无线电类型'),
    )
