"""
LAN address discovery.

The address printed for phones and other LAN devices is the local IPv4
address whose subnet contains the default gateway. When the gateway cannot
be discovered at all, the first non-loopback IPv4 address is used instead,
and "localhost" when there is none.
"""

import ipaddress
import re
import socket
import struct
import subprocess
import sys
from pathlib import Path
from typing import Iterator, Optional, Tuple

import psutil
from loguru import logger

from .errors import GatewayNotFound, NoRouteFound


PROC_NET_ROUTE = Path('/proc/net/route')
RTF_GATEWAY = 0x2

_IPV4 = r'(\d{1,3}(?:\.\d{1,3}){3})'

# Route table commands tried in order, with the pattern that extracts the gateway
GATEWAY_COMMANDS = [
    (['ip', '-4', 'route', 'show', 'default'], re.compile(rf'default via {_IPV4}')),
    (['route', '-n', 'get', 'default'], re.compile(rf'gateway:\s*{_IPV4}')),
    (['route', 'print', '0.0.0.0'], re.compile(rf'^\s*0\.0\.0\.0\s+0\.0\.0\.0\s+{_IPV4}', re.MULTILINE)),
]

FALLBACK_ADDRESS = 'localhost'

BROADCAST = ipaddress.IPv4Address('255.255.255.255')


def _gateway_from_proc(route_file: Path = PROC_NET_ROUTE) -> Optional[ipaddress.IPv4Address]:
    """Read the default route from the Linux kernel routing table."""
    try:
        lines = route_file.read_text().splitlines()
    except OSError:
        return None

    for line in lines[1:]:
        fields = line.split()
        if len(fields) < 4:
            continue
        destination, gateway, flags = fields[1], fields[2], fields[3]
        try:
            if int(destination, 16) != 0 or not int(flags, 16) & RTF_GATEWAY:
                continue
            # Stored as a little-endian hex word
            packed = struct.pack('<L', int(gateway, 16))
        except (ValueError, struct.error):
            continue
        return ipaddress.IPv4Address(socket.inet_ntoa(packed))
    return None


def _gateway_from_commands() -> Optional[ipaddress.IPv4Address]:
    for cmd, pattern in GATEWAY_COMMANDS:
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True,
                errors='ignore', timeout=5
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"Gateway lookup via {cmd[0]} unavailable: {e}")
            continue

        if result.returncode != 0:
            continue
        match = pattern.search(result.stdout)
        if match:
            try:
                return ipaddress.IPv4Address(match.group(1))
            except ValueError:
                continue
    return None


def discover_gateway() -> ipaddress.IPv4Address:
    """Return the default gateway address, or raise GatewayNotFound."""
    gateway = None
    if sys.platform.startswith('linux'):
        gateway = _gateway_from_proc()
    if gateway is None:
        gateway = _gateway_from_commands()
    if gateway is None:
        raise GatewayNotFound("failed to discover default gateway")
    logger.debug(f"Default gateway: {gateway}")
    return gateway


def _is_global_unicast(ip: ipaddress.IPv4Address) -> bool:
    """Unicast and routable in principle; private ranges count."""
    return not (ip.is_loopback or ip.is_link_local or ip.is_multicast
                or ip.is_unspecified or ip == BROADCAST)


def _ipv4_interfaces(addrs) -> Iterator[ipaddress.IPv4Interface]:
    for addr in addrs:
        if addr.family != socket.AF_INET:
            continue
        if addr.netmask:
            yield ipaddress.IPv4Interface(f"{addr.address}/{addr.netmask}")
        else:
            yield ipaddress.IPv4Interface(addr.address)


def iter_interface_addresses(up_only: bool = False) -> Iterator[Tuple[str, ipaddress.IPv4Interface]]:
    """
    Yield (interface name, IPv4 interface address) for every interface.

    An interface whose addresses cannot be read is logged and skipped.
    """
    stats = psutil.net_if_stats() if up_only else {}

    for name, addrs in psutil.net_if_addrs().items():
        if up_only:
            st = stats.get(name)
            if st is None or not st.isup:
                continue
        try:
            found = list(_ipv4_interfaces(addrs))
        except (ValueError, TypeError) as e:
            logger.warning(f"Failed to get addresses for interface {name}: {e}")
            continue
        for iface in found:
            yield name, iface


def address_for_gateway(gateway: ipaddress.IPv4Address) -> str:
    """Return the local address on the same subnet as `gateway`."""
    for name, iface in iter_interface_addresses(up_only=True):
        ip = iface.ip
        if not _is_global_unicast(ip):
            continue
        if gateway in iface.network:
            logger.debug(f"Using {ip} on {name} (network {iface.network})")
            return str(ip)

    raise NoRouteFound(f"no local IPv4 address found in the same subnet as gateway {gateway}")


def first_lan_address() -> str:
    """First non-loopback IPv4 address of any interface, or "localhost"."""
    for name, iface in iter_interface_addresses():
        ip = iface.ip
        if ip.is_loopback or ip.is_link_local:
            continue
        logger.debug(f"Using first LAN address {ip} on {name}")
        return str(ip)
    return FALLBACK_ADDRESS


def resolve_lan_address() -> str:
    """
    Resolve the address LAN clients should use to reach this host.

    Raises NoRouteFound when a gateway exists but no interface is on its subnet.
    """
    try:
        gateway = discover_gateway()
    except GatewayNotFound as e:
        logger.warning(f"{e}, falling back to first interface address")
        return first_lan_address()
    return address_for_gateway(gateway)
