import ipaddress
import socket
import subprocess
from collections import namedtuple

import pytest

from streamer import network
from streamer.errors import GatewayNotFound, NoRouteFound


Addr = namedtuple('Addr', 'family address netmask broadcast ptp')
Stats = namedtuple('Stats', 'isup')


def ipv4(address, netmask):
    return Addr(socket.AF_INET, address, netmask, None, None)


LOOPBACK = {'lo': [ipv4('127.0.0.1', '255.0.0.0')]}


@pytest.fixture
def interfaces(monkeypatch):
    """Install fake interfaces: install(addrs, down=()) ."""
    def install(addrs, down=()):
        stats = {name: Stats(name not in down) for name in addrs}
        monkeypatch.setattr(network.psutil, 'net_if_addrs', lambda: addrs)
        monkeypatch.setattr(network.psutil, 'net_if_stats', lambda: stats)
    return install


def test_picks_interface_on_gateway_subnet(interfaces):
    interfaces({
        **LOOPBACK,
        'eth0': [ipv4('10.0.0.5', '255.255.255.0')],
        'wlan0': [
            Addr(socket.AF_INET6, 'fe80::1', 'ffff:ffff:ffff:ffff::', None, None),
            ipv4('192.168.1.23', '255.255.255.0'),
        ],
    })
    gateway = ipaddress.IPv4Address('192.168.1.1')
    assert network.address_for_gateway(gateway) == '192.168.1.23'


def test_single_interface_on_gateway_subnet(interfaces):
    interfaces({**LOOPBACK, 'eth0': [ipv4('172.16.4.20', '255.255.0.0')]})
    assert network.address_for_gateway(ipaddress.IPv4Address('172.16.0.1')) == '172.16.4.20'


def test_down_interface_is_skipped(interfaces):
    interfaces({'eth0': [ipv4('192.168.1.23', '255.255.255.0')]}, down={'eth0'})
    with pytest.raises(NoRouteFound):
        network.address_for_gateway(ipaddress.IPv4Address('192.168.1.1'))


def test_link_local_address_is_not_used(interfaces):
    interfaces({'eth0': [ipv4('169.254.10.10', '255.255.0.0')]})
    with pytest.raises(NoRouteFound):
        network.address_for_gateway(ipaddress.IPv4Address('169.254.0.1'))


def test_no_interface_on_gateway_subnet(interfaces):
    interfaces({**LOOPBACK, 'eth0': [ipv4('10.0.0.5', '255.255.255.0')]})
    with pytest.raises(NoRouteFound, match='192.168.1.1'):
        network.address_for_gateway(ipaddress.IPv4Address('192.168.1.1'))


def test_broken_interface_does_not_stop_the_scan(interfaces):
    interfaces({
        'bad0': [ipv4('192.168.1.50', 'not-a-mask')],
        'eth0': [ipv4('192.168.1.23', '255.255.255.0')],
    })
    assert network.address_for_gateway(ipaddress.IPv4Address('192.168.1.1')) == '192.168.1.23'


def test_fallback_returns_first_lan_address(interfaces):
    interfaces({**LOOPBACK, 'eth0': [ipv4('10.0.0.5', '255.255.255.0')]})
    assert network.first_lan_address() == '10.0.0.5'


def test_fallback_skips_broken_interface(interfaces):
    interfaces({
        **LOOPBACK,
        'bad0': [ipv4('10.9.9.9', 'not-a-mask')],
        'eth0': [ipv4('10.0.0.5', '255.255.255.0')],
    })
    assert network.first_lan_address() == '10.0.0.5'


def test_fallback_ignores_interface_state(interfaces):
    interfaces({**LOOPBACK, 'eth0': [ipv4('10.0.0.5', '255.255.255.0')]}, down={'eth0'})
    assert network.first_lan_address() == '10.0.0.5'


def test_fallback_with_only_loopback_is_localhost(interfaces):
    interfaces(LOOPBACK)
    assert network.first_lan_address() == 'localhost'


def test_resolve_uses_gateway_when_available(interfaces, monkeypatch):
    interfaces({
        **LOOPBACK,
        'eth0': [ipv4('10.0.0.5', '255.255.255.0')],
        'wlan0': [ipv4('192.168.1.23', '255.255.255.0')],
    })
    monkeypatch.setattr(network, 'discover_gateway', lambda: ipaddress.IPv4Address('192.168.1.1'))
    assert network.resolve_lan_address() == '192.168.1.23'


def test_resolve_falls_back_without_gateway(interfaces, monkeypatch):
    interfaces(LOOPBACK)

    def no_gateway():
        raise GatewayNotFound("no gateway")

    monkeypatch.setattr(network, 'discover_gateway', no_gateway)
    assert network.resolve_lan_address() == 'localhost'


def test_resolve_propagates_no_route(interfaces, monkeypatch):
    interfaces({**LOOPBACK, 'eth0': [ipv4('10.0.0.5', '255.255.255.0')]})
    monkeypatch.setattr(network, 'discover_gateway', lambda: ipaddress.IPv4Address('192.168.1.1'))
    with pytest.raises(NoRouteFound):
        network.resolve_lan_address()


ROUTE_TABLE = (
    "Iface\tDestination\tGateway \tFlags\tRefCnt\tUse\tMetric\tMask\t\tMTU\tWindow\tIRTT\n"
    "eth0\t0001A8C0\t00000000\t0001\t0\t0\t100\t00FFFFFF\t0\t0\t0\n"
    "eth0\t00000000\t0101A8C0\t0003\t0\t0\t100\t00000000\t0\t0\t0\n"
)


def test_gateway_from_proc_route(tmp_path):
    route_file = tmp_path / 'route'
    route_file.write_text(ROUTE_TABLE)
    assert network._gateway_from_proc(route_file) == ipaddress.IPv4Address('192.168.1.1')


def test_gateway_from_proc_without_default_route(tmp_path):
    route_file = tmp_path / 'route'
    route_file.write_text("\n".join(ROUTE_TABLE.splitlines()[:2]))
    assert network._gateway_from_proc(route_file) is None


def test_gateway_from_proc_missing_file(tmp_path):
    assert network._gateway_from_proc(tmp_path / 'missing') is None


def test_gateway_from_route_command(monkeypatch):
    def fake_run(cmd, **kwargs):
        if cmd[0] == 'ip':
            raise FileNotFoundError(cmd[0])
        if cmd[:2] == ['route', '-n']:
            out = "   route to: default\ndestination: default\n    gateway: 10.1.0.1\n  interface: en0\n"
            return subprocess.CompletedProcess(cmd, 0, stdout=out, stderr='')
        return subprocess.CompletedProcess(cmd, 1, stdout='', stderr='')

    monkeypatch.setattr(network.subprocess, 'run', fake_run)
    assert network._gateway_from_commands() == ipaddress.IPv4Address('10.1.0.1')


def test_gateway_from_windows_route_print(monkeypatch):
    table = (
        "IPv4 Route Table\n"
        "Network Destination        Netmask          Gateway       Interface  Metric\n"
        "          0.0.0.0          0.0.0.0      192.168.0.1    192.168.0.104     35\n"
    )

    def fake_run(cmd, **kwargs):
        if cmd[:2] == ['route', 'print']:
            return subprocess.CompletedProcess(cmd, 0, stdout=table, stderr='')
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(network.subprocess, 'run', fake_run)
    assert network._gateway_from_commands() == ipaddress.IPv4Address('192.168.0.1')


def test_discover_gateway_raises_when_nothing_found(monkeypatch):
    monkeypatch.setattr(network, '_gateway_from_proc', lambda *a: None)
    monkeypatch.setattr(network, '_gateway_from_commands', lambda: None)
    with pytest.raises(GatewayNotFound):
        network.discover_gateway()
