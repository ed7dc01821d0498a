import ipaddress
import socket
import threading

import pytest

from config import InputError
from models import PortRange, PortState
from scanner import Scanner, probe_port, scan_ports

LOOPBACK = ipaddress.ip_address("127.0.0.1")


@pytest.mark.parametrize("start,end,limit", [(1, 1, 1), (1, 10, 1), (1, 100, 7), (20, 300, 50), (1, 50, 500)])
def test_one_result_per_port(counting_prober, start, end, limit):
    prober = counting_prober(delay=0.001)
    report = scan_ports("127.0.0.1", start, end, concurrency=limit, prober=prober)

    ports = [r.port for r in report.results]
    assert ports == list(range(start, end + 1))
    assert sorted(prober.calls) == ports
    assert report.total == end - start + 1
    assert report.complete and not report.cancelled


@pytest.mark.parametrize("limit", [1, 2, 5, 16])
def test_in_flight_never_exceeds_limit(counting_prober, limit):
    prober = counting_prober(delay=0.005)
    scanner = Scanner("127.0.0.1", (1, 80), concurrency=limit, prober=prober)
    scanner.run()
    assert prober.peak <= limit
    assert scanner.governor.peak <= limit
    assert scanner.governor.in_flight == 0


def test_limit_one_is_sequential(counting_prober):
    prober = counting_prober()
    report = scan_ports("127.0.0.1", 1, 10, concurrency=1, prober=prober)
    assert prober.peak == 1
    assert prober.calls == list(range(1, 11))
    assert report.total == 10


def test_limit_larger_than_range_does_not_overallocate(counting_prober):
    prober = counting_prober()
    scanner = Scanner("127.0.0.1", (1, 3), concurrency=10000, prober=prober)
    report = scanner.run()
    assert report.total == 3
    assert scanner.governor.peak <= 3


def test_labels_and_states(counting_prober):
    prober = counting_prober(open_ports={22, 9999})
    report = scan_ports("127.0.0.1", 20, 25, prober=prober)
    by_port = {r.port: r for r in report.results}
    assert by_port[22].state is PortState.OPEN
    assert by_port[22].service == "SSH"
    assert by_port[21].state is PortState.CLOSED_OR_FILTERED
    assert by_port[24].service is None
    assert report.open_ports() == [22]


def test_streaming_yields_every_port_once(counting_prober):
    prober = counting_prober(delay=0.002)
    scanner = Scanner("127.0.0.1", (1, 200), concurrency=25, prober=prober)
    seen = [r.port for r in scanner.iter_results()]
    assert sorted(seen) == list(range(1, 201))
    assert len(set(seen)) == len(seen)
    assert scanner.completed == 200


def test_progress_callback_sees_every_result(counting_prober):
    seen = []
    scan_ports("127.0.0.1", 1, 40, concurrency=4, prober=counting_prober(), on_result=seen.append)
    assert sorted(r.port for r in seen) == list(range(1, 41))


def test_callback_errors_do_not_abort_scan(counting_prober):
    def bad_callback(result):
        raise RuntimeError("render failed")

    report = scan_ports("127.0.0.1", 1, 5, prober=counting_prober(), on_result=bad_callback)
    assert report.total == 5


def test_failing_prober_is_recorded_as_closed():
    def flaky(target, port, timeout):
        if port % 2:
            raise RuntimeError("unexpected")
        return PortState.OPEN

    scanner = Scanner("127.0.0.1", (1, 20), concurrency=3, prober=flaky)
    report = scanner.run()
    assert report.total == 20
    assert report.open_ports() == list(range(2, 21, 2))
    assert scanner.governor.in_flight == 0


def test_cancel_produces_partial_report(counting_prober):
    prober = counting_prober(delay=0.01)
    scanner = Scanner("127.0.0.1", (1, 1000), concurrency=5, prober=prober)

    def stop_early(result):
        if scanner.completed >= 20:
            scanner.cancel()

    scanner.on_result = stop_early
    report = scanner.run()

    assert report.cancelled
    assert 20 <= report.total < 1000
    ports = [r.port for r in report.results]
    assert ports == sorted(set(ports))
    assert len(prober.calls) == report.total


def test_scanner_runs_once(counting_prober):
    scanner = Scanner("127.0.0.1", (1, 2), prober=counting_prober())
    scanner.run()
    with pytest.raises(RuntimeError):
        scanner.run()


@pytest.mark.parametrize(
    "target,ports,limit,timeout",
    [
        ("not-an-ip", (1, 10), 1, 0.5),
        ("127.0.0.1", (100, 50), 1, 0.5),
        ("127.0.0.1", (1, 70000), 1, 0.5),
        ("127.0.0.1", (1, 10), 0, 0.5),
        ("127.0.0.1", (1, 10), 1, 0),
        ("127.0.0.1", (1, 10), 1, float("nan")),
        ("127.0.0.1", (1, 10), 1, float("inf")),
    ],
)
def test_invalid_input_rejected_before_probing(counting_prober, target, ports, limit, timeout):
    prober = counting_prober()
    with pytest.raises(InputError):
        Scanner(target, ports, concurrency=limit, timeout=timeout, prober=prober)
    assert prober.calls == []


@pytest.mark.parametrize("timeout", [0, -1.0, float("nan"), float("inf")])
def test_probe_port_requires_finite_timeout(timeout):
    with pytest.raises(ValueError):
        probe_port(LOOPBACK, 80, timeout)


def test_probe_port_open_and_closed(listener, closed_port):
    assert probe_port(LOOPBACK, listener, 1.0) is PortState.OPEN
    assert probe_port(LOOPBACK, closed_port, 1.0) is PortState.CLOSED_OR_FILTERED


def test_loopback_end_to_end(listener, closed_port):
    low = max(1, listener - 5)
    high = min(65535, listener + 5)
    report = Scanner(
        "127.0.0.1",
        PortRange(low, high),
        concurrency=4,
        timeout=1.0,
        services={listener: "HTTP"},
    ).run()

    by_port = {r.port: r for r in report.results}
    assert report.total == high - low + 1
    assert by_port[listener].is_open
    assert by_port[listener].service == "HTTP"
    if closed_port in by_port:
        assert not by_port[closed_port].is_open


def test_loopback_ipv6():
    if not socket.has_ipv6:
        pytest.skip("no IPv6 support")
    srv = socket.socket(socket.AF_INET6, socket.SOCK_STREAM)
    try:
        srv.bind(("::1", 0))
    except OSError:
        srv.close()
        pytest.skip("IPv6 loopback unavailable")
    srv.listen(4)
    port = srv.getsockname()[1]
    try:
        report = scan_ports("::1", port, port, timeout=1.0)
    finally:
        srv.close()
    assert report.open_ports() == [port]


def test_same_classification_on_repeat(listener):
    first = scan_ports("127.0.0.1", listener, listener, timeout=1.0)
    second = scan_ports("127.0.0.1", listener, listener, timeout=1.0)
    assert [r.state for r in first.results] == [r.state for r in second.results]


def test_first_hundred_ports_with_only_http_open(counting_prober):
    prober = counting_prober(open_ports={80}, delay=0.001)
    report = Scanner("127.0.0.1", (1, 100), concurrency=20, prober=prober).run()

    assert report.total == 100
    assert report.open_ports() == [80]
    assert report.open_results()[0].service == "HTTP"
    closed = [r for r in report.results if not r.is_open]
    assert len(closed) == 99
    assert all(r.state is PortState.CLOSED_OR_FILTERED for r in closed)
