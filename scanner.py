# scanner.py
# TCP connect probing and the bounded, concurrent scan coordinator

from __future__ import annotations
import concurrent.futures
import errno
import logging
import queue
import socket
import threading
import time
from typing import Callable, Iterator, List, Mapping, Optional, Tuple, Union

from config import DEFAULT_CONCURRENCY, DEFAULT_TIMEOUT, InputError, parse_target, valid_timeout
from governor import ConcurrencyGovernor
from models import PortRange, PortState, ProbeResult, ScanReport, Target
from services import SERVICES, lookup

logger = logging.getLogger(__name__)

# Local resource exhaustion rather than anything the target did
_EXHAUSTION_ERRNOS = {errno.EMFILE, errno.ENFILE, errno.ENOBUFS}

Prober = Callable[[Target, int, float], PortState]


def probe_port(target: Target, port: int, timeout: float) -> PortState:
    """
    Single TCP connect attempt, closed right away on success.
    Refused, timed out, unreachable: all CLOSED_OR_FILTERED.
    """
    if not valid_timeout(timeout):
        raise ValueError(f"Probe timeout must be a finite number > 0 seconds (got {timeout})")
    try:
        with socket.create_connection((str(target), port), timeout=timeout):
            return PortState.OPEN
    except OSError as e:
        if e.errno in _EXHAUSTION_ERRNOS:
            logger.warning("Port %d: local resource exhaustion (%s)", port, e)
        else:
            logger.debug("Port %d: %s", port, e or type(e).__name__)
        return PortState.CLOSED_OR_FILTERED


class Scanner:
    """
    Drives one scan of a port range against a single target.

    Ports are dispatched in ascending order, each behind a governor slot.
    Finished probes give their slot back and post to a queue that only this
    coordinator reads, so results are gathered by a single writer. Streaming
    consumers use iter_results() (completion order); run() returns the
    report sorted by port.
    """

    def __init__(
        self,
        target: Union[str, Target],
        ports: Union[PortRange, Tuple[int, int]],
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout: float = DEFAULT_TIMEOUT,
        services: Mapping[int, str] = SERVICES,
        prober: Prober = probe_port,
        on_result: Optional[Callable[[ProbeResult], None]] = None,
    ):
        self.target = parse_target(target) if isinstance(target, str) else target
        if not isinstance(ports, PortRange):
            try:
                ports = PortRange(*ports)
            except ValueError as e:
                raise InputError(str(e)) from e
        self.ports = ports
        if concurrency < 1:
            raise InputError(f"Concurrency must be >= 1 (got {concurrency})")
        if not valid_timeout(timeout):
            raise InputError(f"Timeout must be a finite number > 0 seconds (got {timeout})")
        self.concurrency = concurrency
        self.timeout = timeout
        self.services = services
        self.prober = prober
        self.on_result = on_result
        self.governor = ConcurrencyGovernor(concurrency)

        self.completed = 0
        self.elapsed_s = 0.0
        self._cancel = threading.Event()
        self._started = False

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Stop dispatching; probes already running finish within their timeout."""
        if not self._cancel.is_set():
            logger.info("Cancellation requested after %d/%d probes", self.completed, len(self.ports))
        self._cancel.set()

    def _probe(self, port: int) -> ProbeResult:
        start = time.perf_counter()
        state = self.prober(self.target, port, self.timeout)
        return ProbeResult(
            port=port,
            state=state,
            service=lookup(port, self.services),
            elapsed_s=round(time.perf_counter() - start, 4),
        )

    def _collect(self, port: int, fut: concurrent.futures.Future) -> ProbeResult:
        try:
            result = fut.result()
        except Exception:
            logger.exception("Probe of port %d raised; recording as closed/filtered", port)
            result = ProbeResult(
                port=port,
                state=PortState.CLOSED_OR_FILTERED,
                service=lookup(port, self.services),
            )

        self.completed += 1
        if self.on_result:
            try:
                self.on_result(result)
            except Exception:
                logger.exception("Result callback failed for port %d", port)
        return result

    def iter_results(self) -> Iterator[ProbeResult]:
        if self._started:
            raise RuntimeError("A Scanner can only run once")
        self._started = True

        start_all = time.perf_counter()
        done: "queue.Queue[Tuple[int, concurrent.futures.Future]]" = queue.Queue()
        dispatched = 0
        received = 0

        # Never more threads than ports, however high the limit
        workers = max(1, min(self.concurrency, len(self.ports)))
        logger.info(
            "Scanning %s ports %s (limit=%d, workers=%d, timeout=%.2fs)",
            self.target, self.ports, self.concurrency, workers, self.timeout,
        )

        with concurrent.futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix="probe") as pool:
            for port in self.ports:
                if self._cancel.is_set():
                    break
                # Saturated: every slot holder will post once it releases, so wait on results
                while not self.governor.acquire(blocking=False):
                    yield self._collect(*done.get())
                    received += 1
                if self._cancel.is_set():
                    self.governor.release()
                    break

                fut = self.governor.dispatch(pool, self._probe, port, acquired=True)
                # Registered after the governor's release callback, so the slot is free before we see it
                fut.add_done_callback(lambda f, p=port: done.put((p, f)))
                dispatched += 1

            while received < dispatched:
                yield self._collect(*done.get())
                received += 1

        self.elapsed_s = time.perf_counter() - start_all
        logger.info(
            "Scan of %s finished: %d/%d probes in %.2fs (peak in flight %d)",
            self.target, received, len(self.ports), self.elapsed_s, self.governor.peak,
        )

    def run(self) -> ScanReport:
        results: List[ProbeResult] = list(self.iter_results())
        return ScanReport(
            target=self.target,
            ports=self.ports,
            results=tuple(results),
            elapsed_s=self.elapsed_s,
            cancelled=self.cancelled and len(results) < len(self.ports),
        )


def scan_ports(
    target: Union[str, Target],
    start: int,
    end: int,
    concurrency: int = DEFAULT_CONCURRENCY,
    timeout: float = DEFAULT_TIMEOUT,
    services: Mapping[int, str] = SERVICES,
    prober: Prober = probe_port,
    on_result: Optional[Callable[[ProbeResult], None]] = None,
) -> ScanReport:
    """
    TCP connect-scan of [start, end]. Calls on_result(result) for each port if provided.
    Returns the report sorted by port.
    """
    return Scanner(
        target,
        (start, end),
        concurrency=concurrency,
        timeout=timeout,
        services=services,
        prober=prober,
        on_result=on_result,
    ).run()
