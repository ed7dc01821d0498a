# models.py
# Scan data types: targets, port ranges, probe results and reports

from __future__ import annotations
import enum
import ipaddress
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

MAX_PORT = 65535

Target = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class PortState(enum.Enum):
    OPEN = "open"
    CLOSED_OR_FILTERED = "closed/filtered"


@dataclass(frozen=True)
class PortRange:
    """Inclusive range of TCP ports, 1 <= start <= end <= 65535."""

    start: int
    end: int

    def __post_init__(self):
        if self.start < 1:
            raise ValueError(f"Start port must be >= 1 (got {self.start})")
        if self.end > MAX_PORT:
            raise ValueError(f"End port must be <= {MAX_PORT} (got {self.end})")
        if self.start > self.end:
            raise ValueError(f"Start port {self.start} is greater than end port {self.end}")

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.start, self.end + 1))

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __contains__(self, port: object) -> bool:
        return isinstance(port, int) and self.start <= port <= self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class ProbeResult:
    port: int
    state: PortState
    service: Optional[str] = None
    elapsed_s: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.state is PortState.OPEN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "port": self.port,
            "state": self.state.value,
            "service": self.service,
            "elapsed_s": self.elapsed_s,
        }


@dataclass(frozen=True)
class ScanReport:
    """
    Finalized scan results. Results are kept sorted by ascending port,
    whatever order the probes completed in.
    """

    target: Target
    ports: PortRange
    results: Tuple[ProbeResult, ...] = field(default_factory=tuple)
    elapsed_s: float = 0.0
    cancelled: bool = False

    def __post_init__(self):
        ordered = tuple(sorted(self.results, key=lambda r: r.port))
        object.__setattr__(self, "results", ordered)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def complete(self) -> bool:
        return self.total == len(self.ports)

    def open_results(self) -> List[ProbeResult]:
        return [r for r in self.results if r.is_open]

    def open_ports(self) -> List[int]:
        return [r.port for r in self.results if r.is_open]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": str(self.target),
            "start_port": self.ports.start,
            "end_port": self.ports.end,
            "elapsed_s": round(self.elapsed_s, 4),
            "cancelled": self.cancelled,
            "scanned": self.total,
            "open_ports": self.open_ports(),
            "results": [r.to_dict() for r in self.results],
        }
