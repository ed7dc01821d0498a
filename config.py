# config.py
# Central configuration and input validation for portsweep

from __future__ import annotations
import ipaddress
import math
from dataclasses import dataclass
from typing import Optional, Union

from models import MAX_PORT, PortRange, Target

DEFAULT_START = 1
DEFAULT_END = 1024
DEFAULT_CONCURRENCY = 500
# Seconds per connection attempt
DEFAULT_TIMEOUT = 0.5

VERSION = "1.0.0"


class InputError(ValueError):
    """Bad target, port range, concurrency or timeout. Raised before any probing."""


@dataclass
class ScanConfig:
    target: Target
    start_port: int = DEFAULT_START
    end_port: int = DEFAULT_END

    # Concurrency (upper bound on probes in flight)
    concurrency: int = DEFAULT_CONCURRENCY

    # Timeouts (seconds)
    connect_timeout: float = DEFAULT_TIMEOUT

    # Output
    show_closed: bool = False
    colorize: bool = True
    progress: bool = True
    save_json_path: Optional[str] = None
    save_csv_path: Optional[str] = None
    save_text_path: Optional[str] = None

    @property
    def port_range(self) -> PortRange:
        return PortRange(self.start_port, self.end_port)


def valid_timeout(value: Optional[float]) -> bool:
    """Finite and strictly positive; nan and inf are rejected."""
    return value is not None and math.isfinite(value) and value > 0


def parse_target(value: str) -> Target:
    try:
        return ipaddress.ip_address(value.strip())
    except ValueError:
        raise InputError(f"Invalid IP address: {value!r}") from None


def _parse_int(value: Union[str, int, None], name: str, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InputError(f"Invalid {name}: {value!r} is not an integer") from None


def build_config(
    target: str,
    start: Union[str, int, None] = None,
    end: Union[str, int, None] = None,
    concurrency: Union[str, int, None] = None,
    timeout: Optional[float] = None,
    **options,
) -> ScanConfig:
    """
    Turn raw CLI values into a validated ScanConfig.
    Raises InputError for anything that would make the scan meaningless.
    """
    ip = parse_target(target)
    start_port = _parse_int(start, "start port", DEFAULT_START)
    end_port = _parse_int(end, "end port", DEFAULT_END)
    workers = _parse_int(concurrency, "concurrency", DEFAULT_CONCURRENCY)

    if start_port < 1 or end_port > MAX_PORT or start_port > end_port:
        raise InputError(f"Invalid port range {start_port}-{end_port} (1-{MAX_PORT}, start <= end)")
    if workers < 1:
        raise InputError(f"Concurrency must be >= 1 (got {workers})")

    connect_timeout = DEFAULT_TIMEOUT if timeout is None else float(timeout)
    if not valid_timeout(connect_timeout):
        raise InputError(f"Timeout must be a finite number > 0 seconds (got {connect_timeout})")

    return ScanConfig(
        target=ip,
        start_port=start_port,
        end_port=end_port,
        concurrency=workers,
        connect_timeout=connect_timeout,
        **options,
    )
