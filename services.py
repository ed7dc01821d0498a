# services.py
# Static port -> service label table

from __future__ import annotations
from types import MappingProxyType
from typing import Mapping, Optional

# Well-known TCP services; labels only, no fingerprinting
SERVICES: Mapping[int, str] = MappingProxyType({
    21: "FTP",
    22: "SSH",
    23: "TELNET",
    25: "SMTP",
    53: "DNS",
    80: "HTTP",
    110: "POP3",
    143: "IMAP",
    443: "HTTPS",
    3306: "MySQL",
    6379: "Redis",
    8080: "HTTP-ALT",
})


def lookup(port: int, table: Mapping[int, str] = SERVICES) -> Optional[str]:
    return table.get(port)
