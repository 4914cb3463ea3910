"""
Detection — local addresses and default gateway.

File probes under /proc/net first; ``hostname -I`` is the fallback
when /proc is not readable.
"""

from __future__ import annotations

import ipaddress
from pathlib import Path

from doomsetup.core.services.detection.host import host_path, run_command


def parse_fib_trie(text: str) -> list[str]:
    """Local IPv4 host addresses from /proc/net/fib_trie, loopback excluded.

    An address is local when the line after it reads
    ``/32 host LOCAL``.
    """
    ips: list[str] = []
    lines = text.splitlines()
    for prev, line in zip(lines, lines[1:]):
        if "/32 host LOCAL" not in line:
            continue
        candidate = prev.strip().removeprefix("|-- ").strip()
        try:
            addr = ipaddress.IPv4Address(candidate)
        except ValueError:
            continue
        if not addr.is_loopback and str(addr) not in ips:
            ips.append(str(addr))
    return ips


def detect_local_ips(root: Path = Path("/")) -> list[str] | None:
    try:
        ips = parse_fib_trie(host_path(root, "/proc/net/fib_trie").read_text())
        if ips:
            return ips
    except OSError:
        pass

    output = run_command(["hostname", "-I"])
    if output is None:
        return None
    ips = []
    for token in output.split():
        try:
            addr = ipaddress.ip_address(token)
        except ValueError:
            continue
        if addr.version == 4 and not addr.is_loopback:
            ips.append(token)
    return ips


def parse_hex_ip(value: str) -> str:
    """Little-endian hex from /proc/net/route → dotted quad ("" if malformed)."""
    if len(value) != 8:
        return ""
    try:
        octets = [int(value[i:i + 2], 16) for i in range(0, 8, 2)]
    except ValueError:
        return ""
    return ".".join(str(o) for o in reversed(octets))


def detect_default_gateway(root: Path = Path("/")) -> str | None:
    try:
        text = host_path(root, "/proc/net/route").read_text()
    except OSError:
        return None

    for line in text.splitlines()[1:]:
        fields = line.split()
        if len(fields) >= 3 and fields[1] == "00000000":
            return parse_hex_ip(fields[2])
    return ""
