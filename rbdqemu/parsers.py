"""Grammars for the text that rbd, /proc/meminfo and ps print on the remote hosts."""

from __future__ import annotations

import re
from typing import List, Optional

from rbdqemu.constants import VM_NAME_PREFIX
from rbdqemu.exceptions import ProbeParseError
from rbdqemu.utils import log

_WHITESPACE_RE = re.compile(r"[ \t]+")
NAME_FLAG = "-name"


def derive_vm_id(name: str) -> str:
    return f"{VM_NAME_PREFIX}-{name}"


def parse_volume_listing(stdout: str) -> List[str]:
    """``rbd ls -p <pool>`` prints one image name per line."""
    return stdout.splitlines()


def parse_available_kb(line: str) -> int:
    """Extract the counter from ``MemAvailable:     131744 kB``."""
    tokens = _WHITESPACE_RE.split(line.strip())
    if len(tokens) < 2 or tokens[0] != "MemAvailable:":
        raise ProbeParseError(f"unexpected meminfo line [{line}]")
    try:
        value = int(tokens[1])
    except ValueError:
        raise ProbeParseError(f"unexpected meminfo counter [{tokens[1]}]")
    if value < 0:
        raise ProbeParseError(f"negative meminfo counter [{value}]")
    return value


def match_vm_process(line: str, vm_id: str) -> Optional[int]:
    """Return the pid when ``line`` is the qemu process named ``vm_id``.

    Expected shape: ``<pid> <binary> -name <vm_id> ...``. Anything else is
    logged and reported as no match.
    """
    tokens = line.split()
    if len(tokens) < 4:
        if tokens:
            log("WARN", f"unexpected process [{line}]")
        return None
    if tokens[2] != NAME_FLAG or tokens[3] != vm_id:
        log("WARN", f"unexpected process [{line}]")
        return None
    try:
        return int(tokens[0])
    except ValueError:
        log("WARN", f"unexpected pid in process [{line}]")
        return None
