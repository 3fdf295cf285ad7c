"""Utility functions for rbdqemu."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, List, Optional

from rbdqemu.constants import (
    _LOG_VERBOSE,
    DISK_SIZE_RE,
    LOG_ROTATED_SUFFIX,
    MAC_ADDRESS_RE,
    NAME_RE,
    VNC_DISPLAY_RE,
)
from rbdqemu.exceptions import ValidationError

_file_logger = logging.getLogger("rbdqemu.provider")
_file_logger.setLevel(logging.DEBUG)
_file_logger.propagate = False

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "SUCCESS": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


class ProviderLogFormatter(logging.Formatter):
    def format(self, record):
        timestamp = self.formatTime(record, self.datefmt)
        return f"{timestamp} {record.module}.{record.funcName}:{record.lineno} {record.getMessage()}"


def _rotated_name(default_name: str) -> str:
    # RotatingFileHandler proposes "<file>.1"; keep a single "<file>.old" instead.
    return default_name[: default_name.rfind(".")] + LOG_ROTATED_SUFFIX


def configure_log_file(path: Path, max_bytes: int) -> Optional[logging.Handler]:
    """Append every log line to ``path``, rotating it to ``.old`` past ``max_bytes``."""
    for existing in list(_file_logger.handlers):
        _file_logger.removeHandler(existing)
        existing.close()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(str(path), maxBytes=max_bytes, backupCount=1)
    except OSError as exc:
        log("WARN", f"Cannot open {path} - {exc}")
        return None
    handler.namer = _rotated_name
    handler.setFormatter(ProviderLogFormatter(datefmt="%Y-%m-%dT%H:%M:%S%z"))
    _file_logger.addHandler(handler)
    return handler


def log(level: str, message: str) -> None:
    """Lightweight structured logging compatible with existing colour expectation."""
    if _file_logger.handlers:
        _file_logger.log(_LEVELS.get(level, logging.INFO), message, stacklevel=2)
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def parse_int(name: str, raw, min_val: int = 1, max_val: Optional[int] = None) -> int:
    if isinstance(raw, bool):
        raise ValidationError(f"{name} must be an integer (got '{raw}')")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise ValidationError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise ValidationError(f"{name} must be <= {max_val} (got {value})")
    return value


def validate_name(field: str, raw: str) -> str:
    """Pool, image and VM names end up inside shell commands; keep them plain."""
    if not NAME_RE.match(raw):
        raise ValidationError(
            f"Invalid {field} '{raw}'. Use letters, digits, '.', '_' or '-' (not leading)"
        )
    return raw


def validate_disk_size(raw: str) -> str:
    if not DISK_SIZE_RE.match(raw):
        raise ValidationError(
            f"Invalid size '{raw}'. Use a number with optional suffix: K, M, G, T (e.g. '6M')"
        )
    return raw


def validate_mac(raw: str) -> str:
    mac = raw.strip().lower()
    if not MAC_ADDRESS_RE.match(mac):
        raise ValidationError(f"Invalid MAC address '{raw}'. Expected format aa:bb:cc:dd:ee:ff")
    return mac


def validate_vnc_display(raw: str) -> str:
    if not VNC_DISPLAY_RE.match(raw):
        raise ValidationError(f"Invalid VNC display '{raw}'. Expected e.g. ':10'")
    return raw


def unique_hosts(hosts: Iterable[str]) -> List[str]:
    """Strip and de-duplicate host addresses, keeping first-seen order."""
    seen: List[str] = []
    for raw in hosts:
        host = str(raw).strip()
        if host and host not in seen:
            seen.append(host)
    return seen
