"""Global constants and command templates for rbdqemu."""

from __future__ import annotations

import os
import re
from pathlib import Path

PROVIDER_NAME = "rbdqemu"
IMAGE_RESOURCE = PROVIDER_NAME + "_image"
VM_RESOURCE = PROVIDER_NAME + "_vm"

# Every VM we launch is named "<prefix>-<name>" so it can be found in ps output.
VM_NAME_PREFIX = "tf"

DEFAULT_CONFIG_PATH = Path("/etc/rbdqemu/cluster.yaml")
DEFAULT_SSH_USER = "root"
DEFAULT_LOG_FILE = Path("provider.log")
DEFAULT_LOG_MAX_BYTES = 131072
LOG_ROTATED_SUFFIX = ".old"

QEMU_SYSTEM = "/usr/local/packages/qemu-4.1.0/bin/qemu-system-x86_64"
QEMU_IMG = "/usr/local/packages/qemu-4.1.0/bin/qemu-img"
TAP_SCRIPT = "/root/bin/add_tap{vlan}.sh"

RBD_DISABLED_FEATURES = ("object-map", "fast-diff", "deep-flatten")

MEMINFO_COMMAND = "grep MemAvailable /proc/meminfo"
PROCESS_SEARCH_COMMAND = "ps axwww -o 'pid args' | grep -v grep | grep -w '{vm_id}' ; /bin/true"

# Nominal requirement used when any hypervisor with free memory will do.
ANY_HYPERVISOR_MB = 1

# EX_TEMPFAIL from sysexits.h: create was deferred, try again later.
DEFERRED_EXIT_CODE = 75

TRUTHY = {"1", "true", "yes", "on"}
_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
DISK_SIZE_RE = re.compile(r"^\d+[KMGTkmgt]?$")
MAC_ADDRESS_RE = re.compile(r"^[0-9a-f]{2}(:[0-9a-f]{2}){5}$")
VNC_DISPLAY_RE = re.compile(r"^[A-Za-z0-9.\-]*:\d+(,[A-Za-z0-9=_.-]+)*$")
