"""Data models for rbdqemu."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional, Tuple

from rbdqemu.constants import (
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_MAX_BYTES,
    DEFAULT_SSH_USER,
    QEMU_IMG,
    QEMU_SYSTEM,
)
from rbdqemu.exceptions import RemoteStderrFault, TransportFault


@dataclass(frozen=True)
class ClusterConfig:
    rbd_user: str
    ceph_hosts: Tuple[str, ...]
    qemu_hosts: Tuple[str, ...]
    ssh_private_key: str
    ssh_user: str = DEFAULT_SSH_USER
    qemu_system: str = QEMU_SYSTEM
    qemu_img: str = QEMU_IMG
    log_file: Path = DEFAULT_LOG_FILE
    log_max_bytes: int = DEFAULT_LOG_MAX_BYTES

    @property
    def storage_admin_host(self) -> str:
        """All storage commands go to the first ceph host; there is no failover."""
        return self.ceph_hosts[0]


@dataclass
class CommandResult:
    stdout: str = ""
    stderr: str = ""
    fault: Optional[TransportFault] = None

    @property
    def failed(self) -> bool:
        return self.fault is not None or bool(self.stderr)

    def raise_for_fault(self) -> None:
        """Raise if the command failed to run or complained on stderr."""
        if self.fault is not None:
            raise self.fault
        if self.stderr:
            raise RemoteStderrFault(self.stderr)


class VMLocation(NamedTuple):
    host: str
    pid: int

    @property
    def found(self) -> bool:
        return bool(self.host)


NOT_FOUND = VMLocation(host="", pid=0)


class HostMemory(NamedTuple):
    host: str
    available_kb: Optional[int]  # None when the probe failed

    @property
    def available_mb(self) -> int:
        return (self.available_kb or 0) // 1024


@dataclass(frozen=True)
class CreateOutcome:
    """Result of a create: either an identifier or the reason it was deferred."""

    identifier: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def created(cls, identifier: str) -> "CreateOutcome":
        return cls(identifier=identifier)

    @classmethod
    def deferred(cls, reason: str) -> "CreateOutcome":
        return cls(reason=reason)

    @property
    def is_created(self) -> bool:
        return self.identifier is not None

    @property
    def is_deferred(self) -> bool:
        return self.identifier is None


@dataclass
class ResourceData:
    """Attributes of one resource plus the identifier the orchestrator tracks.

    An empty identifier means the resource is absent (or was never created).
    """

    attributes: Dict[str, Any] = field(default_factory=dict)
    id: str = ""

    def get(self, key: str) -> Any:
        return self.attributes[key]

    def set_id(self, identifier: str) -> None:
        self.id = identifier

    def clear_id(self) -> None:
        self.id = ""


@dataclass(frozen=True)
class ImageSpec:
    pool: str
    name: str
    size: str

    @property
    def identifier(self) -> str:
        return f"{self.pool}/{self.name}"

    @classmethod
    def from_data(cls, data: ResourceData) -> "ImageSpec":
        return cls(pool=data.get("osd_pool"), name=data.get("img_name"), size=data.attributes.get("img_size", ""))


@dataclass(frozen=True)
class VMSpec:
    name: str
    cpus: int
    mem_mb: int
    vlan: int
    mac: str
    vnc: str
    pool: str
    image: str

    @classmethod
    def from_data(cls, data: ResourceData) -> "VMSpec":
        return cls(
            name=data.get("name"),
            cpus=data.get("cpus"),
            mem_mb=data.get("mem_mb"),
            vlan=data.get("vlan"),
            mac=data.get("mac"),
            vnc=data.get("vnc"),
            pool=data.get("osd_pool"),
            image=data.get("img_name"),
        )
