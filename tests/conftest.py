"""Shared test fixtures and an in-memory stand-in for the ssh-reachable cluster."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Set, Tuple

import pytest
import yaml

from rbdqemu.exceptions import TransportFault
from rbdqemu.models import ClusterConfig, CommandResult, ResourceData

_CREATE_RE = re.compile(r"^rbd create --pool (\S+) --image (\S+) --size (\S+) && rbd feature disable (\S+) ")
_LS_RE = re.compile(r"^rbd ls -p (\S+)$")
_RM_RE = re.compile(r"^rbd rm --no-progress (\S+)/(\S+)$")
_GREP_RE = re.compile(r"grep -w '([^']+)'")
_KILL_RE = re.compile(r"^kill (\d+)$")


class FakeCluster:
    """Answers the commands rbdqemu issues as a real ceph + qemu cluster would.

    ``fail()`` scripts an override for any command containing a substring.
    Every call is recorded in ``calls`` as ``(host, command)``.
    """

    def __init__(self, memory_kb: Optional[Dict[str, int]] = None) -> None:
        self.volumes: Dict[str, Set[str]] = {}
        self.memory_kb: Dict[str, int] = dict(memory_kb or {})
        self.processes: Dict[str, Dict[int, str]] = {}
        self.unreachable: Set[str] = set()
        self.calls: List[Tuple[str, str]] = []
        self._overrides: List[Tuple[str, Optional[str], CommandResult]] = []
        self._next_pid = 2533650

    def fail(self, needle: str, host: Optional[str] = None, stdout: str = "", stderr: str = "", fault: bool = False):
        result = CommandResult(
            stdout=stdout,
            stderr=stderr,
            fault=TransportFault(f"scripted failure for {needle}") if fault else None,
        )
        self._overrides.append((needle, host, result))
        return self

    def add_process(self, host: str, args: str, pid: Optional[int] = None) -> int:
        if pid is None:
            pid = self._next_pid
            self._next_pid += 1
        self.processes.setdefault(host, {})[pid] = args
        return pid

    def commands(self, host: Optional[str] = None) -> List[str]:
        return [cmd for h, cmd in self.calls if host is None or h == host]

    def run(self, host: str, command: str) -> CommandResult:
        self.calls.append((host, command))
        for needle, only_host, result in self._overrides:
            if needle in command and (only_host is None or only_host == host):
                return CommandResult(stdout=result.stdout, stderr=result.stderr, fault=result.fault)
        if host in self.unreachable:
            return CommandResult(fault=TransportFault(f"cannot connect to {host}"))

        match = _CREATE_RE.match(command)
        if match:
            pool, name = match.group(1), match.group(2)
            images = self.volumes.setdefault(pool, set())
            if name in images:
                return CommandResult(stderr="rbd: create error: (17) File exists")
            images.add(name)
            return CommandResult()
        match = _LS_RE.match(command)
        if match:
            return CommandResult(stdout="\n".join(sorted(self.volumes.get(match.group(1), set()))))
        match = _RM_RE.match(command)
        if match:
            pool, name = match.groups()
            if name not in self.volumes.get(pool, set()):
                return CommandResult(stderr="rbd: delete error: (2) No such file or directory")
            self.volumes[pool].discard(name)
            return CommandResult()
        if command.startswith("grep MemAvailable"):
            if host not in self.memory_kb:
                return CommandResult(fault=TransportFault("exit status 1"))
            return CommandResult(stdout=f"MemAvailable:     {self.memory_kb[host]} kB")
        if command.startswith("ps axwww"):
            vm_id = _GREP_RE.search(command).group(1)
            lines = [
                f"{pid} {args}"
                for pid, args in self.processes.get(host, {}).items()
                if re.search(rf"(?<![\w-]){re.escape(vm_id)}(?![\w-])", args)
            ]
            return CommandResult(stdout="\n".join(lines))
        match = _KILL_RE.match(command)
        if match:
            pid = int(match.group(1))
            if self.processes.get(host, {}).pop(pid, None) is None:
                return CommandResult(stderr=f"kill: ({pid}) - No such process", fault=TransportFault("exit status 1"))
            return CommandResult()
        if "qemu-img create" in command:
            return CommandResult()
        if "qemu-system" in command and "-daemonize" in command:
            self.add_process(host, command)
            return CommandResult()
        return CommandResult(stderr=f"bash: unknown command: {command}")


@pytest.fixture
def cluster_config(tmp_path) -> ClusterConfig:
    """Three ceph admin hosts and three hypervisors, as in the reference deployment."""
    return ClusterConfig(
        rbd_user="admin",
        ceph_hosts=("192.168.10.20", "192.168.10.18", "192.168.10.15"),
        qemu_hosts=("192.168.3.100", "192.168.3.101", "192.168.3.102"),
        ssh_private_key="/root/.ssh/id_ed25519",
        log_file=tmp_path / "provider.log",
    )


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster(
        memory_kb={
            "192.168.3.100": 2048 * 1024,
            "192.168.3.101": 4096 * 1024,
            "192.168.3.102": 1024 * 1024,
        }
    )


@pytest.fixture
def image_data() -> ResourceData:
    return ResourceData(attributes={"osd_pool": "rbd", "img_name": "helloImg", "img_size": "6M"})


@pytest.fixture
def vm_data() -> ResourceData:
    return ResourceData(
        attributes={
            "name": "helloVm",
            "cpus": 1,
            "mem_mb": 2048,
            "vlan": 10,
            "mac": "de:ad:be:ef:ca:fe",
            "vnc": ":10",
            "osd_pool": "rbd",
            "img_name": "helloImg",
        }
    )


@pytest.fixture
def cluster_yaml(tmp_path):
    """Write a cluster config file shaped like the provider block."""

    def _write(**overrides):
        payload = {
            "ceph_rbduser": "admin",
            "ceph_hosts": ["192.168.10.20", "192.168.10.18", "192.168.10.15"],
            "qemu_hosts": ["192.168.3.100", "192.168.3.101", "192.168.3.102"],
            "ssh_private_key": "/root/.ssh/id_ed25519",
            "log_file": str(tmp_path / "provider.log"),
        }
        for key, value in overrides.items():
            if value is None:
                payload.pop(key, None)
            else:
                payload[key] = value

        path = tmp_path / "cluster.yaml"
        path.write_text(yaml.safe_dump(payload))
        return path

    return _write


@pytest.fixture
def clean_env(monkeypatch):
    """Clear the environment variables the config loader reads."""
    for key in ("RBDQEMU_CONFIG", "RBDQEMU_SSH_USER", "RBDQEMU_LOG_FILE"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def detach_log_file():
    """Drop any provider log file handler a test installed."""
    yield
    from rbdqemu import utils

    for handler in list(utils._file_logger.handlers):
        utils._file_logger.removeHandler(handler)
        handler.close()
