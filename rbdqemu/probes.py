"""Probers that derive resource state from remote command output."""

from __future__ import annotations

from typing import List

from rbdqemu.constants import MEMINFO_COMMAND, PROCESS_SEARCH_COMMAND
from rbdqemu.exceptions import ProbeParseError, RemoteStderrFault, TransportFault
from rbdqemu.models import NOT_FOUND, ClusterConfig, HostMemory, VMLocation
from rbdqemu.parsers import derive_vm_id, match_vm_process, parse_available_kb, parse_volume_listing
from rbdqemu.remote import RemoteExecutor
from rbdqemu.utils import log


class InventoryProber:
    """Answers whether a volume is listed in its pool."""

    def __init__(self, config: ClusterConfig, executor: RemoteExecutor) -> None:
        self.config = config
        self.executor = executor

    def volume_exists(self, pool: str, name: str) -> bool:
        rbd_cmd = f"rbd ls -p {pool}"
        log("DEBUG", f"{{{rbd_cmd}}}")
        result = self.executor.run(self.config.storage_admin_host, rbd_cmd)
        if result.fault is not None:
            raise TransportFault(f"ssh fault - {result.fault}")
        if result.stderr:
            raise RemoteStderrFault(f"rbd fault - {result.stderr}")

        for entry in parse_volume_listing(result.stdout):
            if entry == name:
                log("DEBUG", f"found '{name}'")
                return True
        return False


class ProcessProber:
    """Finds the hypervisor and pid of a VM by scanning process tables.

    Hosts are searched in configured order. The first host whose search
    fails aborts the whole scan.
    """

    def __init__(self, config: ClusterConfig, executor: RemoteExecutor) -> None:
        self.config = config
        self.executor = executor

    def locate(self, name: str) -> VMLocation:
        vm_id = derive_vm_id(name)
        log("INFO", f"searching for : {vm_id}")
        ssh_cmd = PROCESS_SEARCH_COMMAND.format(vm_id=vm_id)

        for host in self.config.qemu_hosts:
            result = self.executor.run(host, ssh_cmd)
            if result.fault is not None:
                log("WARN", f"unable to search {host} - {result.fault}")
                raise result.fault
            if result.stderr:
                log("WARN", f"error on {host} - {result.stderr}")
                raise RemoteStderrFault(result.stderr)

            for line in result.stdout.splitlines():
                pid = match_vm_process(line, vm_id)
                if pid is not None:
                    log("INFO", f"found '{vm_id}' on '{host}' pid:{pid}")
                    return VMLocation(host=host, pid=pid)

        log("INFO", f"vm {vm_id} not found")
        return NOT_FOUND


class HypervisorSelector:
    """Picks the hypervisor with the most available memory."""

    def __init__(self, config: ClusterConfig, executor: RemoteExecutor) -> None:
        self.config = config
        self.executor = executor

    def probe(self, host: str) -> HostMemory:
        result = self.executor.run(host, MEMINFO_COMMAND)
        if result.failed:
            log("WARN", f"ignoring {host}.")
            return HostMemory(host=host, available_kb=None)
        try:
            return HostMemory(host=host, available_kb=parse_available_kb(result.stdout))
        except ProbeParseError as exc:
            log("WARN", f"ignoring {host} - {exc}")
            return HostMemory(host=host, available_kb=None)

    def survey(self) -> List[HostMemory]:
        return [self.probe(host) for host in self.config.qemu_hosts]

    def select(self, required_mb: int) -> str:
        """Return the roomiest host if it has more than ``required_mb`` free, else ""."""
        max_avail = 0
        best_host = ""
        for entry in self.survey():
            if entry.available_kb is not None and entry.available_kb > max_avail:
                max_avail = entry.available_kb
                best_host = entry.host

        log("INFO", f"max_avail:{max_avail}kb best_host:{best_host}")
        if max_avail // 1024 > required_mb:
            return best_host
        log("WARN", f"No hypervisor with {required_mb}MB free.")
        return ""
