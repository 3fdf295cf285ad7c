"""Lifecycle of qemu VMs running on the hypervisor pool."""

from __future__ import annotations

from typing import Optional

from rbdqemu.constants import TAP_SCRIPT
from rbdqemu.exceptions import ManagerError, ResourceNotFound, UnsupportedOperation
from rbdqemu.models import ClusterConfig, CreateOutcome, ResourceData, VMSpec
from rbdqemu.parsers import derive_vm_id
from rbdqemu.probes import HypervisorSelector, ProcessProber
from rbdqemu.remote import RemoteExecutor
from rbdqemu.utils import log


class VMController:
    """Launches, finds and kills daemonized qemu processes.

    Nothing about a VM is stored locally: its identity is the ``-name``
    argument of a running qemu process, re-derived on every call.
    """

    def __init__(
        self,
        config: ClusterConfig,
        executor: RemoteExecutor,
        processes: Optional[ProcessProber] = None,
        selector: Optional[HypervisorSelector] = None,
    ) -> None:
        self.config = config
        self.executor = executor
        self.processes = processes or ProcessProber(config, executor)
        self.selector = selector or HypervisorSelector(config, executor)

    def launch_command(self, spec: VMSpec) -> str:
        args = [
            self.config.qemu_system,
            f"-name {derive_vm_id(spec.name)}",
            f"-smp {spec.cpus}",
            f"-m {spec.mem_mb}",
            f"-vnc {spec.vnc}",
            f"-drive format=rbd,file=rbd:{spec.pool}/{spec.image},cache=writeback",
            f"-nic tap,script={TAP_SCRIPT.format(vlan=spec.vlan)},model=virtio-net-pci,mac={spec.mac}",
            "-vga vmware",
            "-enable-kvm",
            "-usb",
            "-device usb-tablet",
            "-daemonize",
        ]
        return " ".join(args)

    def create(self, data: ResourceData) -> CreateOutcome:
        spec = VMSpec.from_data(data)
        log(
            "INFO",
            f"name:{spec.name} cpus:{spec.cpus} mem_mb:{spec.mem_mb} vlan:{spec.vlan} "
            f"vnc:{spec.vnc} img_name:{spec.image}",
        )

        host = self.selector.select(spec.mem_mb)
        if not host:
            return CreateOutcome.deferred(f"no hypervisor with more than {spec.mem_mb}MB free")

        result = self.executor.run(host, self.launch_command(spec))
        if result.fault is not None:
            log("WARN", f"{result.fault}")
        result.raise_for_fault()

        vm_id = derive_vm_id(spec.name)
        log("INFO", f"returning ID: {vm_id}")
        data.set_id(vm_id)
        return CreateOutcome.created(vm_id)

    def read(self, data: ResourceData) -> str:
        name = data.get("name")
        try:
            location = self.processes.locate(name)
        except ManagerError as exc:
            log("WARN", f"cannot refresh {name} - {exc}")
            data.clear_id()
            return data.id
        if location.found:
            data.set_id(derive_vm_id(name))
        else:
            data.clear_id()
        return data.id

    def update(self, data: ResourceData) -> None:
        raise UnsupportedOperation("feature not implemented")

    def delete(self, data: ResourceData) -> None:
        """Kill the qemu process; an absent VM is an error, not a no-op."""
        name = data.get("name")
        log("INFO", f"deleting VM : {name}")
        location = self.processes.locate(name)
        if not location.found or location.pid <= 1:
            raise ResourceNotFound(f"Could not locate VM and pid of {name}")

        result = self.executor.run(location.host, f"kill {location.pid}")
        if result.fault is not None:
            raise ManagerError(
                f"Failed to delete {name} pid:{location.pid} on {location.host} - {result.fault}"
            )
        if result.stderr:
            log("WARN", f"kill {location.pid} on {location.host}: {result.stderr}")
        data.clear_id()

    def exists(self, data: ResourceData) -> bool:
        name = data.get("name")
        try:
            location = self.processes.locate(name)
        except ManagerError as exc:
            log("WARN", f"treating {name} as absent - {exc}")
            return False
        return location.found
