"""Lifecycle of RBD images on the ceph cluster."""

from __future__ import annotations

from typing import Optional

from rbdqemu.constants import ANY_HYPERVISOR_MB, RBD_DISABLED_FEATURES
from rbdqemu.exceptions import ManagerError, UnsupportedOperation
from rbdqemu.models import ClusterConfig, CreateOutcome, ImageSpec, ResourceData
from rbdqemu.probes import HypervisorSelector, InventoryProber
from rbdqemu.remote import RemoteExecutor
from rbdqemu.utils import log


class ImageController:
    def __init__(
        self,
        config: ClusterConfig,
        executor: RemoteExecutor,
        inventory: Optional[InventoryProber] = None,
        selector: Optional[HypervisorSelector] = None,
    ) -> None:
        self.config = config
        self.executor = executor
        self.inventory = inventory or InventoryProber(config, executor)
        self.selector = selector or HypervisorSelector(config, executor)

    def create_command(self, spec: ImageSpec) -> str:
        return (
            f"rbd create --pool {spec.pool} --image {spec.name} --size {spec.size} && "
            f"rbd feature disable {spec.identifier} {' '.join(RBD_DISABLED_FEATURES)}"
        )

    def materialize_command(self, spec: ImageSpec) -> str:
        return (
            f"{self.config.qemu_img} create -f rbd "
            f"rbd:{spec.identifier}:id={self.config.rbd_user} {spec.size}"
        )

    def create(self, data: ResourceData) -> CreateOutcome:
        """Create the image, then register it through qemu-img on a hypervisor.

        The identifier is set as soon as ``rbd create`` succeeds. A later
        qemu-img failure is raised with the identifier already in place, so
        the orchestrator keeps tracking the image that now exists.
        """
        spec = ImageSpec.from_data(data)
        log("INFO", f"{spec.identifier}:{spec.size}")

        result = self.executor.run(self.config.storage_admin_host, self.create_command(spec))
        if result.fault is not None:
            log("WARN", f"{result.fault}")
        result.raise_for_fault()

        log("INFO", f"returning ID: {spec.identifier}")
        data.set_id(spec.identifier)

        host = self.selector.select(ANY_HYPERVISOR_MB)
        if not host:
            log("WARN", f"No hypervisor available to run qemu-img for {spec.identifier}")
            return CreateOutcome.created(spec.identifier)

        result = self.executor.run(host, self.materialize_command(spec))
        if result.fault is not None:
            log("WARN", f"{result.fault}")
        result.raise_for_fault()
        return CreateOutcome.created(spec.identifier)

    def read(self, data: ResourceData) -> str:
        pool = data.get("osd_pool")
        name = data.get("img_name")
        log("INFO", f"{pool}/{name}")
        try:
            found = self.inventory.volume_exists(pool, name)
        except ManagerError as exc:
            log("WARN", f"cannot refresh {pool}/{name} - {exc}")
            found = False
        if found:
            data.set_id(f"{pool}/{name}")
        else:
            data.clear_id()
        return data.id

    def update(self, data: ResourceData) -> None:
        raise UnsupportedOperation("feature not implemented")

    def delete(self, data: ResourceData) -> None:
        pool = data.get("osd_pool")
        name = data.get("img_name")
        log("INFO", f"{pool}/{name}")
        result = self.executor.run(self.config.storage_admin_host, f"rbd rm --no-progress {pool}/{name}")
        if result.fault is not None:
            log("WARN", f"{result.fault}")
        result.raise_for_fault()
        data.clear_id()

    def exists(self, data: ResourceData) -> bool:
        pool = data.get("osd_pool")
        name = data.get("img_name")
        log("DEBUG", f"{pool}/{name}")
        return self.inventory.volume_exists(pool, name)
