"""CLI entry points for rbdqemu."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional

from rbdqemu.config import describe_config, load_cluster_config
from rbdqemu.constants import DEFERRED_EXIT_CODE, IMAGE_RESOURCE, VM_RESOURCE
from rbdqemu.exceptions import ManagerError
from rbdqemu.models import ClusterConfig, ResourceData
from rbdqemu.probes import HypervisorSelector
from rbdqemu.provider import Provider
from rbdqemu.utils import configure_log_file, log

# CLI option name -> resource attribute name
IMAGE_OPTIONS = {"pool": "osd_pool", "name": "img_name", "size": "img_size"}
VM_OPTIONS = {
    "name": "name",
    "cpus": "cpus",
    "mem_mb": "mem_mb",
    "vlan": "vlan",
    "mac": "mac",
    "vnc": "vnc",
    "pool": "osd_pool",
    "image": "img_name",
}


def show_config(cfg: ClusterConfig) -> None:
    """Print the resolved cluster configuration."""
    for key, value in describe_config(cfg).items():
        if isinstance(value, list):
            value = ", ".join(value)
        print(f"  {key}: {value}")


def show_hypervisors(provider: Provider, mem_mb: Optional[int]) -> int:
    selector = HypervisorSelector(provider.config, provider.executor)
    survey = selector.survey()
    width = max(len(entry.host) for entry in survey)
    for entry in survey:
        if entry.available_kb is None:
            print(f"  {entry.host:<{width}}  unreachable")
        else:
            print(f"  {entry.host:<{width}}  {entry.available_mb} MiB available")
    if mem_mb is None:
        return 0
    host = selector.select(mem_mb)
    if not host:
        log("WARN", f"No hypervisor has more than {mem_mb} MiB available")
        return DEFERRED_EXIT_CODE
    log("SUCCESS", f"A {mem_mb} MiB VM would be placed on {host}")
    return 0


def _attributes(args: argparse.Namespace, options: Dict[str, str]) -> Dict[str, Any]:
    return {attr: getattr(args, opt) for opt, attr in options.items() if getattr(args, opt, None) is not None}


def run_resource_action(provider: Provider, resource_type: str, action: str, data: ResourceData) -> int:
    if action == "create":
        try:
            outcome = provider.create(resource_type, data)
        except ManagerError as exc:
            log("ERROR", str(exc))
            if data.id:
                log("WARN", f"{data.id} was created; only a follow-up step failed")
                print(data.id)
            return 1
        if outcome.is_deferred:
            return DEFERRED_EXIT_CODE
        log("SUCCESS", f"created {outcome.identifier}")
        print(outcome.identifier)
        return 0

    if action == "read":
        identifier = provider.read(resource_type, data)
        if not identifier:
            log("INFO", f"{resource_type} not found")
            return 1
        print(identifier)
        return 0

    if action == "delete":
        provider.delete(resource_type, data)
        log("SUCCESS", f"{resource_type} deleted")
        return 0

    if action == "exists":
        present = provider.exists(resource_type, data)
        print("true" if present else "false")
        return 0 if present else 1

    raise ManagerError(f"Unknown action '{action}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Provision RBD images and qemu VMs over ssh")
    parser.add_argument("--config", type=Path, default=None, help="Cluster config YAML (default: $RBDQEMU_CONFIG)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show-config", help="Show resolved cluster configuration and exit")

    hyp = sub.add_parser("hypervisors", help="Show available memory on every hypervisor")
    hyp.add_argument("--mem-mb", type=int, default=None, help="Also report where a VM of this size would go")

    image = sub.add_parser("image", help="Manage RBD images")
    image.add_argument("action", choices=["create", "read", "delete", "exists"])
    image.add_argument("--pool", required=True, help="OSD pool")
    image.add_argument("--name", required=True, help="Image name")
    image.add_argument("--size", help="Image size, e.g. 6M (create only)")

    vm = sub.add_parser("vm", help="Manage qemu VMs")
    vm.add_argument("action", choices=["create", "read", "delete", "exists"])
    vm.add_argument("--name", required=True, help="Logical VM name")
    vm.add_argument("--cpus", type=int)
    vm.add_argument("--mem-mb", type=int)
    vm.add_argument("--vlan", type=int)
    vm.add_argument("--mac")
    vm.add_argument("--vnc", help="VNC display, e.g. :10")
    vm.add_argument("--pool", help="OSD pool of the boot image")
    vm.add_argument("--image", help="RBD image used as the OS disk")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = load_cluster_config(args.config)
    except ManagerError as exc:
        log("ERROR", str(exc))
        return 1

    if args.command == "show-config":
        show_config(cfg)
        return 0

    configure_log_file(cfg.log_file, cfg.log_max_bytes)
    provider = Provider.from_config(cfg)

    try:
        if args.command == "hypervisors":
            return show_hypervisors(provider, args.mem_mb)
        if args.command == "image":
            data = ResourceData(attributes=_attributes(args, IMAGE_OPTIONS))
            return run_resource_action(provider, IMAGE_RESOURCE, args.action, data)
        data = ResourceData(attributes=_attributes(args, VM_OPTIONS))
        return run_resource_action(provider, VM_RESOURCE, args.action, data)
    except ManagerError as exc:
        log("ERROR", str(exc))
        return 1
