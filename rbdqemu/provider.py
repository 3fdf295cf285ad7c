"""Provider surface: configuration once, then per-resource lifecycle dispatch."""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from rbdqemu.config import cluster_config_from_mapping
from rbdqemu.constants import IMAGE_RESOURCE, VM_RESOURCE
from rbdqemu.exceptions import ConfigError, ValidationError
from rbdqemu.image import ImageController
from rbdqemu.models import ClusterConfig, CreateOutcome, ResourceData
from rbdqemu.remote import RemoteExecutor, SSHExecutor
from rbdqemu.utils import (
    configure_log_file,
    log,
    parse_int,
    validate_disk_size,
    validate_mac,
    validate_name,
    validate_vnc_display,
)
from rbdqemu.vm import VMController

Validator = Callable[[str, Any], Any]


def _string(validator: Callable[[str], str]) -> Validator:
    def check(field: str, value: Any) -> str:
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be a string (got {value!r})")
        return validator(value)

    return check


def _name(field: str, value: Any) -> str:
    return _string(lambda raw: validate_name(field, raw))(field, value)


def _integer(min_val: int, max_val: Optional[int] = None) -> Validator:
    def check(field: str, value: Any) -> int:
        return parse_int(field, value, min_val=min_val, max_val=max_val)

    return check


RESOURCE_SCHEMAS: Dict[str, Dict[str, Validator]] = {
    IMAGE_RESOURCE: {
        "osd_pool": _name,
        "img_name": _name,
        "img_size": _string(validate_disk_size),
    },
    VM_RESOURCE: {
        "name": _name,
        "cpus": _integer(1),
        "mem_mb": _integer(1),
        "vlan": _integer(0, 4094),
        "mac": _string(validate_mac),
        "vnc": _string(validate_vnc_display),
        "osd_pool": _name,
        "img_name": _name,
    },
}

# Attributes needed to find an existing resource; create needs the full schema.
IDENTITY_KEYS: Dict[str, Tuple[str, ...]] = {
    IMAGE_RESOURCE: ("osd_pool", "img_name"),
    VM_RESOURCE: ("name",),
}


def validate_attributes(resource_type: str, attributes: Mapping[str, Any], full: bool = True) -> Dict[str, Any]:
    """Check and normalize resource attributes against the resource schema."""
    if resource_type not in RESOURCE_SCHEMAS:
        raise ValidationError(f"Unknown resource type '{resource_type}'")
    schema = RESOURCE_SCHEMAS[resource_type]
    required = tuple(schema) if full else IDENTITY_KEYS[resource_type]
    missing = [key for key in required if attributes.get(key) in (None, "")]
    if missing:
        raise ValidationError(f"{resource_type}: missing required attribute(s): {', '.join(missing)}")

    normalized = dict(attributes)
    for key, check in schema.items():
        if key in attributes and attributes[key] is not None:
            normalized[key] = check(key, attributes[key])
    return normalized


class Provider:
    """Holds the once-only cluster configuration and the resource controllers."""

    def __init__(self, executor_factory: Callable[[ClusterConfig], RemoteExecutor] = SSHExecutor) -> None:
        self.executor_factory = executor_factory
        self.config: Optional[ClusterConfig] = None
        self.executor: Optional[RemoteExecutor] = None
        self._controllers: Dict[str, Any] = {}

    @classmethod
    def from_config(cls, config: ClusterConfig, executor: Optional[RemoteExecutor] = None) -> "Provider":
        provider = cls()
        provider._install(config, executor or provider.executor_factory(config))
        return provider

    def configure(self, attributes: Mapping[str, Any]) -> ClusterConfig:
        if self.config is not None:
            raise ConfigError("provider is already configured")
        config = cluster_config_from_mapping(attributes)
        configure_log_file(config.log_file, config.log_max_bytes)
        self._install(config, self.executor_factory(config))
        log(
            "INFO",
            f"configured: ceph_hosts={','.join(config.ceph_hosts)} qemu_hosts={','.join(config.qemu_hosts)}",
        )
        return config

    def _install(self, config: ClusterConfig, executor: RemoteExecutor) -> None:
        self.config = config
        self.executor = executor
        self._controllers = {
            IMAGE_RESOURCE: ImageController(config, executor),
            VM_RESOURCE: VMController(config, executor),
        }

    def controller(self, resource_type: str):
        if self.config is None:
            raise ConfigError("provider is not configured")
        try:
            return self._controllers[resource_type]
        except KeyError:
            raise ValidationError(f"Unknown resource type '{resource_type}'") from None

    def _prepare(self, resource_type: str, data: ResourceData, full: bool):
        controller = self.controller(resource_type)
        data.attributes = validate_attributes(resource_type, data.attributes, full=full)
        return controller

    def create(self, resource_type: str, data: ResourceData) -> CreateOutcome:
        outcome = self._prepare(resource_type, data, full=True).create(data)
        if outcome.is_deferred:
            log("WARN", f"{resource_type} create deferred: {outcome.reason}")
        return outcome

    def read(self, resource_type: str, data: ResourceData) -> str:
        return self._prepare(resource_type, data, full=False).read(data)

    def update(self, resource_type: str, data: ResourceData) -> None:
        self.controller(resource_type).update(data)

    def delete(self, resource_type: str, data: ResourceData) -> None:
        self._prepare(resource_type, data, full=False).delete(data)

    def exists(self, resource_type: str, data: ResourceData) -> bool:
        return self._prepare(resource_type, data, full=False).exists(data)
