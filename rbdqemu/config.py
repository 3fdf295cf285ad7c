"""Cluster configuration loading for rbdqemu."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from rbdqemu.constants import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_MAX_BYTES,
    DEFAULT_SSH_USER,
    QEMU_IMG,
    QEMU_SYSTEM,
)
from rbdqemu.exceptions import ConfigError, ValidationError
from rbdqemu.models import ClusterConfig
from rbdqemu.utils import get_env, log, parse_int, unique_hosts

REQUIRED_KEYS = ("ceph_rbduser", "ceph_hosts", "qemu_hosts", "ssh_private_key")


def _require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{key} must be a non-empty string")
    return value.strip()


def _require_hosts(payload: Mapping[str, Any], key: str) -> tuple:
    value = payload.get(key)
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ConfigError(f"{key} must be a list of host addresses")
    hosts = unique_hosts(value)
    if not hosts:
        raise ConfigError(f"{key} must contain at least one host")
    return tuple(hosts)


def cluster_config_from_mapping(payload: Mapping[str, Any]) -> ClusterConfig:
    """Build the immutable cluster configuration from provider attributes."""
    missing = [key for key in REQUIRED_KEYS if key not in payload]
    if missing:
        raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    ssh_user = get_env("RBDQEMU_SSH_USER") or payload.get("ssh_user") or DEFAULT_SSH_USER
    log_file = get_env("RBDQEMU_LOG_FILE") or payload.get("log_file") or DEFAULT_LOG_FILE
    try:
        log_max_bytes = parse_int("log_max_bytes", payload.get("log_max_bytes", DEFAULT_LOG_MAX_BYTES))
    except ValidationError as exc:
        raise ConfigError(str(exc))

    return ClusterConfig(
        rbd_user=_require_str(payload, "ceph_rbduser"),
        ceph_hosts=_require_hosts(payload, "ceph_hosts"),
        qemu_hosts=_require_hosts(payload, "qemu_hosts"),
        ssh_private_key=_require_str(payload, "ssh_private_key"),
        ssh_user=str(ssh_user),
        qemu_system=str(payload.get("qemu_system") or QEMU_SYSTEM),
        qemu_img=str(payload.get("qemu_img") or QEMU_IMG),
        log_file=Path(log_file),
        log_max_bytes=log_max_bytes,
    )


def load_cluster_config(config_path: Optional[Path] = None) -> ClusterConfig:
    if config_path is None:
        config_path = Path(get_env("RBDQEMU_CONFIG") or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        raise ConfigError(f"Cluster config missing: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse {config_path}: {exc}")
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping of provider settings")
    cfg = cluster_config_from_mapping(data)
    log("DEBUG", f"Loaded cluster config from {config_path}")
    return cfg


def describe_config(cfg: ClusterConfig) -> Dict[str, Any]:
    """Flatten the configuration for display."""
    return {
        "ceph_rbduser": cfg.rbd_user,
        "ceph_hosts": list(cfg.ceph_hosts),
        "storage_admin_host": cfg.storage_admin_host,
        "qemu_hosts": list(cfg.qemu_hosts),
        "ssh_private_key": cfg.ssh_private_key,
        "ssh_user": cfg.ssh_user,
        "qemu_system": cfg.qemu_system,
        "qemu_img": cfg.qemu_img,
        "log_file": str(cfg.log_file),
        "log_max_bytes": cfg.log_max_bytes,
    }
