"""Custom exceptions for rbdqemu."""


class ManagerError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""


class ConfigError(ManagerError):
    """Cluster or provider configuration is missing or invalid."""


class ValidationError(ManagerError):
    """A resource attribute failed schema validation."""


class TransportFault(ManagerError):
    """The ssh session could not be started or the remote command exited non-zero."""


class RemoteStderrFault(ManagerError):
    """The remote command exited zero but wrote to its error stream."""


class ProbeParseError(ManagerError):
    """Remote output did not have the expected shape."""


class UnsupportedOperation(ManagerError):
    """In-place updates are not supported for any resource."""


class ResourceNotFound(ManagerError):
    """The resource could not be located on the cluster."""
