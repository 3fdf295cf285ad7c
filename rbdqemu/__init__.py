"""rbdqemu package."""

__all__ = [
    "cli",
    "config",
    "constants",
    "exceptions",
    "image",
    "models",
    "parsers",
    "probes",
    "provider",
    "remote",
    "utils",
    "vm",
]
