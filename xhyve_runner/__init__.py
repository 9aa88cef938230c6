"""xhyve-runner package."""

__all__ = [
    "cli",
    "config",
    "constants",
    "discovery",
    "exceptions",
    "launcher",
    "models",
    "resources",
    "ssh",
    "utils",
    "variants",
    "vm",
]
