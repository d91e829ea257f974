"""pve-template package."""

__version__ = "1.0.1"

__all__ = [
    "cache",
    "cli",
    "config",
    "constants",
    "customize",
    "exceptions",
    "models",
    "prompts",
    "proxmox",
    "resolver",
    "builder",
    "updates",
    "utils",
]
