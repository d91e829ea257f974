"""Data models for the Proxmox template generator."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Dict, List, Mapping, Optional, Tuple

from pvetemplate.constants import DEFAULTS


@dataclass(frozen=True)
class OptionSet:
    """Raw, possibly partial options gathered from flags, prompts or an option file."""

    source_url: Optional[str] = None
    storage_id: Optional[str] = None
    vm_id: Optional[str] = None
    vm_name: Optional[str] = None
    network_bridge: Optional[str] = None
    bios_mode: Optional[str] = None
    disk_format: Optional[str] = None
    machine_type: Optional[str] = None
    scsi_controller: Optional[str] = None
    disk_device: Optional[str] = None
    display_type: Optional[str] = None
    is_rhel_derivative: Optional[str] = None
    disable_selinux: Optional[str] = None
    selinux_relabel: Optional[str] = None
    qemu_permissive: Optional[str] = None
    update_packages: Optional[str] = None
    no_cache: Optional[str] = None
    cleanup_cache: Optional[str] = None
    assume_yes: Optional[str] = None

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_mapping(cls, values: Mapping[str, Optional[str]]) -> "OptionSet":
        return cls(**{k: v for k, v in values.items() if v is not None})

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def merged(self, override: "OptionSet") -> "OptionSet":
        """Return a copy where every field set on ``override`` wins."""
        values = self.as_dict()
        for key, value in override.as_dict().items():
            if value is not None:
                values[key] = value
        return OptionSet(**values)


@dataclass(frozen=True)
class ValidatedOptions:
    """Typed options; unset optional fields stay ``None`` until defaulted."""

    source_url: Optional[str] = None
    storage_id: Optional[str] = None
    vm_id: Optional[int] = None
    vm_name: Optional[str] = None
    network_bridge: Optional[str] = None
    bios_mode: Optional[str] = None
    disk_format: Optional[str] = None
    machine_type: Optional[str] = None
    scsi_controller: Optional[str] = None
    disk_device: Optional[str] = None
    display_type: Optional[str] = None
    is_rhel_derivative: Optional[bool] = None
    disable_selinux: Optional[bool] = None
    selinux_relabel: Optional[bool] = None
    qemu_permissive: Optional[bool] = None
    update_packages: Optional[bool] = None
    no_cache: Optional[bool] = None
    cleanup_cache: Optional[bool] = None
    assume_yes: Optional[bool] = None


# Same shape once the defaulter has filled every optional field.
DefaultedOptions = ValidatedOptions


@dataclass(frozen=True)
class RhelOptions:
    """SELinux handling that only applies to RHEL-derivative images."""

    disable_selinux: bool = False
    selinux_relabel: bool = False
    qemu_permissive: bool = False


@dataclass(frozen=True)
class BuildPlan:
    source_url: str
    storage_id: str
    vm_id: int
    vm_name: str
    disk_format: str
    network_bridge: str = DEFAULTS["network_bridge"]
    bios_mode: str = DEFAULTS["bios_mode"]
    machine_type: str = DEFAULTS["machine_type"]
    scsi_controller: str = DEFAULTS["scsi_controller"]
    disk_device: str = DEFAULTS["disk_device"]
    display_type: str = DEFAULTS["display_type"]
    is_rhel_derivative: bool = False
    disable_selinux: bool = False
    selinux_relabel: bool = False
    qemu_permissive: bool = False
    update_packages: bool = False
    no_cache: bool = False
    cleanup_cache: bool = False
    # Confirmation behaviour of one session, not part of what gets built
    assume_yes: bool = field(default=False, compare=False)

    @property
    def rhel(self) -> Optional[RhelOptions]:
        """Effective SELinux handling, or ``None`` for non-RHEL images."""
        if not self.is_rhel_derivative:
            return None
        keep_selinux = not self.disable_selinux
        return RhelOptions(
            disable_selinux=self.disable_selinux,
            selinux_relabel=self.selinux_relabel and keep_selinux,
            qemu_permissive=self.qemu_permissive and keep_selinux,
        )

    @property
    def inert_options(self) -> List[str]:
        """Names of requested SELinux options that will not be acted on.

        ``disable_selinux`` applies to any image and is never inert.
        """
        requested = {
            "selinux_relabel": self.selinux_relabel,
            "qemu_permissive": self.qemu_permissive,
        }
        effective = self.rhel or RhelOptions()
        return [name for name, wanted in requested.items() if wanted and not getattr(effective, name)]

    def to_command_line(self) -> List[str]:
        """Flag tokens for an equivalent unattended invocation."""
        tokens = _flag_tokens(
            [
                ("--url", self.source_url),
                ("--storage", self.storage_id),
                ("--vmid", str(self.vm_id)),
                ("--name", self.vm_name),
                ("--bridge", self.network_bridge),
            ]
        )
        tokens.extend([f"--{self.bios_mode}", f"--{self.disk_format}"])
        if self.machine_type != DEFAULTS["machine_type"]:
            tokens.extend(_flag_tokens([("--machine", self.machine_type)]))
        tokens.extend(
            _flag_tokens(
                [
                    ("--scsi-controller", self.scsi_controller),
                    ("--disk-device", self.disk_device),
                    ("--display", self.display_type),
                ]
            )
        )
        switches = (
            ("is_rhel_derivative", "--rhel-derivative"),
            ("disable_selinux", "--disable-selinux"),
            ("selinux_relabel", "--selinux-relabel"),
            ("qemu_permissive", "--qemu-permissive"),
            ("update_packages", "--update-packages"),
            ("no_cache", "--no-cache"),
            ("cleanup_cache", "--cleanup"),
        )
        tokens.extend(flag for attr, flag in switches if getattr(self, attr))
        tokens.append("-y")
        return tokens


def _flag_tokens(pairs: List[Tuple[str, str]]) -> List[str]:
    tokens: List[str] = []
    for flag, value in pairs:
        # A value starting with '-' would be read back as an option
        if value.startswith("-"):
            tokens.append(f"{flag}={value}")
        else:
            tokens.extend([flag, value])
    return tokens
