"""Global constants and path configuration for the Proxmox template generator."""

from __future__ import annotations

import os
import re
from pathlib import Path

_CACHE_DIR = os.environ.get("PVE_TEMPLATE_CACHE_DIR")
CACHE_DIR = Path(_CACHE_DIR) if _CACHE_DIR else Path("/var/tmp/proxmox-templates")

PROG_NAME = "pve-template"
RELEASES_URL = "https://api.github.com/repos/Tenantos/proxmox-template-generator/releases/latest"
RELEASES_PAGE = "https://github.com/Tenantos/proxmox-template-generator/releases/latest"
TROUBLESHOOTING_URL = (
    "https://documentation.tenantos.com/Tenantos/virtualization/template-installations-proxmox/#troubleshooting"
)

TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off"}

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

VMID_RE = re.compile(r"^[0-9]+$")
VM_NAME_INVALID_RE = re.compile(r"[^A-Za-z0-9.-]")
VM_NAME_PREFIX = "template-"

REQUIRED_COMMANDS = ("qm", "pvesm")
CUSTOMIZE_COMMAND = "virt-customize"

BIOS_MODES = ("bios", "uefi")
DISK_FORMATS = ("qcow2", "raw")
MACHINE_TYPES = ("pc-i440fx", "q35")
SCSI_CONTROLLERS = ("virtio-scsi-single", "virtio-scsi-pci", "lsi", "lsi53c810", "megasas", "pvscsi")
DISK_DEVICES = ("scsi", "virtio", "sata", "ide")
DISPLAY_TYPES = ("serial0", "std", "virtio", "qxl", "vmware", "none")

ENUM_FIELDS = {
    "bios_mode": BIOS_MODES,
    "disk_format": DISK_FORMATS,
    "machine_type": MACHINE_TYPES,
    "scsi_controller": SCSI_CONTROLLERS,
    "disk_device": DISK_DEVICES,
    "display_type": DISPLAY_TYPES,
}

BOOL_FIELDS = (
    "is_rhel_derivative",
    "disable_selinux",
    "selinux_relabel",
    "qemu_permissive",
    "update_packages",
    "no_cache",
    "cleanup_cache",
    "assume_yes",
)

REQUIRED_FIELDS = ("source_url", "storage_id", "vm_id")

DEFAULTS = {
    "network_bridge": "vmbr0",
    "bios_mode": "bios",
    "machine_type": "pc-i440fx",
    "scsi_controller": "virtio-scsi-single",
    "disk_device": "scsi",
    "display_type": "serial0",
}

# Template VM hardware that is not operator-configurable
TEMPLATE_OSTYPE = "l26"
TEMPLATE_MEMORY_MB = 2048
TEMPLATE_CORES = 2

# Menu labels shown in interactive mode, in menu order
BIOS_MENU = (
    ("bios", "SeaBIOS (Legacy BIOS)"),
    ("uefi", "UEFI (OVMF) - Check image compatibility"),
)
DISK_FORMAT_MENU = (
    ("qcow2", "qcow2"),
    ("raw", "raw"),
)
MACHINE_MENU = (
    ("pc-i440fx", "pc-i440fx (default)"),
    ("q35", "q35"),
)
SCSI_CONTROLLER_MENU = (
    ("virtio-scsi-single", "VirtIO SCSI single (recommended)"),
    ("virtio-scsi-pci", "VirtIO SCSI PCI"),
    ("lsi", "LSI 53C895A"),
    ("lsi53c810", "LSI 53C810"),
    ("megasas", "MegaRAID SAS 8708EM2"),
    ("pvscsi", "VMware PVSCSI"),
)
DISK_DEVICE_MENU = (
    ("scsi", "SCSI (recommended)"),
    ("virtio", "VirtIO Block"),
    ("sata", "SATA"),
    ("ide", "IDE"),
)
DISPLAY_MENU = (
    ("serial0", "Serial Console (recommended for cloud images)"),
    ("std", "Standard VGA"),
    ("virtio", "VirtIO GPU"),
    ("qxl", "QXL (SPICE)"),
    ("vmware", "VMware compatible"),
    ("none", "None"),
)
