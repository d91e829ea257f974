"""Thin wrapper around the Proxmox VE command-line tools (qm, pvesm)."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional

from pvetemplate.constants import (
    DEFAULTS,
    TEMPLATE_CORES,
    TEMPLATE_MEMORY_MB,
    TEMPLATE_OSTYPE,
)
from pvetemplate.exceptions import GeneratorError
from pvetemplate.models import BuildPlan
from pvetemplate.utils import log, run


def parse_storage_list(output: str) -> List[str]:
    """Extract storage IDs from ``pvesm status`` output (first column, header skipped)."""
    storages = []
    for line in output.splitlines()[1:]:
        parts = line.split()
        if parts:
            storages.append(parts[0])
    return storages


def find_unused_disk(config_output: str) -> Optional[str]:
    """Return the volume of the first ``unusedN:`` disk entry in ``qm config`` output."""
    for line in config_output.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.startswith("unused") and "disk" in value:
            return value.strip()
    return None


def create_command(plan: BuildPlan) -> List[str]:
    cmd = [
        "qm",
        "create",
        str(plan.vm_id),
        "--name",
        plan.vm_name,
        "--ostype",
        TEMPLATE_OSTYPE,
        "--memory",
        str(TEMPLATE_MEMORY_MB),
        "--cores",
        str(TEMPLATE_CORES),
        "--net0",
        f"virtio,bridge={plan.network_bridge}",
    ]
    if plan.machine_type != DEFAULTS["machine_type"]:
        cmd.extend(["--machine", plan.machine_type])
    return cmd


def import_command(plan: BuildPlan, image_path: Path) -> List[str]:
    return ["qm", "importdisk", str(plan.vm_id), str(image_path), plan.storage_id, "--format", plan.disk_format]


def configure_commands(plan: BuildPlan, disk_spec: str) -> List[List[str]]:
    disk_slot = f"{plan.disk_device}0"
    hardware = [
        "qm",
        "set",
        str(plan.vm_id),
        "--scsihw",
        plan.scsi_controller,
        f"--{disk_slot}",
        f"{disk_spec},discard=on",
        "--boot",
        f"order={disk_slot}",
        "--serial0",
        "socket",
    ]
    if plan.display_type != "none":
        hardware.extend(["--vga", plan.display_type])
    commands = [hardware]
    if plan.bios_mode == "uefi":
        commands.append(
            [
                "qm",
                "set",
                str(plan.vm_id),
                "--bios",
                "ovmf",
                "--efidisk0",
                f"{plan.storage_id}:1,efitype=4m,pre-enrolled-keys=0",
            ]
        )
    return commands


def template_command(vm_id: int) -> List[str]:
    return ["qm", "template", str(vm_id)]


class ProxmoxHost:
    def list_storages(self) -> List[str]:
        result = run(["pvesm", "status", "-content", "images"], capture_output=True)
        return parse_storage_list(result.stdout)

    def storage_exists(self, storage_id: str) -> bool:
        return storage_id in self.list_storages()

    def vm_exists(self, vm_id: int) -> bool:
        result = run(
            ["qm", "status", str(vm_id)],
            check=False,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        return result.returncode == 0

    def destroy_vm(self, vm_id: int) -> None:
        if not self.vm_exists(vm_id):
            return
        log("INFO", f"Destroying VM {vm_id}")
        run(["qm", "destroy", str(vm_id), "--purge", "--destroy-unreferenced-disks"])
        log("INFO", f"VM {vm_id} destroyed")

    def create_vm(self, plan: BuildPlan) -> None:
        log("INFO", f"Creating VM {plan.vm_id}")
        run(create_command(plan))

    def import_disk(self, plan: BuildPlan, image_path: Path) -> str:
        log("INFO", "Importing disk")
        run(import_command(plan, image_path), capture_output=True)
        config = run(["qm", "config", str(plan.vm_id)], capture_output=True)
        disk_spec = find_unused_disk(config.stdout)
        if not disk_spec:
            raise GeneratorError("Failed to find imported disk in VM config")
        log("INFO", f"Disk imported: {disk_spec}")
        return disk_spec

    def configure_vm(self, plan: BuildPlan, disk_spec: str) -> None:
        log("INFO", "Configuring VM")
        hardware, *firmware = configure_commands(plan, disk_spec)
        run(hardware)
        for cmd in firmware:
            log("INFO", "Configuring UEFI")
            run(cmd)

    def convert_to_template(self, vm_id: int) -> None:
        log("INFO", "Converting to template")
        run(template_command(vm_id))
