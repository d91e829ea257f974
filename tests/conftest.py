"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from pvetemplate.cache import ImageCache
from pvetemplate.models import BuildPlan, OptionSet
from pvetemplate.proxmox import ProxmoxHost

DEBIAN_URL = "https://cloud.debian.org/images/cloud/bookworm/debian-12.qcow2"


@pytest.fixture
def minimal_options() -> OptionSet:
    """Only the fields an unattended run must supply."""
    return OptionSet(
        source_url=DEBIAN_URL,
        storage_id="local-lvm",
        vm_id="200",
        disk_format="raw",
    )


@pytest.fixture
def full_options() -> OptionSet:
    return OptionSet(
        source_url=DEBIAN_URL,
        storage_id="local-lvm",
        vm_id="101",
        vm_name="debian-12",
        network_bridge="vmbr1",
        bios_mode="uefi",
        disk_format="qcow2",
        machine_type="q35",
        scsi_controller="virtio-scsi-pci",
        disk_device="virtio",
        display_type="std",
        is_rhel_derivative="true",
        disable_selinux="false",
        selinux_relabel="true",
        qemu_permissive="true",
        update_packages="true",
        no_cache="true",
        cleanup_cache="true",
        assume_yes="false",
    )


@pytest.fixture
def default_plan() -> BuildPlan:
    """Return a BuildPlan with every optional field at its default."""
    return BuildPlan(
        source_url=DEBIAN_URL,
        storage_id="local-lvm",
        vm_id=9000,
        vm_name="template-20260101",
        disk_format="qcow2",
    )


@pytest.fixture
def fake_host() -> MagicMock:
    host = MagicMock(spec=ProxmoxHost)
    host.list_storages.return_value = ["local", "local-lvm"]
    host.storage_exists.return_value = True
    host.vm_exists.return_value = False
    host.import_disk.return_value = "local-lvm:vm-9000-disk-0"
    return host


@pytest.fixture
def image_cache(tmp_path) -> ImageCache:
    return ImageCache(tmp_path / "cache")
