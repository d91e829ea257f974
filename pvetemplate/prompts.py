"""Interactive question flow that accumulates an OptionSet answer by answer."""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Optional, Sequence, Tuple

from pvetemplate.cache import ImageCache
from pvetemplate.constants import (
    BIOS_MENU,
    DISK_DEVICE_MENU,
    DISK_FORMAT_MENU,
    DISPLAY_MENU,
    MACHINE_MENU,
    SCSI_CONTROLLER_MENU,
)
from pvetemplate.exceptions import (
    AbortedByUser,
    GeneratorError,
    InvalidNumericField,
    MissingRequiredField,
    ValidationError,
)
from pvetemplate.models import OptionSet
from pvetemplate.proxmox import ProxmoxHost
from pvetemplate.resolver import default_vm_name, parse_bool, sanitize_vm_name, validate
from pvetemplate.utils import confirm, log

Menu = Sequence[Tuple[str, str]]

RHEL_NOTE = (
    "Note: Most providers disable SELinux by default. Keeping SELinux enabled may cause configuration\n"
    "      challenges, templates may not work out of the box, and further configurations might be necessary."
)
QEMU_PERMISSIVE_NOTE = (
    "Set qemu-guest-agent to SELinux permissive mode? (Recommended. Otherwise, you must handle "
    "SELinux-related issues yourself, which may affect callbacks and first-boot scripts if SELinux is enforced.)"
)


class InteractiveSession:
    """Ask for every build option in turn, validating each answer as it arrives."""

    def __init__(
        self,
        host: ProxmoxHost,
        cache: ImageCache,
        base: Optional[OptionSet] = None,
        reader: Callable[[str], str] = input,
    ) -> None:
        self.host = host
        self.cache = cache
        self.options = base or OptionSet()
        self._reader = reader

    @property
    def assume_yes(self) -> bool:
        return parse_bool("assume_yes", self.options.assume_yes or "false")

    def _ask(self, prompt: str) -> str:
        try:
            return self._reader(prompt).strip()
        except EOFError:
            raise AbortedByUser("Input closed before all questions were answered")

    def _confirm(self, message: str) -> bool:
        return confirm(message, assume_yes=self.assume_yes, reader=self._reader)

    def _set(self, **values: str) -> None:
        candidate = replace(self.options, **values)
        validate(candidate, interactive=True)
        self.options = candidate

    def choose(self, title: str, menu: Menu, label: str) -> str:
        print(flush=True)
        print(f"{title}", flush=True)
        for idx, (_value, text) in enumerate(menu, start=1):
            print(f"  {idx}) {text}", flush=True)
        subject = f"{label} " if label else ""
        answer = self._ask(f"Select {subject}[1-{len(menu)}]: ")
        if not answer.isdigit() or not 1 <= int(answer) <= len(menu):
            raise ValidationError(f"Invalid {subject}selection")
        return menu[int(answer) - 1][0]

    def yes_no(self, title: str, yes: str = "Yes", no: str = "No") -> str:
        return self.choose(title, (("true", yes), ("false", no)), "")

    def ask_url(self) -> None:
        url = self._ask("Cloud image URL: ")
        if not url:
            raise MissingRequiredField("source_url")
        self._set(source_url=url)

        no_cache = parse_bool("no_cache", self.options.no_cache or "false")
        if self.cache.is_cached(url) and not no_cache and not self.assume_yes:
            cached = self.cache.path_for(url)
            print(flush=True)
            log("WARN", f"Found cached image: {cached}")
            log("WARN", "This image may have been modified by previous template builds")
            print(flush=True)
            if self._confirm("Delete cached image and re-download?"):
                self.cache.delete(cached)

    def ask_storage(self) -> None:
        print(flush=True)
        log("INFO", "Available storages:")
        storages = self.host.list_storages()
        if not storages:
            raise GeneratorError("No storage found")
        for idx, storage in enumerate(storages, start=1):
            print(f"  {idx}) {storage}", flush=True)
        answer = self._ask(f"Select storage [1-{len(storages)}]: ")
        if not answer.isdigit() or not 1 <= int(answer) <= len(storages):
            raise ValidationError("Invalid storage selection")
        self._set(storage_id=storages[int(answer) - 1])

    def ask_vm_id(self) -> None:
        print(flush=True)
        answer = self._ask("New VM ID of the template VM: ")
        if not answer:
            raise InvalidNumericField("vm_id", answer)
        self._set(vm_id=answer)
        vm_id = int(self.options.vm_id)
        if self.host.vm_exists(vm_id):
            log("WARN", f"VM {vm_id} already exists!")
            if not self._confirm(f"Destroy existing VM {vm_id} and continue? (use -y flag to skip this prompt)"):
                raise AbortedByUser()

    def ask_name_and_bridge(self) -> None:
        default_name = default_vm_name()
        name = self._ask(f"Template name [{default_name}]: ") or default_name
        sanitized = sanitize_vm_name(name)
        if sanitized != name:
            log("WARN", f"VM name contained invalid characters, sanitized to: {sanitized}")
        self._set(vm_name=sanitized)
        self._set(network_bridge=self._ask("Network bridge [vmbr0]: ") or "vmbr0")

    def ask_hardware(self) -> None:
        self._set(bios_mode=self.choose("BIOS Mode:", BIOS_MENU, "BIOS mode"))
        self._set(disk_format=self.choose("Disk Format:", DISK_FORMAT_MENU, "disk format"))
        self._set(machine_type=self.choose("Machine Type:", MACHINE_MENU, "machine type"))
        self._set(scsi_controller=self.choose("SCSI Controller:", SCSI_CONTROLLER_MENU, "SCSI controller"))
        self._set(disk_device=self.choose("Disk Device:", DISK_DEVICE_MENU, "disk device"))
        self._set(display_type=self.choose("Display:", DISPLAY_MENU, "display"))

    def ask_distribution(self) -> None:
        rhel = self.yes_no("Is this a RHEL derivative (RHEL/CentOS/AlmaLinux/Rocky/Fedora)?")
        self._set(is_rhel_derivative=rhel)
        if rhel == "true":
            disable = self.yes_no(
                f"Disable SELinux?\n{RHEL_NOTE}",
                yes="Yes (disable SELinux)",
                no="No (leave SELinux unchanged from image default)",
            )
            self._set(disable_selinux=disable)
            if disable == "false":
                self._set(
                    selinux_relabel=self.yes_no(
                        "Run SELinux relabel during template building?",
                        yes="Yes (recommended, takes 1-2 min extra)",
                    )
                )
                self._set(qemu_permissive=self.yes_no(QEMU_PERMISSIVE_NOTE, yes="Yes (recommended)"))
        self._set(update_packages=self.yes_no("Update all packages in template?", yes="Yes (recommended)"))

    def run(self) -> OptionSet:
        """Ask every question in order and return the completed OptionSet."""
        log("INFO", "Interactive Template Generator For Proxmox")
        log("INFO", "Run with --help to see options for automated builds")
        log("INFO", "After creating the image, the tool will output a command for automated builds")
        print(flush=True)
        self.ask_url()
        self.ask_storage()
        self.ask_vm_id()
        self.ask_name_and_bridge()
        self.ask_hardware()
        self.ask_distribution()
        return self.options
