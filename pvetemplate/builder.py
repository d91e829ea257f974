"""Template build pipeline: download, customize, register with Proxmox."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from pvetemplate.cache import ImageCache
from pvetemplate.constants import CUSTOMIZE_COMMAND, REQUIRED_COMMANDS, TROUBLESHOOTING_URL
from pvetemplate.customize import customize_args, customize_image, format_customize_command
from pvetemplate.exceptions import AbortedByUser, CommandError, GeneratorError
from pvetemplate.models import BuildPlan
from pvetemplate.proxmox import ProxmoxHost
from pvetemplate.utils import confirm, is_root, log, missing_commands


def check_prerequisites(cache: ImageCache) -> None:
    if not is_root():
        raise GeneratorError("This tool must be run as root")
    if missing_commands([CUSTOMIZE_COMMAND]):
        raise GeneratorError(
            f"{CUSTOMIZE_COMMAND} not found! Install libguestfs-tools package.\n  See: {TROUBLESHOOTING_URL}"
        )
    missing = missing_commands(REQUIRED_COMMANDS)
    if missing:
        raise GeneratorError(f"Missing required commands: {' '.join(missing)}")
    cache.prepare()
    log("INFO", "All prerequisites met")


class TemplateBuilder:
    def __init__(
        self,
        plan: BuildPlan,
        host: Optional[ProxmoxHost] = None,
        cache: Optional[ImageCache] = None,
        confirm_fn: Callable[..., bool] = confirm,
    ) -> None:
        self.plan = plan
        self.host = host or ProxmoxHost()
        self.cache = cache or ImageCache()
        self._confirm = confirm_fn
        self.image_path: Optional[Path] = None

    def ask(self, message: str) -> bool:
        return self._confirm(message, assume_yes=self.plan.assume_yes)

    def confirm_vm_replacement(self) -> None:
        if not self.host.vm_exists(self.plan.vm_id):
            return
        log("WARN", f"VM {self.plan.vm_id} already exists!")
        if not self.ask(f"Destroy existing VM {self.plan.vm_id} and continue? (use -y flag to skip this prompt)"):
            raise AbortedByUser()

    def check(self) -> None:
        """Host-side checks that the pure resolver cannot make."""
        self.confirm_vm_replacement()
        if not self.host.storage_exists(self.plan.storage_id):
            raise GeneratorError(f"Storage '{self.plan.storage_id}' not found")

    def fetch_image(self) -> Path:
        self.image_path = self.cache.ensure_image(self.plan.source_url, no_cache=self.plan.no_cache)
        return self.image_path

    def customize(self, image_path: Path) -> str:
        try:
            command = customize_image(image_path, self.plan)
        except CommandError:
            log("ERROR", "Image customization failed!")
            log("INFO", "You can execute the command with -v -x for verbose output to debug the issue:")
            print(format_customize_command(image_path, customize_args(self.plan)) + " -v -x", flush=True)
            log("INFO", f"See: {TROUBLESHOOTING_URL}")
            if not self.plan.cleanup_cache and image_path.is_file():
                self.offer_cache_deletion(image_path)
            raise
        log("INFO", f"Image customization complete. Used command: {command}")
        return command

    def create_template(self, image_path: Path) -> None:
        log("INFO", "Creating VM template")
        self.host.destroy_vm(self.plan.vm_id)
        self.host.create_vm(self.plan)
        disk_spec = self.host.import_disk(self.plan, image_path)
        self.host.configure_vm(self.plan, disk_spec)
        self.host.convert_to_template(self.plan.vm_id)
        log("SUCCESS", f"Template created successfully: {self.plan.vm_name} (ID: {self.plan.vm_id})")

    def offer_cache_deletion(self, image_path: Path) -> None:
        if self.ask(f"Delete cached cloud image ({image_path})?"):
            self.cache.delete(image_path)
        else:
            log("INFO", f"Cached image kept at: {image_path}")

    def finish(self, image_path: Path, interactive: bool = False) -> None:
        if self.plan.cleanup_cache:
            self.cache.delete(image_path)
        elif interactive:
            self.offer_cache_deletion(image_path)
        else:
            log("INFO", f"Cached image kept at: {image_path}")

    def run(self, interactive: bool = False) -> Path:
        image_path = self.fetch_image()
        self.customize(image_path)
        self.create_template(image_path)
        self.finish(image_path, interactive=interactive)
        return image_path
