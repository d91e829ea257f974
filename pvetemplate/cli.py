"""CLI entry points for the Proxmox template generator."""

from __future__ import annotations

import argparse
import shlex
from pathlib import Path
from typing import List, Optional

from pvetemplate import __version__
from pvetemplate.builder import TemplateBuilder, check_prerequisites
from pvetemplate.cache import ImageCache
from pvetemplate.config import load_option_file
from pvetemplate.constants import PROG_NAME, REQUIRED_FIELDS, TROUBLESHOOTING_URL
from pvetemplate.customize import customize_args, format_customize_command
from pvetemplate.exceptions import AbortedByUser, GeneratorError, MissingRequiredField, ValidationError
from pvetemplate.models import BuildPlan, OptionSet
from pvetemplate.prompts import InteractiveSession
from pvetemplate.proxmox import ProxmoxHost, configure_commands, create_command, import_command, template_command
from pvetemplate.resolver import format_command, resolve
from pvetemplate.updates import check_for_updates
from pvetemplate.utils import log

EPILOG = (
    "Generate a template in interactive mode to receive a command for automated builds.\n\n"
    f"For troubleshooting, visit: {TROUBLESHOOTING_URL}"
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG_NAME,
        description="Proxmox template generator: build VM templates from cloud images",
        usage=f"{PROG_NAME} [--url URL --storage STORAGE --vmid ID] [OPTIONS]",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", dest="source_url", metavar="URL", help="Cloud image URL")
    parser.add_argument("--storage", dest="storage_id", metavar="STORAGE", help="Proxmox storage ID")
    parser.add_argument("--vmid", dest="vm_id", metavar="ID", help="VM ID for the template")
    parser.add_argument("--name", dest="vm_name", metavar="NAME", help="Template name (default: template-YYYYMMDD)")
    parser.add_argument("--bridge", dest="network_bridge", metavar="BRIDGE", help="Network bridge (default: vmbr0)")
    parser.add_argument(
        "--bios", dest="bios_mode", action="store_const", const="bios", help="Use SeaBIOS (Legacy BIOS, default)"
    )
    parser.add_argument("--uefi", dest="bios_mode", action="store_const", const="uefi", help="Use UEFI (OVMF)")
    parser.add_argument("--qcow2", dest="disk_format", action="store_const", const="qcow2", help="Use qcow2 disk format")
    parser.add_argument("--raw", dest="disk_format", action="store_const", const="raw", help="Use raw disk format")
    parser.add_argument(
        "--machine", dest="machine_type", metavar="TYPE", help="Machine type: pc-i440fx (default), q35"
    )
    parser.add_argument(
        "--scsi-controller",
        dest="scsi_controller",
        metavar="TYPE",
        help="SCSI controller: virtio-scsi-single (default), virtio-scsi-pci, lsi, lsi53c810, megasas, pvscsi",
    )
    parser.add_argument(
        "--disk-device", dest="disk_device", metavar="TYPE", help="Disk device: scsi (default), virtio, sata, ide"
    )
    parser.add_argument(
        "--display",
        dest="display_type",
        metavar="TYPE",
        help="Display: serial0 (default), std, virtio, qxl, vmware, none",
    )
    flags = (
        ("--rhel-derivative", "is_rhel_derivative", "Mark as RHEL derivative (enables RHEL-specific fixes)"),
        ("--disable-selinux", "disable_selinux", "Disable SELinux in the template"),
        ("--selinux-relabel", "selinux_relabel", "Run full SELinux relabel during build"),
        ("--qemu-permissive", "qemu_permissive", "Set qemu-guest-agent to SELinux permissive mode"),
        ("--update-packages", "update_packages", "Update all packages during template build (recommended)"),
        ("--no-cache", "no_cache", "Force re-download of cloud image"),
        ("--cleanup", "cleanup_cache", "Delete cached cloud image after template creation"),
    )
    for flag, dest, help_text in flags:
        parser.add_argument(flag, dest=dest, action="store_const", const="true", help=help_text)
    parser.add_argument(
        "-y", "--yes", dest="assume_yes", action="store_const", const="true", help="Skip all confirmations"
    )
    parser.add_argument("--config", metavar="FILE", help="YAML file with options; command-line flags take precedence")
    parser.add_argument(
        "--dry-run", action="store_true", help="Resolve options, print the build commands and exit without changes"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def options_from_args(args: argparse.Namespace) -> OptionSet:
    known = set(OptionSet.field_names())
    return OptionSet.from_mapping({k: v for k, v in vars(args).items() if k in known})


def is_argument_mode(options: OptionSet) -> bool:
    return any(getattr(options, name) for name in REQUIRED_FIELDS)


def _yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def print_summary(plan: BuildPlan, cache: ImageCache) -> None:
    """Print the resolved build plan."""
    cache_path = cache.path_for(plan.source_url)
    cache_status = "Using cached image" if cache_path.is_file() and not plan.no_cache else "Will download image"
    rows = [
        ("URL", plan.source_url),
        ("Cache", cache_status),
        ("Cache Path", str(cache_path)),
        ("Storage", plan.storage_id),
        ("VM ID", str(plan.vm_id)),
        ("Name", plan.vm_name),
        ("Bridge", plan.network_bridge),
        ("BIOS", plan.bios_mode),
        ("Disk Format", plan.disk_format),
        ("Machine Type", plan.machine_type),
        ("SCSI Controller", plan.scsi_controller),
        ("Disk Device", plan.disk_device),
        ("Display", plan.display_type),
        ("RHEL Derivative", _yes_no(plan.is_rhel_derivative)),
    ]
    rhel = plan.rhel
    if rhel is not None:
        rows.append(("SELinux Disabled", _yes_no(rhel.disable_selinux)))
        if not rhel.disable_selinux:
            rows.append(("SELinux Relabel", _yes_no(rhel.selinux_relabel)))
            rows.append(("QEMU Permissive", _yes_no(rhel.qemu_permissive)))
    elif plan.disable_selinux:
        rows.append(("SELinux Disabled", "Yes"))
    rows.append(("Update Packages", _yes_no(plan.update_packages)))

    log("INFO", "Configuration Summary")
    for label, value in rows:
        print(f"  {label + ':':<19}{value}", flush=True)
    for name in plan.inert_options:
        log("WARN", f"{name} is set but has no effect for this image")
    print(flush=True)


def print_commands(plan: BuildPlan, cache: ImageCache) -> None:
    """Print the external commands a build of ``plan`` would run."""
    image_path = cache.path_for(plan.source_url)
    commands = [
        format_customize_command(image_path, customize_args(plan)),
        shlex.join(create_command(plan)),
        shlex.join(import_command(plan, image_path)),
    ]
    commands.extend(shlex.join(cmd) for cmd in configure_commands(plan, "<imported-disk>"))
    commands.append(shlex.join(template_command(plan.vm_id)))
    log("INFO", "=== Build commands ===")
    for command in commands:
        print(f"  {command}", flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    cache = ImageCache()
    host = ProxmoxHost()
    interactive = False
    try:
        options = options_from_args(args)
        if args.config:
            options = load_option_file(Path(args.config)).merged(options)
        interactive = not is_argument_mode(options)

        if args.dry_run:
            plan = resolve(options)
            print_summary(plan, cache)
            print_commands(plan, cache)
            log("INFO", "Reproduce with:")
            print(f"  {format_command(plan)}", flush=True)
            log("INFO", "=== Dry-run complete (no changes made) ===")
            return 0

        check_prerequisites(cache)
        if interactive:
            check_for_updates()
            options = InteractiveSession(host, cache, base=options).run()

        plan = resolve(options)
        builder = TemplateBuilder(plan, host=host, cache=cache)
        if interactive:
            print(flush=True)
            print_summary(plan, cache)
            if not builder.ask("Proceed with template creation?"):
                raise AbortedByUser()
        else:
            builder.check()

        builder.run(interactive=interactive)

        if interactive:
            print(flush=True)
            log("INFO", "For automated builds, use this command:")
            log("INFO", format_command(plan))
        return 0
    except ValidationError as exc:
        log("ERROR", str(exc))
        if isinstance(exc, MissingRequiredField) and not interactive:
            print(flush=True)
            parser.print_help()
        return 1
    except GeneratorError as exc:
        log("ERROR", str(exc))
        if cache.directory.is_dir():
            log("INFO", f"Cache directory: {cache.directory}")
            log("INFO", "You can manually clean up cached images if needed")
        return 1
    except KeyboardInterrupt:
        print(flush=True)
        log("ERROR", "Interrupted")
        return 130
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1
