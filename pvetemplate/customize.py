"""Offline image customization via virt-customize."""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import List

from pvetemplate.constants import CUSTOMIZE_COMMAND
from pvetemplate.models import BuildPlan
from pvetemplate.utils import log, run

BASE_ARGS = (
    "--install", "cloud-init,qemu-guest-agent",
    "--run-command", "systemctl enable qemu-guest-agent",
    "--run-command", "cloud-init clean",
    "--run-command", "rm -f /etc/cloud/cloud-init.disabled",
    "--run-command", "truncate -s 0 /etc/machine-id",
    "--run-command", "rm -f /var/lib/dbus/machine-id",
    "--run-command", "ln -s /etc/machine-id /var/lib/dbus/machine-id || true",
    "--no-logfile",
)

SSH_CLOUD_CONFIG = (
    "if [ -d /etc/cloud/cloud.cfg.d ]; then "
    "cat > /etc/cloud/cloud.cfg.d/99-ssh.cfg <<EOF\n"
    "disable_root: false\n"
    "ssh_pwauth: true\n"
    "EOF\n"
    "fi"
)

# RHEL cloud images blacklist the guest-exec RPC of qemu-guest-agent.
RHEL_GUEST_EXEC_FIX = (
    "if [ -f /etc/sysconfig/qemu-ga ]; then "
    r'sed -i "/^BLACKLIST_RPC=/s/\(^\|,\)guest-exec\(,\|$\)/\1/g; /^BLACKLIST_RPC=/s/,,/,/g; '
    r'/^BLACKLIST_RPC=/s/^BLACKLIST_RPC=,/BLACKLIST_RPC=/; /^BLACKLIST_RPC=/s/,$//" /etc/sysconfig/qemu-ga; '
    'if ! grep -v "^#" /etc/sysconfig/qemu-ga | grep -q "guest-exec"; then '
    r'sed -i "s/\(--allow-rpcs=\)/\1guest-exec,/" /etc/sysconfig/qemu-ga; '
    "fi; "
    "command -v restorecon > /dev/null && restorecon /etc/sysconfig/qemu-ga || true; "
    "fi"
)

QEMU_GA_PERMISSIVE_FIX = (
    'if [ -f /etc/selinux/config ] && grep -qE "^SELINUX=(enforcing|permissive)" /etc/selinux/config; then '
    "dnf install -y policycoreutils-python-utils || yum install -y policycoreutils-python-utils || true; "
    "semanage permissive -a qemu_ga_t || true; "
    "semanage permissive -a virt_qemu_ga_t || true; "
    "fi"
)

# Updating packages with SELinux enforcing can lock the root account on some
# RHEL 8 images (https://bugzilla.redhat.com/show_bug.cgi?id=1554735).
SELINUX_DISABLE = r"sed -i 's/^SELINUX=\(enforcing\|permissive\)/SELINUX=disabled/' /etc/selinux/config || true"


def customize_args(plan: BuildPlan) -> List[str]:
    """Return the virt-customize arguments (without ``-a IMAGE``) for ``plan``."""
    args = list(BASE_ARGS)
    args.extend(["--run-command", SSH_CLOUD_CONFIG])

    if plan.update_packages:
        args.append("--update")

    rhel = plan.rhel
    if rhel is not None:
        args.extend(["--run-command", RHEL_GUEST_EXEC_FIX])
        if rhel.qemu_permissive:
            args.extend(["--run-command", QEMU_GA_PERMISSIVE_FIX])

    if plan.disable_selinux:
        args.extend(["--run-command", SELINUX_DISABLE])
    if rhel is not None and rhel.selinux_relabel:
        # --selinux-relabel writes a fresh /.autorelabel if relabelling fails
        args.extend(["--run-command", "rm -f /.autorelabel", "--selinux-relabel"])
    return args


def format_customize_command(image_path: Path, args: List[str]) -> str:
    return shlex.join([CUSTOMIZE_COMMAND, "-a", str(image_path), *args])


def customize_image(image_path: Path, plan: BuildPlan) -> str:
    """Run virt-customize against ``image_path``; return the command used."""
    args = customize_args(plan)
    log("INFO", "Customizing cloud image")
    if plan.update_packages:
        log("INFO", "Package update enabled (this may take a while)")
    rhel = plan.rhel
    if plan.disable_selinux:
        log("INFO", "Disabling SELinux")
    if rhel is not None and rhel.selinux_relabel:
        log("INFO", "SELinux relabel enabled (this may take a while)")
    for name in plan.inert_options:
        log("WARN", f"Ignoring {name}: only applies to RHEL derivatives with SELinux left enabled")
    run([CUSTOMIZE_COMMAND, "-a", str(image_path), *args])
    return format_customize_command(image_path, args)
