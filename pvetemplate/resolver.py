"""Build configuration resolver: OptionSet -> ValidatedOptions -> DefaultedOptions -> BuildPlan."""

from __future__ import annotations

import shlex
from dataclasses import fields, replace
from datetime import date
from typing import Dict, Optional, Union
from urllib.parse import urlparse

from pvetemplate.constants import (
    BOOL_FIELDS,
    DEFAULTS,
    ENUM_FIELDS,
    FALSY,
    PROG_NAME,
    REQUIRED_FIELDS,
    TRUTHY,
    VM_NAME_INVALID_RE,
    VM_NAME_PREFIX,
    VMID_RE,
)
from pvetemplate.exceptions import (
    InvalidEnumValue,
    InvalidNumericField,
    InvalidURL,
    MissingDiskFormat,
    MissingRequiredField,
)
from pvetemplate.models import BuildPlan, DefaultedOptions, OptionSet, ValidatedOptions


def _clean(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def parse_bool(name: str, raw: Union[str, bool]) -> bool:
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if value in TRUTHY:
        return True
    if value in FALSY:
        return False
    raise InvalidEnumValue(name, str(raw), ("true", "false"))


def parse_vm_id(raw: str) -> int:
    if not VMID_RE.match(raw):
        raise InvalidNumericField("vm_id", raw)
    value = int(raw)
    if value < 1:
        raise InvalidNumericField("vm_id", raw)
    return value


def is_url(raw: str) -> bool:
    parsed = urlparse(raw)
    return bool(parsed.scheme) and bool(parsed.netloc)


def sanitize_vm_name(name: str) -> str:
    """Replace every character Proxmox rejects in a VM name with '-'."""
    return VM_NAME_INVALID_RE.sub("-", name)


def default_vm_name(today: Optional[date] = None) -> str:
    return f"{VM_NAME_PREFIX}{(today or date.today()).strftime('%Y%m%d')}"


def validate(options: OptionSet, interactive: bool = False) -> ValidatedOptions:
    """Check presence, shape and enum membership of every field.

    Presence is only enforced for unattended runs; the interactive prompter
    guarantees it by asking. Storage membership is left to the host query.
    """
    raw = {name: _clean(value) for name, value in options.as_dict().items()}

    if not interactive:
        for name in REQUIRED_FIELDS:
            if raw[name] is None:
                raise MissingRequiredField(name)

    values: Dict[str, object] = {}

    source_url = raw["source_url"]
    if source_url is not None and not is_url(source_url):
        raise InvalidURL("source_url", source_url)
    values["source_url"] = source_url
    values["storage_id"] = raw["storage_id"]

    vm_id = raw["vm_id"]
    values["vm_id"] = parse_vm_id(vm_id) if vm_id is not None else None

    values["vm_name"] = raw["vm_name"]
    values["network_bridge"] = raw["network_bridge"]

    for name, allowed in ENUM_FIELDS.items():
        value = raw[name]
        if value is not None and value not in allowed:
            raise InvalidEnumValue(name, value, allowed)
        values[name] = value

    if not interactive and values["disk_format"] is None:
        raise MissingDiskFormat()

    for name in BOOL_FIELDS:
        value = raw[name]
        values[name] = parse_bool(name, value) if value is not None else None

    return ValidatedOptions(**values)


def apply_defaults(validated: ValidatedOptions, today: Optional[date] = None) -> DefaultedOptions:
    """Fill every unset optional field. Never fails; applying twice is a no-op."""
    updates: Dict[str, object] = {}
    for name, default in DEFAULTS.items():
        if getattr(validated, name) is None:
            updates[name] = default
    for name in BOOL_FIELDS:
        if getattr(validated, name) is None:
            updates[name] = False
    vm_name = validated.vm_name or default_vm_name(today)
    updates["vm_name"] = sanitize_vm_name(vm_name)
    return replace(validated, **updates)


def build_plan(defaulted: DefaultedOptions) -> BuildPlan:
    if defaulted.disk_format is None:
        raise MissingDiskFormat()
    for name in REQUIRED_FIELDS:
        if getattr(defaulted, name) is None:
            raise MissingRequiredField(name)
    values = {f.name: getattr(defaulted, f.name) for f in fields(BuildPlan)}
    return BuildPlan(**values)


def resolve(options: OptionSet, interactive: bool = False, today: Optional[date] = None) -> BuildPlan:
    """Run the whole validate -> default -> build pipeline."""
    return build_plan(apply_defaults(validate(options, interactive=interactive), today=today))


def format_command(plan: BuildPlan, prog: str = PROG_NAME) -> str:
    """Shell-quoted command line that reproduces ``plan`` unattended."""
    return shlex.join([prog, *plan.to_command_line()])
