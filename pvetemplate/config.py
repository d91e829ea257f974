"""Option file loading for unattended template builds."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from pvetemplate.exceptions import GeneratorError
from pvetemplate.models import OptionSet
from pvetemplate.utils import log

# Flag spellings accepted as option file keys in addition to field names.
KEY_ALIASES = {
    "url": "source_url",
    "storage": "storage_id",
    "vmid": "vm_id",
    "name": "vm_name",
    "bridge": "network_bridge",
    "bios": "bios_mode",
    "format": "disk_format",
    "machine": "machine_type",
    "display": "display_type",
    "rhel_derivative": "is_rhel_derivative",
    "cleanup": "cleanup_cache",
    "yes": "assume_yes",
}


def normalize_key(key: str) -> str:
    candidate = str(key).strip().lower().replace("-", "_")
    return KEY_ALIASES.get(candidate, candidate)


def _stringify(key: str, value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise GeneratorError(f"Option '{key}' must be a scalar value (got {type(value).__name__})")


def load_option_file(path: Path) -> OptionSet:
    """Read a YAML mapping of options into an OptionSet."""
    if not path.exists():
        raise GeneratorError(f"Option file missing: {path}")
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise GeneratorError(f"Option file {path} contains invalid YAML: {exc}")
    if data is None:
        log("WARN", f"Option file {path} is empty")
        return OptionSet()
    if not isinstance(data, dict):
        raise GeneratorError(f"Option file {path} must contain a YAML mapping, got {type(data).__name__}")

    known = set(OptionSet.field_names())
    values: Dict[str, Optional[str]] = {}
    for raw_key, raw_value in data.items():
        key = normalize_key(raw_key)
        if key not in known:
            supported = ", ".join(sorted(known))
            raise GeneratorError(f"Unknown option '{raw_key}' in {path}. Supported: {supported}")
        values[key] = _stringify(str(raw_key), raw_value)
    log("DEBUG", f"Loaded {len(values)} option(s) from {path}")
    return OptionSet.from_mapping(values)
