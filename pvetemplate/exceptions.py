"""Custom exceptions for the Proxmox template generator."""

from __future__ import annotations

from typing import Sequence


class GeneratorError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""


class ValidationError(GeneratorError):
    """Base class for option validation failures."""


class MissingRequiredField(ValidationError):
    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Missing required argument: {field} (required: --url, --storage, --vmid)")


class InvalidNumericField(ValidationError):
    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field} must be a positive number (got '{value}')")


class InvalidEnumValue(ValidationError):
    def __init__(self, field: str, value: str, allowed: Sequence[str]) -> None:
        self.field = field
        self.value = value
        self.allowed = tuple(allowed)
        super().__init__(f"Invalid {field} '{value}'. Supported: {', '.join(self.allowed)}")


class MissingDiskFormat(ValidationError):
    def __init__(self) -> None:
        self.field = "disk_format"
        super().__init__("Disk format not specified. Use --qcow2 or --raw")


class InvalidURL(ValidationError):
    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field} must be an absolute URL such as https://host/image.qcow2 (got '{value}')")


class CommandError(GeneratorError):
    """An external tool exited with a non-zero status."""

    def __init__(self, cmd: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        message = f"{self.cmd[0]} exited with status {returncode}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)


class AbortedByUser(GeneratorError):
    def __init__(self, message: str = "Aborted by user") -> None:
        super().__init__(message)
