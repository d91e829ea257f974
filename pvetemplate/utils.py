"""Utility functions for the Proxmox template generator."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Callable, List, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from pvetemplate import __version__
from pvetemplate.constants import _LOG_VERBOSE, TRUTHY
from pvetemplate.exceptions import CommandError, GeneratorError


def log(level: str, message: str) -> None:
    """Lightweight structured logging compatible with existing colour expectation."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def is_root() -> bool:
    return os.geteuid() == 0


def missing_commands(names: Sequence[str]) -> List[str]:
    return [name for name in names if shutil.which(name) is None]


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def confirm(message: str, assume_yes: bool = False, reader: Callable[[str], str] = input) -> bool:
    """Ask a yes/no question; anything but y/Y is a no."""
    if assume_yes:
        return True
    try:
        response = reader(f"\033[0;33m[?]\033[0m {message} [y/N]: ")
    except EOFError:
        return False
    return response.strip() in {"y", "Y"}


def download_file(url: str, destination: Path, label: str = "Downloading") -> None:
    """Download a file with a progress bar using Python urllib."""
    log("INFO", f"{label}: {url}")
    req = Request(url, headers={"User-Agent": f"pve-template/{__version__}"})
    try:
        response = urlopen(req, timeout=60)
    except HTTPError as exc:
        raise GeneratorError(f"HTTP error downloading {url}: {exc.code} {exc.reason}")
    except URLError as exc:
        raise GeneratorError(f"Failed to download {url}: {exc.reason}")

    total = response.headers.get("Content-Length")
    total_bytes = int(total) if total else None
    downloaded = 0
    start_time = time.time()

    with tempfile.NamedTemporaryFile(delete=False, dir=destination.parent, suffix=".tmp") as tmp:
        tmp_path = Path(tmp.name)
        try:
            chunk_size = 1024 * 256  # 256 KiB
            while True:
                chunk = response.read(chunk_size)
                if not chunk:
                    break
                tmp.write(chunk)
                downloaded += len(chunk)

                elapsed = time.time() - start_time
                speed = downloaded / elapsed if elapsed > 0 else 0
                downloaded_mb = downloaded / (1024 * 1024)

                if total_bytes:
                    total_mb = total_bytes / (1024 * 1024)
                    pct = downloaded * 100 / total_bytes
                    filled = int(30 * downloaded / total_bytes)
                    bar = "#" * filled + "-" * (30 - filled)
                    print(
                        f"\r  [{bar}] {pct:5.1f}% {downloaded_mb:.1f}/{total_mb:.1f} MiB "
                        f"({speed / (1024 * 1024):.1f} MiB/s)",
                        end="", flush=True,
                    )
                else:
                    print(
                        f"\r  {downloaded_mb:.1f} MiB downloaded ({speed / (1024 * 1024):.1f} MiB/s)",
                        end="", flush=True,
                    )
            print(flush=True)
        except BaseException:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise

    if total_bytes is not None and downloaded != total_bytes:
        tmp_path.unlink(missing_ok=True)
        raise GeneratorError(f"Incomplete download of {url}: got {downloaded} of {total_bytes} bytes")
    tmp_path.replace(destination)
    elapsed = time.time() - start_time
    log("SUCCESS", f"Downloaded {downloaded / (1024 * 1024):.1f} MiB in {elapsed:.1f}s")


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging; raise CommandError on failure when ``check``."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, check=False, text=True, **kwargs)
    if check and result.returncode != 0:
        stderr = result.stderr if isinstance(result.stderr, str) else ""
        raise CommandError(cmd, result.returncode, stderr)
    return result
