"""Release check against the project's GitHub releases."""

from __future__ import annotations

from typing import Optional

import requests

from pvetemplate import __version__
from pvetemplate.constants import RELEASES_PAGE, RELEASES_URL
from pvetemplate.utils import get_env_bool, log

REQUEST_TIMEOUT = 10
USER_AGENT = f"pve-template/{__version__}"


def fetch_latest_version(session: Optional[requests.Session] = None) -> Optional[str]:
    """Return the latest published version, or None when it cannot be determined."""
    if session is None:
        session = requests.Session()
        session.headers["User-Agent"] = USER_AGENT
    try:
        resp = session.get(RELEASES_URL, timeout=REQUEST_TIMEOUT)
        if resp.status_code >= 400:
            log("DEBUG", f"Release check returned HTTP {resp.status_code}")
            return None
        payload = resp.json()
    except (requests.RequestException, ValueError) as exc:
        log("DEBUG", f"Release check failed: {exc.__class__.__name__}: {exc}")
        return None
    if not isinstance(payload, dict):
        log("DEBUG", f"Release check returned unexpected payload: {type(payload).__name__}")
        return None
    tag = payload.get("tag_name")
    if not tag:
        return None
    return str(tag).lstrip("v")


def check_for_updates(session: Optional[requests.Session] = None) -> bool:
    """Warn when a newer release exists. Returns True if one was reported."""
    if get_env_bool("PVE_TEMPLATE_SKIP_UPDATE_CHECK", False):
        return False
    latest = fetch_latest_version(session)
    if latest is None or latest == __version__:
        return False
    print(flush=True)
    log("WARN", f"New version available: {latest} (current: {__version__})")
    log("INFO", f"Download: {RELEASES_PAGE}")
    print(flush=True)
    return True
