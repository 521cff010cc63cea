"""Tell the user when a newer labractl release exists on GitHub."""

import logging
import ssl
from typing import Optional

import httpx
import truststore

from labractl.config import RELEASES_URL
from labractl.console import err_console

logger = logging.getLogger(__name__)

ssl_context = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)

CHECK_TIMEOUT = 2.0


def _parse_version(v: str) -> tuple[int, ...]:
    core = v.strip().lstrip("v").split("-", 1)[0].split("+", 1)[0]
    parts = [int(x) for x in core.split(".")]
    # 1.2 is 1.2.0
    parts += [0] * (3 - len(parts))
    return tuple(parts)


def is_newer(latest: str, current: str) -> bool:
    try:
        return _parse_version(latest) > _parse_version(current)
    except ValueError:
        return False


def fetch_latest_tag(client: Optional[httpx.Client] = None) -> Optional[str]:
    owns_client = client is None
    if owns_client:
        client = httpx.Client(verify=ssl_context)
    try:
        response = client.get(RELEASES_URL, timeout=CHECK_TIMEOUT, follow_redirects=True)
        if response.status_code != 200:
            logger.debug("release check returned %s", response.status_code)
            return None
        tag = response.json().get("tag_name") or ""
    except (httpx.HTTPError, ValueError, AttributeError) as e:
        logger.debug("release check failed: %s", e)
        return None
    finally:
        if owns_client:
            client.close()
    return tag.strip() or None


def check_latest_version(current: str, client: Optional[httpx.Client] = None) -> Optional[str]:
    """Print a notice when a newer release exists. Returns the newer tag, if any.

    Development builds skip the check. Network and parse errors are ignored.
    """
    if current == "dev":
        return None
    latest = fetch_latest_tag(client)
    if latest and is_newer(latest, current):
        if not latest.startswith("v"):
            latest = "v" + latest
        err_console.print(f"A new version of labractl is available: {latest}")
        return latest
    return None
