"""Google Drive retrieval for documents whose payload was not stored inline.

Uses the Drive v3 REST API directly: an OAuth refresh-token grant yields an
access token, then the file is fetched with ``alt=media`` and returned as a
data URI.
"""

import logging
import re

import httpx

from carefile.config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REFRESH_TOKEN
from carefile.services.media import encode_bytes

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_TIMEOUT = 60.0

_FILE_ID_PATTERNS = (
    re.compile(r"/file/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"[?&]id=([a-zA-Z0-9_-]+)"),
    re.compile(r"/d/([a-zA-Z0-9_-]+)"),
)
_BARE_ID = re.compile(r"^[a-zA-Z0-9_-]+$")


class DriveUnavailableError(RuntimeError):
    """Raised when no Drive credentials are configured."""


def is_configured() -> bool:
    return bool(GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET and GOOGLE_REFRESH_TOKEN)


def extract_file_id(url: str | None) -> str | None:
    """Return the Drive file id from a share/view URL, or the value itself if it already is one."""
    if not url:
        return None
    for pattern in _FILE_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    if _BARE_ID.match(url):
        return url
    return None


async def _access_token(client: httpx.AsyncClient) -> str:
    resp = await client.post(
        GOOGLE_TOKEN_URL,
        data={
            "client_id": GOOGLE_CLIENT_ID,
            "client_secret": GOOGLE_CLIENT_SECRET,
            "refresh_token": GOOGLE_REFRESH_TOKEN,
            "grant_type": "refresh_token",
        },
    )
    resp.raise_for_status()
    return resp.json()["access_token"]


async def download_file(
    file_id: str | None = None,
    url: str | None = None,
    mime_type: str | None = None,
) -> str:
    """Download a Drive file and return it as a data URI.

    Raises ``DriveUnavailableError`` without credentials, ``ValueError`` when no
    file id can be resolved, and ``httpx.HTTPError`` on transport failures.
    """
    if not is_configured():
        raise DriveUnavailableError("Google Drive credentials are not configured")

    resolved = file_id or extract_file_id(url)
    if not resolved:
        raise ValueError(f"Cannot resolve a Google Drive file id from {url!r}")

    async with httpx.AsyncClient(timeout=DRIVE_TIMEOUT) as client:
        token = await _access_token(client)
        resp = await client.get(
            f"{DRIVE_FILES_URL}/{resolved}",
            params={"alt": "media"},
            headers={"Authorization": f"Bearer {token}"},
        )
        resp.raise_for_status()

    content_type = mime_type or resp.headers.get("content-type", "").split(";")[0] or None
    logger.info("Downloaded Drive file %s (%d bytes)", resolved, len(resp.content))
    return encode_bytes(resp.content, content_type)
