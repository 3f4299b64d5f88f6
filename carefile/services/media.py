import base64
import re

DEFAULT_IMAGE_TYPE = "image/jpeg"

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^;,]*)*;base64,(?P<data>.*)$", re.DOTALL)


def to_data_uri(payload: str, mime_type: str | None = None) -> str:
    """Wrap a raw base64 payload in a data URI; data URIs pass through unchanged."""
    payload = payload.strip()
    if payload.startswith("data:"):
        return payload
    return f"data:{mime_type or DEFAULT_IMAGE_TYPE};base64,{payload}"


def split_data_uri(uri: str) -> tuple[str, str]:
    """Return (mime_type, base64_payload) for a data URI or a bare base64 string."""
    match = _DATA_URI_RE.match(uri.strip())
    if not match:
        return DEFAULT_IMAGE_TYPE, uri.strip()
    return match.group("mime") or DEFAULT_IMAGE_TYPE, match.group("data")


def decode_payload(payload: str) -> bytes:
    _, data = split_data_uri(payload)
    return base64.b64decode(data)


def encode_bytes(content: bytes, mime_type: str | None = None) -> str:
    return to_data_uri(base64.b64encode(content).decode("ascii"), mime_type)
