"""
URL and object-path helpers for stored images.
"""
import re
from typing import Optional

PUBLIC_URL_PREFIX = "https://storage.googleapis.com/"


def gs_to_public_url(gs_url: str) -> str:
    """
    Convert gs:// URL to public HTTPS URL.

    Args:
        gs_url: GCS URL in format gs://bucket/path/to/file

    Returns:
        str: Public HTTPS URL or original URL if conversion fails
    """
    if not gs_url or not gs_url.startswith("gs://"):
        return gs_url

    parts = gs_url[len("gs://"):].split("/", 1)
    if len(parts) == 2 and parts[0] and parts[1]:
        bucket, file_path = parts
        return f"{PUBLIC_URL_PREFIX}{bucket}/{file_path}"
    return gs_url


def parse_storage_reference(reference: str) -> Optional[tuple[str, str]]:
    """
    Split a stored image reference into bucket and object name.

    Accepts gs://bucket/path and https://storage.googleapis.com/bucket/path.

    Returns:
        tuple: (bucket, object name), or None if the reference is not a GCS URL
    """
    if not reference:
        return None

    if reference.startswith("gs://"):
        path = reference[len("gs://"):]
    elif reference.startswith(PUBLIC_URL_PREFIX):
        path = reference[len(PUBLIC_URL_PREFIX):]
    else:
        return None

    parts = path.split("/", 1)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


def safe_name(original: str, default_ext: str = "") -> str:
    """
    Sanitize an uploaded filename for use in an object path.

    The base name is lowercased, whitespace runs become underscores and
    characters outside ``[a-z0-9._-]`` are dropped; the extension is kept
    lowercased.

    Args:
        original: Filename as selected by the user
        default_ext: Extension to use when the name has none (e.g. ".jpg")

    Returns:
        str: Sanitized filename
    """
    dot = original.rfind(".")
    base = (original[:dot] if dot >= 0 else original).lower()
    ext = (original[dot:] if dot >= 0 else "").lower()
    slug = re.sub(r"[^a-z0-9._-]", "", re.sub(r"\s+", "_", base))
    return f"{slug}{ext or default_ext}"


def object_path(namespace: str, timestamp_ms: int, filename: str, index: Optional[int] = None,
                default_ext: str = "") -> str:
    """Build ``{namespace}/{timestamp}_{index}_{safe name}`` (index omitted when None)."""
    prefix = f"{timestamp_ms}_{index}_" if index is not None else f"{timestamp_ms}_"
    return f"{namespace.rstrip('/')}/{prefix}{safe_name(filename, default_ext)}"
