"""
Human-readable time helpers.
"""
import time
from typing import Optional

from ..models.listing import to_epoch_seconds


def time_ago(timestamp, now: Optional[float] = None) -> str:
    """
    Describe how long ago a timestamp was, e.g. "5m ago" or "2mo ago".

    A missing timestamp (e.g. a server timestamp not yet resolved) reads
    "just now".
    """
    if timestamp is None:
        return "just now"

    now = time.time() if now is None else now
    s = max(0, int(now - to_epoch_seconds(timestamp)))
    if s < 60:
        return f"{s}s ago"
    m = s // 60
    if m < 60:
        return f"{m}m ago"
    h = m // 60
    if h < 24:
        return f"{h}h ago"
    d = h // 24
    if d < 30:
        return f"{d}d ago"
    mo = d // 30
    if mo < 12:
        return f"{mo}mo ago"
    return f"{mo // 12}y ago"
