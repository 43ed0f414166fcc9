import re
import uuid

_ID_RE = re.compile(r"^[a-z]{3}_[0-9a-f]{32}$")


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def is_id(value: str, prefix: str | None = None) -> bool:
    """
    True if value has the shape produced by gen_id (optionally with a specific prefix).
    """
    v = (value or "").strip()
    if not _ID_RE.match(v):
        return False
    return prefix is None or v.startswith(f"{prefix}_")
