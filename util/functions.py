# util/functions.py
import re
from uuid import uuid4

_REQUEST_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def new_request_id() -> str:
    return str(uuid4())


def is_valid_request_id(value: str) -> bool:
    """
    - requestId names the workspace directory, so it must be a single safe path segment.
    """
    return bool(_REQUEST_ID.match(value or ""))


def first_line(text: str) -> str:
    """First non-empty line of `text` (error summaries for the live log)."""
    for line in (text or "").splitlines():
        if line.strip():
            return line.strip()
    return ""
