"""
Best-effort parsing of Ranger conflict messages.

Ranger reports overlapping policies as a 400 with free text such as
``Another policy already exists for matching resource: policy-name=[x],
service=[doris_nbd]``. Nothing here is a contract; callers use it only when
the HTTP status does not already say "conflict".
"""

import json
import re
import logging
from typing import Any, List, Optional, Union

logger = logging.getLogger(__name__)

CONFLICT_PATTERN = re.compile(r"already exists|duplicate|conflict|matching resource", re.IGNORECASE)
POLICY_NAME_PATTERN = re.compile(r"policy-name=\[([^\]]+)\]")


def error_message(body: Union[str, bytes, dict, None]) -> str:
    """Extract Ranger's msgDesc from an error body, or fall back to the raw text"""
    if body is None:
        return ""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            data: Any = json.loads(body)
        except ValueError:
            return body
    else:
        data = body
    if isinstance(data, dict):
        message = data.get("msgDesc")
        if message:
            return str(message)
        messages = data.get("messageList") or []
        parts = [m.get("message", "") for m in messages if isinstance(m, dict)]
        if any(parts):
            return "; ".join(p for p in parts if p)
    return body if isinstance(body, str) else json.dumps(data)


def is_conflict_message(text: str) -> bool:
    return bool(text) and CONFLICT_PATTERN.search(text) is not None


def policy_names_in(text: str) -> List[str]:
    return POLICY_NAME_PATTERN.findall(text or "")


def conflicting_policy_name(names: List[str], own_name: str) -> Optional[str]:
    """
    Pick the policy a conflict refers to.

    Returns the first name that is not ``own_name``; ``own_name`` itself if
    it is the only one mentioned (a same-name collision); None when the
    message named no policy at all.
    """
    for name in names:
        if name != own_name:
            return name
    if own_name in names:
        return own_name
    logger.warning(f"Could not extract a conflicting policy name while creating '{own_name}'")
    return None
