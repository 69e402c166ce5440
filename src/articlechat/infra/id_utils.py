"""Prefixed ID generation.

All public-facing IDs use a ``{prefix}_{random}`` format so that any
ID can be visually identified by its origin:

- ``msg_kJ3pW7mD4bNx``   — chat message (user or assistant)
"""

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits
_DEFAULT_LENGTH = 12  # ~71 bits of entropy

MESSAGE_ID_PREFIX = "msg"


def generate_id(prefix: str, length: int = _DEFAULT_LENGTH) -> str:
    """Generate a prefixed random ID.

    Args:
        prefix: Short descriptor (e.g. ``"msg"``).
        length: Number of random alphanumeric characters after the prefix.

    Returns:
        ``"{prefix}_{random}"`` string.
    """
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(length))
    return f"{prefix}_{suffix}"


def generate_message_id() -> str:
    return generate_id(MESSAGE_ID_PREFIX)
