from __future__ import annotations

import re

from .errors import InvalidBucketName

BUCKET_NAME_MIN = 3
BUCKET_NAME_MAX = 63

_CHARSET = re.compile(r"[a-z0-9.-]+")


def validate_bucket_name(name: str) -> str:
    """Check ``name`` against DNS-label bucket rules; returns it unchanged.

    Every bucket-taking operation goes through here. Raises
    :class:`InvalidBucketName` whose ``rule`` is one of ``length``,
    ``charset``, ``edge`` or ``consecutive_dots``.
    """
    if not isinstance(name, str) or not (BUCKET_NAME_MIN <= len(name) <= BUCKET_NAME_MAX):
        length = len(name) if isinstance(name, str) else 0
        raise InvalidBucketName(
            str(name), "length", f"must be {BUCKET_NAME_MIN}-{BUCKET_NAME_MAX} characters, got {length}"
        )
    if not _CHARSET.fullmatch(name):
        raise InvalidBucketName(name, "charset", "only lowercase letters, digits, '.' and '-' are allowed")
    if not (name[0].isalnum() and name[-1].isalnum()):
        raise InvalidBucketName(name, "edge", "must start and end with a letter or digit")
    if ".." in name:
        raise InvalidBucketName(name, "consecutive_dots", "must not contain consecutive dots")
    return name


def is_valid_bucket_name(name: str) -> bool:
    try:
        validate_bucket_name(name)
    except InvalidBucketName:
        return False
    return True
