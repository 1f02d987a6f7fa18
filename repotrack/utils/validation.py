"""Syntax checks run before anything is sent to the indexing service."""

import re

_UUID_PATTERN = re.compile(
    r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
    re.IGNORECASE
)

# Windows absolute path, e.g. C:\src\repo
_DRIVE_PATH_PATTERN = re.compile(r'^[a-zA-Z]:\\')

_LOCATOR_PREFIXES = ("http://", "https://", "git@", "/")


def is_valid_identifier(value) -> bool:
    """Check that value is a UUID in canonical 8-4-4-4-12 form."""
    if not isinstance(value, str):
        return False
    return _UUID_PATTERN.fullmatch(value) is not None


def is_valid_source_locator(value) -> bool:
    """
    Check that value looks like something git can clone.

    Accepts http(s) URLs, scp-style git@ remotes and absolute local paths
    (POSIX or drive-letter). The locator is never dereferenced.
    """
    if not isinstance(value, str):
        return False
    return value.startswith(_LOCATOR_PREFIXES) or _DRIVE_PATH_PATTERN.match(value) is not None
