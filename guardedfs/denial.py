"""
Classification of filesystem errors that make it unsafe to continue.

An error is "denied" when it is a permission failure or when its message
says the file is locked by another process. Messages are matched on their
lowercase text because the platform wording is the only signal some
filesystems give.
"""

import errno
from typing import Iterable, Iterator, Optional

DENIAL_PATTERNS = (
    "access is denied",
    "used by another process",
)

_DENIED_ERRNOS = (errno.EACCES, errno.EPERM)


def _error_chain(err: BaseException) -> Iterator[BaseException]:
    """
    Yield err and every exception it wraps, guarding against cycles.

    Implicit context is skipped when the raiser suppressed it (``from None``).
    """
    seen = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


def _is_permission_error(err: BaseException) -> bool:
    if isinstance(err, PermissionError):
        return True
    return isinstance(err, OSError) and err.errno in _DENIED_ERRNOS


def is_denied(err: Optional[BaseException], extra_patterns: Iterable[str] = ()) -> bool:
    """
    Decide whether an error means the filesystem denied access.

    Args:
        err: The error raised by a filesystem call, or None
        extra_patterns: Additional lowercase substrings that also count as denial

    Returns:
        True if err is, or wraps, a permission error, or if its lowercase
        message contains one of the denial patterns
    """
    if err is None:
        return False

    if any(_is_permission_error(e) for e in _error_chain(err)):
        return True

    message = str(err).lower()
    for pattern in (*DENIAL_PATTERNS, *extra_patterns):
        if pattern in message:
            return True
    return False
