"""
Exceptions for guardedfs.

Recoverable problems derive from GuardedFSError. A denied filesystem
operation raises FatalFilesystemError instead, which is a SystemExit so that
ordinary ``except Exception`` handlers cannot turn it back into a normal error.
"""

from typing import Optional, Sequence


class GuardedFSError(Exception):
    """Base exception for recoverable guardedfs errors."""
    pass


class ConfigError(GuardedFSError):
    """Raised when the configuration file cannot be parsed or is invalid."""
    pass


class FatalFilesystemError(SystemExit):
    """
    Fail-fast signal raised when the filesystem denies access.

    Uncaught, it terminates the interpreter with ``code`` as the exit status.

    Attributes:
        code: Process exit code
        message: Formatted diagnostic message
        operation: Name of the operation that was denied (e.g. "write file")
        paths: Paths involved in the operation
    """

    def __init__(
        self,
        code: int,
        message: str,
        operation: Optional[str] = None,
        paths: Optional[Sequence[str]] = None
    ):
        super().__init__(code)
        self.message = message
        self.operation = operation
        self.paths = list(paths or [])

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"FatalFilesystemError(code={self.code!r}, "
            f"operation={self.operation!r}, paths={self.paths!r})"
        )
