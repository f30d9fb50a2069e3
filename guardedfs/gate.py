"""
Guarded file access gate.

Every filesystem operation in this module runs under one process-wide
exclusive lock. Errors raised by the underlying call are classified: a denied
operation is logged and escalated to process termination, anything else is
re-raised to the caller unchanged.
"""

import os
import threading
from contextlib import contextmanager
from typing import BinaryIO, Callable, Iterator, Optional, Sequence, TypeVar, Union

from rich.markup import escape

from . import safe_io
from .config import GateConfig, load_config
from .denial import is_denied
from .logger import (
    ActionStatus,
    ActionType,
    AuditLogger,
    ExitCode,
    FatalLogger,
)

PathLike = Union[str, "os.PathLike[str]"]
T = TypeVar("T")


def _to_bytes(data: Union[bytes, bytearray, memoryview, str]) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"data must be bytes or str, not {type(data).__name__}")


class AccessGate:
    """
    Serializes file operations and escalates denied ones.

    One gate is shared by the whole process (see get_gate()). Wrapped
    operations never run concurrently with each other, whatever paths they
    touch; reads and writes share the same lock.
    """

    def __init__(
        self,
        config: Optional[GateConfig] = None,
        audit_logger: Optional[AuditLogger] = None,
        fatal_logger: Optional[FatalLogger] = None
    ):
        """
        Initialize the gate.

        Args:
            config: Gate settings (defaults if omitted)
            audit_logger: Audit log for operations and fatal events
            fatal_logger: Logger invoked when an operation is denied
        """
        self.config = config or GateConfig()
        self.audit_logger = audit_logger or AuditLogger(log_path=self.config.audit_log)
        self.fatal_logger = fatal_logger or FatalLogger(audit_logger=self.audit_logger)
        # TODO: keyed per-path locks would let operations on unrelated files overlap
        self._lock = threading.RLock()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """
        Hold the gate across a compound sequence of steps.

        The lock is reentrant, so the gate's own operations may be called
        inside the block from the same thread.
        """
        with self._lock:
            yield

    def run(
        self,
        action_type: ActionType,
        description: str,
        paths: Sequence[str],
        operation: Callable[[], T]
    ) -> T:
        """
        Execute operation under the gate and classify any error it raises.

        Args:
            action_type: Kind of operation, for the audit log
            description: Operation and paths, e.g. "write file [a.txt]"
            paths: Paths involved in the operation
            operation: Zero-argument callable doing the filesystem work

        Returns:
            Whatever operation returns

        Raises:
            FatalFilesystemError: If the filesystem denied the operation and the
                fatal logger's terminator hands control back instead of exiting
            Exception: Any other error from operation, unchanged
        """
        with self._lock:
            try:
                result = operation()
            except Exception as e:
                if is_denied(e, self.config.denial_patterns):
                    self.fatal_logger.log_fatal(
                        ExitCode.FILE_SYS_ERR,
                        f"{description} failed: {e}",
                        action_type=action_type,
                        paths=paths
                    )
                self._audit(action_type, description, paths, ActionStatus.FAILED, f"Error: {e}")
                raise

            self._audit(action_type, description, paths, ActionStatus.EXECUTED)
            return result

    def _audit(
        self,
        action_type: ActionType,
        description: str,
        paths: Sequence[str],
        status: ActionStatus,
        result: Optional[str] = None
    ) -> None:
        if not self.config.audit_operations:
            return
        try:
            self.audit_logger.log_action(
                action_type=action_type,
                description=description,
                status=status,
                result=result,
                metadata={"paths": list(paths)}
            )
        except OSError as e:
            self.fatal_logger.console.print(f"[yellow]audit log unavailable:[/yellow] {escape(str(e))}")

    def move(self, src: PathLike, dest: PathLike) -> None:
        """
        Move src to dest with an atomic rename.

        Moving a path onto itself does nothing, whether or not it exists.
        """
        src, dest = os.fspath(src), os.fspath(dest)
        if src == dest:
            return
        self.run(
            ActionType.MOVE,
            f"move [src={src}, dest={dest}]",
            (src, dest),
            lambda: os.replace(src, dest)
        )

    def copy(self, src: PathLike, dest: PathLike) -> None:
        """Copy a file or tree, keeping the source timestamps."""
        src, dest = os.fspath(src), os.fspath(dest)
        self.run(
            ActionType.COPY,
            f"copy [src={src}, dest={dest}]",
            (src, dest),
            lambda: safe_io.copy(src, dest, preserve_times=True)
        )

    def copy_newtimes(self, src: PathLike, dest: PathLike) -> None:
        """Copy a file or tree, stamping the copy with the current time."""
        src, dest = os.fspath(src), os.fspath(dest)
        self.run(
            ActionType.COPY,
            f"copy [src={src}, dest={dest}]",
            (src, dest),
            lambda: safe_io.copy(src, dest, preserve_times=False)
        )

    def rename(self, path: PathLike, new_path: PathLike) -> None:
        path, new_path = os.fspath(path), os.fspath(new_path)
        self.run(
            ActionType.RENAME,
            f"rename [path={path}, new_path={new_path}]",
            (path, new_path),
            lambda: os.replace(path, new_path)
        )

    def remove(self, path: PathLike) -> None:
        """Remove a file or directory tree. Removing a missing path succeeds."""
        path = os.fspath(path)
        self.run(
            ActionType.REMOVE,
            f"remove file [{path}]",
            (path,),
            lambda: safe_io.remove_all(path)
        )

    def read_file(self, path: PathLike) -> bytes:
        """
        Read a whole file.

        Args:
            path: File to read

        Returns:
            File contents

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = os.fspath(path)
        return self.run(
            ActionType.READ,
            f"read file [{path}]",
            (path,),
            lambda: safe_io.read_file(path)
        )

    def write_file(self, path: PathLike, data: Union[bytes, str]) -> None:
        """
        Atomically write data to path.

        The file gets the configured mode (0644 by default) and a fresh
        modification time. str data is written as UTF-8.

        Raises:
            FileNotFoundError: If the parent directory doesn't exist
        """
        path, payload = os.fspath(path), _to_bytes(data)
        self.run(
            ActionType.WRITE,
            f"write file [{path}]",
            (path,),
            lambda: safe_io.write_file_safer(path, payload, self.config.file_mode, self.config.fsync)
        )

    def write_file_without_change_time(self, path: PathLike, data: Union[bytes, str]) -> None:
        """Like write_file, but an existing file keeps its modification time."""
        path, payload = os.fspath(path), _to_bytes(data)
        self.run(
            ActionType.WRITE,
            f"write file [{path}]",
            (path,),
            lambda: safe_io.write_file_safer_without_change_time(
                path, payload, self.config.file_mode, self.config.fsync
            )
        )

    def write_file_by_reader(self, path: PathLike, reader: BinaryIO) -> None:
        """
        Atomically write everything read from a binary stream to path.

        Args:
            path: Target file
            reader: Object with a read(size) method returning bytes
        """
        path = os.fspath(path)
        self.run(
            ActionType.WRITE,
            f"write file [{path}]",
            (path,),
            lambda: safe_io.write_file_safer_by_reader(
                path, reader, self.config.file_mode, self.config.fsync
            )
        )


_default_gate: Optional[AccessGate] = None
_default_gate_lock = threading.Lock()


def get_gate() -> AccessGate:
    """
    Return the process-wide gate used by the module-level functions.

    The gate is built on first use from load_config(), so a broken config
    file surfaces as ConfigError from the first operation, not from import.
    """
    global _default_gate
    with _default_gate_lock:
        if _default_gate is None:
            _default_gate = AccessGate(load_config())
        return _default_gate


def exclusive():
    return get_gate().exclusive()


def move(src: PathLike, dest: PathLike) -> None:
    get_gate().move(src, dest)


def copy(src: PathLike, dest: PathLike) -> None:
    get_gate().copy(src, dest)


def copy_newtimes(src: PathLike, dest: PathLike) -> None:
    get_gate().copy_newtimes(src, dest)


def rename(path: PathLike, new_path: PathLike) -> None:
    get_gate().rename(path, new_path)


def remove(path: PathLike) -> None:
    get_gate().remove(path)


def read_file(path: PathLike) -> bytes:
    return get_gate().read_file(path)


def write_file(path: PathLike, data: Union[bytes, str]) -> None:
    get_gate().write_file(path, data)


def write_file_without_change_time(path: PathLike, data: Union[bytes, str]) -> None:
    get_gate().write_file_without_change_time(path, data)


def write_file_by_reader(path: PathLike, reader: BinaryIO) -> None:
    get_gate().write_file_by_reader(path, reader)
