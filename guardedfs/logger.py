"""
Audit and fatal logging for guardedfs.

Provides an append-only JSONL audit trail of filesystem operations and the
fatal logger that reports a denied operation and terminates the process.
"""

import json
import os
import sys
import threading
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from .errors import FatalFilesystemError


class ActionType(Enum):
    """Filesystem operations that can be logged."""
    MOVE = "move"
    COPY = "copy"
    RENAME = "rename"
    REMOVE = "remove"
    READ = "read"
    WRITE = "write"


class ActionStatus(Enum):
    """Outcome of an operation."""
    EXECUTED = "executed"
    FAILED = "failed"
    DENIED = "denied"


class ExitCode(Enum):
    """Process exit codes used by the fatal path."""
    FILE_SYS_ERR = 26


@dataclass
class AuditEntry:
    """Represents a single audit log entry."""
    timestamp: str
    action_type: str
    action_description: str
    status: str
    exit_code: Optional[int]
    result: Optional[str]
    metadata: Dict[str, Any]

    @classmethod
    def create(
        cls,
        action_type: ActionType,
        action_description: str,
        status: ActionStatus = ActionStatus.EXECUTED,
        exit_code: Optional[ExitCode] = None,
        result: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> "AuditEntry":
        """Factory method to create an audit entry with current timestamp."""
        return cls(
            timestamp=datetime.now().isoformat(),
            action_type=action_type.value,
            action_description=action_description,
            status=status.value,
            exit_code=exit_code.value if exit_code is not None else None,
            result=result,
            metadata=metadata or {}
        )

    def to_json(self) -> str:
        """Convert entry to JSON string."""
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> "AuditEntry":
        """Create entry from JSON string."""
        data = json.loads(json_str)
        return cls(**data)


class AuditLogger:
    """
    Append-only audit logger.

    Entries are appended to a JSONL file. The file and its directory are
    created on the first write, so constructing a logger touches nothing.
    """

    def __init__(self, log_path: str = "data/guardedfs_audit.jsonl"):
        """
        Initialize the audit logger.

        Args:
            log_path: Path to the JSONL log file
        """
        self.log_path = Path(log_path)
        self._write_lock = threading.Lock()

    def _ensure_log_directory(self) -> None:
        """Create the log directory if it doesn't exist."""
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: AuditEntry) -> None:
        """
        Append an audit entry to the log.

        Args:
            entry: The AuditEntry to log
        """
        with self._write_lock:
            self._ensure_log_directory()
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(entry.to_json() + "\n")

    def log_action(
        self,
        action_type: ActionType,
        description: str,
        status: ActionStatus = ActionStatus.EXECUTED,
        exit_code: Optional[ExitCode] = None,
        result: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditEntry:
        """
        Convenience method to create and log an entry in one call.

        Returns the created AuditEntry.
        """
        entry = AuditEntry.create(
            action_type=action_type,
            action_description=description,
            status=status,
            exit_code=exit_code,
            result=result,
            metadata=metadata
        )
        self.log(entry)
        return entry

    def _read_entries(self) -> List[AuditEntry]:
        entries = []

        if not self.log_path.exists():
            return entries

        with open(self.log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    try:
                        entries.append(AuditEntry.from_json(line))
                    except (json.JSONDecodeError, TypeError):
                        continue

        return entries

    def get_recent(self, limit: int = 100) -> List[AuditEntry]:
        """
        Get the most recent audit entries.

        Args:
            limit: Maximum number of entries to return

        Returns:
            List of AuditEntry objects, most recent first
        """
        entries = self._read_entries()
        return list(reversed(entries[-limit:])) if limit > 0 else []

    def get_by_action_type(self, action_type: ActionType, limit: int = 100) -> List[AuditEntry]:
        """
        Get audit entries filtered by action type, oldest first.

        Args:
            action_type: The ActionType to filter by
            limit: Maximum number of entries to return
        """
        matches = [e for e in self._read_entries() if e.action_type == action_type.value]
        return matches[:limit]

    def get_fatal(self, limit: int = 50) -> List[AuditEntry]:
        """Get operations that were denied and escalated to a fatal exit."""
        matches = [e for e in self._read_entries() if e.status == ActionStatus.DENIED.value]
        return matches[:limit]


def exit_process(error: FatalFilesystemError) -> None:
    """
    Terminate the process immediately with the error's exit code.

    Standard streams are flushed first. No cleanup handlers run and no other
    thread gets to continue, so nothing else touches the filesystem after a
    denial.
    """
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(error.code)


def raise_fatal(error: FatalFilesystemError) -> None:
    """Terminator that hands the error to the caller's own top-level handler."""
    raise error


class FatalLogger:
    """
    Reports an unsafe filesystem condition and terminates the process.

    The report goes to stderr through rich and into the audit log, then the
    terminator runs. The default terminator exits on the spot, while the
    caller (the access gate) still holds whatever it holds.
    """

    def __init__(
        self,
        audit_logger: Optional[AuditLogger] = None,
        console: Optional[Console] = None,
        terminate: Optional[Callable[[FatalFilesystemError], None]] = None
    ):
        """
        Initialize the fatal logger.

        Args:
            audit_logger: Audit log receiving the fatal entry
            console: Console for the diagnostic line (stderr by default)
            terminate: Called with the FatalFilesystemError once logging is
                       done. Defaults to exit_process.
        """
        self.audit_logger = audit_logger or AuditLogger()
        self.console = console or Console(stderr=True)
        self.terminate = terminate or exit_process

    def log_fatal(
        self,
        exit_code: ExitCode,
        message: str,
        action_type: Optional[ActionType] = None,
        paths: Sequence[str] = ()
    ) -> None:
        """
        Log a fatal message tagged with an exit code and terminate.

        Args:
            exit_code: Exit code class of the failure
            message: Formatted diagnostic message
            action_type: Operation that failed, recorded in the audit log
            paths: Paths involved in the operation

        Raises:
            FatalFilesystemError: If the terminator returns instead of exiting
        """
        self.console.print(
            f"[bold red]FATAL[/bold red] [dim](exit code {exit_code.value})[/dim] {escape(message)}"
        )

        if action_type is not None:
            try:
                self.audit_logger.log_action(
                    action_type=action_type,
                    description=message,
                    status=ActionStatus.DENIED,
                    exit_code=exit_code,
                    metadata={"paths": list(paths)}
                )
            except OSError as e:
                # The audit log may sit on the same failing filesystem
                self.console.print(f"[yellow]audit log unavailable:[/yellow] {escape(str(e))}")

        error = FatalFilesystemError(
            exit_code.value,
            message,
            operation=action_type.value if action_type is not None else None,
            paths=paths
        )
        self.console.file.flush()
        self.terminate(error)
        raise error
