# guardedfs - Serialized file access
"""
Serialized, fail-fast filesystem primitives for a single process.
All operations share one exclusive gate; a denied operation terminates the process.
"""

from .config import GateConfig, load_config
from .denial import is_denied
from .errors import ConfigError, FatalFilesystemError, GuardedFSError
from .gate import (
    AccessGate,
    copy,
    copy_newtimes,
    exclusive,
    get_gate,
    move,
    read_file,
    remove,
    rename,
    write_file,
    write_file_by_reader,
    write_file_without_change_time,
)
from .logger import AuditEntry, AuditLogger, ExitCode, FatalLogger, exit_process, raise_fatal

__all__ = [
    "AccessGate",
    "AuditEntry",
    "AuditLogger",
    "ConfigError",
    "ExitCode",
    "FatalFilesystemError",
    "FatalLogger",
    "GateConfig",
    "GuardedFSError",
    "copy",
    "copy_newtimes",
    "exclusive",
    "exit_process",
    "get_gate",
    "is_denied",
    "load_config",
    "move",
    "raise_fatal",
    "read_file",
    "remove",
    "rename",
    "write_file",
    "write_file_by_reader",
    "write_file_without_change_time",
]

__version__ = "0.1.0"
