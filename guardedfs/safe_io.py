"""
Safe file I/O primitives.

Writes go to a temporary file next to the target, are flushed and fsynced,
then atomically renamed into place, so readers never observe a partially
written file. None of these functions lock anything; callers serialize
through the access gate.
"""

import errno
import os
import shutil
import stat
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable, Union

PathLike = Union[str, "os.PathLike[str]"]

STREAM_CHUNK_SIZE = 1024 * 1024


def _write_safer(
    path: PathLike,
    write: Callable[[BinaryIO], None],
    mode: int,
    fsync: bool
) -> None:
    target = Path(path)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "wb") as f:
            write(f)
            f.flush()
            if fsync:
                os.fsync(f.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
    except Exception:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def write_file_safer(path: PathLike, data: bytes, mode: int, fsync: bool = True) -> None:
    """
    Atomically replace the contents of a file.

    The parent directory must already exist.

    Args:
        path: Target file
        data: New contents
        mode: Permission bits of the resulting file
        fsync: Flush the data to disk before the rename
    """
    _write_safer(path, lambda f: f.write(data), mode, fsync)


def write_file_safer_by_reader(
    path: PathLike,
    reader: BinaryIO,
    mode: int,
    fsync: bool = True
) -> None:
    """
    Atomically replace a file with everything read from a binary stream.

    The stream is consumed in chunks; it is not closed.
    """
    _write_safer(
        path,
        lambda f: shutil.copyfileobj(reader, f, STREAM_CHUNK_SIZE),
        mode,
        fsync
    )


def write_file_safer_without_change_time(
    path: PathLike,
    data: bytes,
    mode: int,
    fsync: bool = True
) -> None:
    """
    Atomically replace a file while keeping its access and modification times.

    A file that did not exist before simply gets the current time.
    """
    try:
        before = os.stat(path)
    except FileNotFoundError:
        before = None

    write_file_safer(path, data, mode, fsync)

    if before is not None:
        os.utime(path, ns=(before.st_atime_ns, before.st_mtime_ns))


def copy(src: PathLike, dest: PathLike, preserve_times: bool = True) -> None:
    """
    Copy a file or a directory tree.

    Missing parent directories of dest are created, and an existing
    destination tree is merged into. A file is copied to exactly dest;
    copying a file onto an existing directory raises IsADirectoryError.

    Args:
        src: Source file or directory
        dest: Destination path
        preserve_times: Keep the source timestamps (True) or stamp the copy
                        with the current time (False). Permission bits are
                        copied either way.
    """
    copy_function = shutil.copy2 if preserve_times else shutil.copy

    if os.path.isdir(src):
        shutil.copytree(src, dest, copy_function=copy_function, dirs_exist_ok=True)
        if not preserve_times:
            # copytree copies directory stats regardless
            for root, _dirs, _files in os.walk(dest):
                os.utime(root)
        return

    if os.path.isdir(dest):
        raise IsADirectoryError(errno.EISDIR, "Is a directory", os.fspath(dest))
    Path(dest).parent.mkdir(parents=True, exist_ok=True)
    copy_function(src, dest)


def remove_all(path: PathLike) -> None:
    """Remove a file, symlink or directory tree. A missing path is not an error."""
    try:
        st = os.lstat(path)
        if stat.S_ISDIR(st.st_mode):
            shutil.rmtree(path)
        else:
            os.remove(path)
    except FileNotFoundError:
        return


def read_file(path: PathLike) -> bytes:
    return Path(path).read_bytes()
