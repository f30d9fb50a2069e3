"""
Tests for process termination on a denied operation.

Each test runs a small program in a fresh interpreter. A counter thread keeps
writing while another thread hits a permission error; the process must end
with exit code 26 before the counter gets anywhere near its last value.
"""

import json
import os
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent

LAST_COUNT = 29

PRELUDE = textwrap.dedent("""
    import threading
    import time

    import guardedfs
    from guardedfs import safe_io


    def deny(path):
        raise PermissionError(13, "Permission denied", path)


    def count():
        for i in range(%d):
            guardedfs.write_file("count.txt", str(i))
            time.sleep(0.05)
""" % (LAST_COUNT + 1))


def run_program(body: str, cwd: Path) -> subprocess.CompletedProcess:
    env = dict(os.environ)
    env.pop("GUARDEDFS_CONFIG", None)
    env["PYTHONPATH"] = os.pathsep.join(
        p for p in (str(REPO_ROOT), env.get("PYTHONPATH", "")) if p
    )
    return subprocess.run(
        [sys.executable, "-c", PRELUDE + textwrap.dedent(body)],
        cwd=str(cwd),
        env=env,
        capture_output=True,
        text=True,
        timeout=60
    )


def read_audit(cwd: Path):
    log_path = cwd / "data" / "guardedfs_audit.jsonl"
    with open(log_path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


class TestFatalExit:
    """Test that a denial ends the whole process at once."""

    def test_denial_in_main_thread(self, tmp_path):
        result = run_program("""
            worker = threading.Thread(target=count)
            worker.start()
            time.sleep(0.25)
            safe_io.read_file = deny
            guardedfs.read_file("locked.txt")
            worker.join()
        """, tmp_path)

        assert result.returncode == 26, result.stderr
        assert "FATAL" in result.stderr
        assert "read file [locked.txt] failed" in result.stderr
        assert int((tmp_path / "count.txt").read_text()) < LAST_COUNT

        entries = read_audit(tmp_path)
        assert [e["status"] for e in entries] == ["denied"]
        assert entries[0]["exit_code"] == 26
        assert entries[0]["metadata"] == {"paths": ["locked.txt"]}

    def test_denial_in_worker_thread(self, tmp_path):
        result = run_program("""
            def read_locked():
                time.sleep(0.25)
                guardedfs.read_file("locked.txt")


            safe_io.read_file = deny
            threading.Thread(target=read_locked).start()
            count()
        """, tmp_path)

        assert result.returncode == 26, result.stderr
        assert "FATAL" in result.stderr
        assert int((tmp_path / "count.txt").read_text()) < LAST_COUNT
        assert read_audit(tmp_path)[0]["status"] == "denied"

    def test_other_errors_do_not_exit(self, tmp_path):
        result = run_program("""
            try:
                guardedfs.read_file("missing.txt")
            except FileNotFoundError:
                count()
        """, tmp_path)

        assert result.returncode == 0, result.stderr
        assert int((tmp_path / "count.txt").read_text()) == LAST_COUNT
        assert not (tmp_path / "data").exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
