import logging
import os
import shutil
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from eda_mcp.config import FLOW_TIMEOUT_SEC, MAX_OUTPUT_BYTES
from eda_mcp.errors import (
    NonZeroExitError,
    OutputLimitError,
    ProcessLaunchError,
    ProcessTimeoutError,
)

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_POLL_INTERVAL_SEC = 0.1
# Time allowed for reader threads to drain the pipes once the process exited
_DRAIN_GRACE_SEC = 5.0


@dataclass
class ProcessResult:
    command: str
    returncode: int
    stdout: str
    stderr: str
    elapsed_sec: float


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def format_command(command: str, args: Sequence[str] = ()) -> str:
    return " ".join([command, *args])


class _BoundedReader(threading.Thread):
    """Drains one pipe into memory, stopping once `limit` bytes would be exceeded."""

    def __init__(self, stream, limit: int, overflow: threading.Event):
        super().__init__(daemon=True)
        self._stream = stream
        self._limit = limit
        self._overflow = overflow
        self._chunks: List[bytes] = []
        self._size = 0
        self.overflowed = False

    def run(self):
        try:
            for chunk in iter(lambda: self._stream.read1(_CHUNK_SIZE), b""):
                if self._size + len(chunk) > self._limit:
                    self.overflowed = True
                    self._overflow.set()
                    break
                self._chunks.append(chunk)
                self._size += len(chunk)
        except (OSError, ValueError):
            # Pipe closed underneath us after a kill
            pass
        finally:
            try:
                self._stream.close()
            except OSError:
                pass

    def text(self) -> str:
        return b"".join(list(self._chunks)).decode("utf-8", errors="replace")


def _kill_process_group(proc: subprocess.Popen) -> None:
    """SIGKILL the whole process group; falls back to killing the leader."""
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            pass
    try:
        proc.kill()
    except ProcessLookupError:
        pass


def run_command(
    command: str,
    args: Sequence[str] = (),
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: float = FLOW_TIMEOUT_SEC,
    max_output_bytes: int = MAX_OUTPUT_BYTES,
) -> ProcessResult:
    """
    Runs one external command to completion under a wall-clock budget.

    Args:
        command: Executable name or path.
        args: Arguments passed to the executable.
        cwd: Working directory for the process.
        env: Variables merged over the current environment.
        timeout: Budget in seconds; must be positive.
        max_output_bytes: Cap for each of stdout/stderr held in memory.

    Returns:
        ProcessResult for a zero exit status.

    Raises:
        ProcessLaunchError: the binary could not be started.
        ProcessTimeoutError: the budget elapsed; the process group was killed and reaped.
        OutputLimitError: a stream exceeded `max_output_bytes`.
        NonZeroExitError: the command exited with a non-zero status.
    """
    if timeout is None or timeout <= 0:
        raise ValueError(f"timeout must be a positive number of seconds, got {timeout!r}")

    command_text = format_command(command, args)
    merged_env = dict(os.environ)
    if env:
        merged_env.update(env)

    logger.debug("Spawning: %s (cwd=%s, timeout=%ss)", command_text, cwd, timeout)
    start = time.monotonic()
    try:
        proc = subprocess.Popen(
            [command, *args],
            cwd=cwd,
            env=merged_env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=(os.name == "posix"),
        )
    except OSError as exc:
        logger.warning("Launch failed for %s: %s", command_text, exc)
        raise ProcessLaunchError(command_text, exc.strerror or str(exc)) from exc

    overflow = threading.Event()
    readers = {
        "stdout": _BoundedReader(proc.stdout, max_output_bytes, overflow),
        "stderr": _BoundedReader(proc.stderr, max_output_bytes, overflow),
    }
    for reader in readers.values():
        reader.start()

    deadline = start + timeout
    try:
        while True:
            remaining = deadline - time.monotonic()
            try:
                proc.wait(timeout=max(0.0, min(_POLL_INTERVAL_SEC, remaining)))
                break
            except subprocess.TimeoutExpired:
                pass
            if overflow.is_set():
                _kill_process_group(proc)
                proc.wait()
                break
            if time.monotonic() >= deadline:
                _kill_process_group(proc)
                proc.wait()
                logger.warning("Timed out after %ss, killed: %s", timeout, command_text)
                raise ProcessTimeoutError(command_text, timeout)
    finally:
        if proc.poll() is None:
            _kill_process_group(proc)
            proc.wait()

    # Background children may still hold the pipes open after the leader exits.
    drain_budget = max(deadline - time.monotonic(), _DRAIN_GRACE_SEC)
    for reader in readers.values():
        reader.join(drain_budget)
    if any(reader.is_alive() for reader in readers.values()):
        _kill_process_group(proc)
        for reader in readers.values():
            reader.join(_DRAIN_GRACE_SEC)
        raise ProcessTimeoutError(command_text, timeout)

    for name, reader in readers.items():
        if reader.overflowed:
            raise OutputLimitError(command_text, name, max_output_bytes)

    elapsed = time.monotonic() - start
    stdout = readers["stdout"].text()
    stderr = readers["stderr"].text()
    logger.debug("Exited %s after %.2fs: %s", proc.returncode, elapsed, command_text)

    if proc.returncode != 0:
        raise NonZeroExitError(command_text, proc.returncode, stdout=stdout, stderr=stderr)

    return ProcessResult(
        command=command_text,
        returncode=proc.returncode,
        stdout=stdout,
        stderr=stderr,
        elapsed_sec=round(elapsed, 3),
    )
