"""Timeout-bounded, cancellable execution of external command-line tools.

Every invocation owns its child process exclusively. Whatever way the wait
ends (natural exit, timeout, cancellation or an exception in between) the
whole process tree is killed and reaped before ``invoke`` returns, because
the wrapped tools may leave GPU worker processes behind.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import IO, Optional

import psutil

from errors import LaunchFailed, ProcessCancelled

logger = logging.getLogger(__name__)

_IS_POSIX = os.name == "posix"


@dataclass(frozen=True)
class ProcessInvocationSpec:
    executable_path: str
    arguments: tuple[str, ...] = ()
    stdin_payload: Optional[str] = None
    timeout_s: float = 30.0


@dataclass
class ProcessInvocationResult:
    exit_code: int
    stdout: str
    stderr: str
    elapsed_s: float
    timed_out: bool = False


class _StreamReader:
    """Drain a pipe on a daemon thread so the child never blocks on a full pipe."""

    def __init__(self, stream: Optional[IO[str]]) -> None:
        self._stream = stream
        self._chunks: list[str] = []
        self._thread: Optional[threading.Thread] = None
        if stream is not None:
            self._thread = threading.Thread(target=self._run, daemon=True)
            self._thread.start()

    def _run(self) -> None:
        assert self._stream is not None
        try:
            for chunk in iter(lambda: self._stream.read(4096), ""):
                self._chunks.append(chunk)
        except (OSError, ValueError):
            pass
        finally:
            try:
                self._stream.close()
            except OSError:
                pass

    def join(self, timeout: float) -> str:
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        return "".join(self._chunks)


class ProcessInvoker:
    def __init__(self, poll_interval_s: float = 0.02, reader_join_s: float = 2.0) -> None:
        self._poll_interval_s = poll_interval_s
        self._reader_join_s = reader_join_s

    def invoke(
        self,
        spec: ProcessInvocationSpec,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessInvocationResult:
        """Run ``spec`` until exit, timeout or cancellation.

        Returns the result for natural exit and timeout (``timed_out=True``).
        Raises ``ProcessCancelled`` when ``cancel_event`` fires and
        ``LaunchFailed`` when the executable cannot be started.
        """
        command = [spec.executable_path, *spec.arguments]
        logger.debug("Launching %s (timeout %.1fs)", spec.executable_path, spec.timeout_s)
        started = time.monotonic()
        process = self._launch(command, spec)

        stdout_reader = _StreamReader(process.stdout)
        stderr_reader = _StreamReader(process.stderr)
        self._feed_stdin(process, spec.stdin_payload)

        timed_out = False
        cancelled = False
        deadline = started + spec.timeout_s
        try:
            while process.poll() is None:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    timed_out = True
                    break
                wait_s = min(self._poll_interval_s, remaining)
                if cancel_event is not None:
                    cancel_event.wait(wait_s)
                else:
                    time.sleep(wait_s)
        finally:
            self._terminate_tree(process)
            process.wait()
            stdout = stdout_reader.join(self._reader_join_s)
            stderr = stderr_reader.join(self._reader_join_s)

        elapsed_s = time.monotonic() - started
        result = ProcessInvocationResult(
            exit_code=process.returncode,
            stdout=stdout,
            stderr=stderr,
            elapsed_s=elapsed_s,
            timed_out=timed_out,
        )
        if cancelled:
            logger.warning("%s killed after external cancellation", spec.executable_path)
            raise ProcessCancelled(result)
        if timed_out:
            logger.warning("%s killed after %.1fs timeout", spec.executable_path, spec.timeout_s)
        else:
            logger.debug("%s exited with %d after %.2fs", spec.executable_path, result.exit_code, elapsed_s)
        return result

    def _launch(self, command: list[str], spec: ProcessInvocationSpec) -> subprocess.Popen:
        kwargs: dict = {
            "stdin": subprocess.PIPE if spec.stdin_payload is not None else subprocess.DEVNULL,
            "stdout": subprocess.PIPE,
            "stderr": subprocess.PIPE,
            "text": True,
            "encoding": "utf-8",
            "errors": "replace",
        }
        if _IS_POSIX:
            kwargs["start_new_session"] = True
        else:  # pragma: no cover - windows only
            kwargs["creationflags"] = getattr(subprocess, "CREATE_NO_WINDOW", 0)
        try:
            return subprocess.Popen(command, **kwargs)
        except OSError as exc:
            logger.error("Failed to launch %s: %s", spec.executable_path, exc)
            raise LaunchFailed(spec.executable_path, str(exc)) from exc

    @staticmethod
    def _feed_stdin(process: subprocess.Popen, payload: Optional[str]) -> None:
        if payload is None or process.stdin is None:
            return
        stdin = process.stdin

        def _write() -> None:
            try:
                stdin.write(payload)
            except (BrokenPipeError, OSError, ValueError):
                pass
            finally:
                try:
                    stdin.close()
                except OSError:
                    pass

        threading.Thread(target=_write, daemon=True).start()

    @staticmethod
    def _terminate_tree(process: subprocess.Popen) -> None:
        descendants: list[psutil.Process] = []
        if process.returncode is None:
            try:
                descendants = psutil.Process(process.pid).children(recursive=True)
            except psutil.Error:
                descendants = []

        # The process group outlives its leader, so this also reaches
        # orphans left behind by a process that already exited.
        if _IS_POSIX:
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                pass

        for child in descendants:
            try:
                child.kill()
            except psutil.Error:
                pass
        if process.poll() is None:
            try:
                process.kill()
            except OSError:
                pass
        if descendants:
            psutil.wait_procs(descendants, timeout=1.0)
