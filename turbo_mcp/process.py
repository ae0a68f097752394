"""
Process runner for turbo-mcp.

Spawns one external executable per call and supervises it:
- stdin is /dev/null (the server's own stdin is the MCP transport)
- stdout/stderr drained concurrently, so large output never stalls the child
- per-call timeout; the whole process group is killed on expiry
- the child is reaped before returning, including on cancellation
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import signal
import time
from typing import Any

from turbo_mcp.errors import ProcessFailedError, ProcessTimeoutError, SpawnFailedError

logger = logging.getLogger("turbo-mcp.process")

# Grace period for pipes to hit EOF after the child is gone
DRAIN_GRACE_SEC = 2.0


@dataclass
class ProcessOutput:
    """Result from a finished process."""

    argv: list[str]
    cwd: str
    exit_code: int
    stdout: str
    stderr: str
    duration_ms: float = 0.0
    timed_out: bool = field(default=False, repr=False)

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def combined(self) -> str:
        """stdout followed by stderr, for decoders that scan both."""
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr

    def to_dict(self) -> dict[str, Any]:
        return {
            "argv": self.argv,
            "cwd": self.cwd,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_ms": round(self.duration_ms, 1),
        }


async def _drain(stream: asyncio.StreamReader | None, sink: bytearray) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            return
        sink.extend(chunk)


def _decode(data: bytearray) -> str:
    return bytes(data).decode("utf-8", errors="replace")


class ProcessRunner:
    """Runs external executables with a bounded lifetime."""

    def __init__(self, env: Mapping[str, str] | None = None):
        self.env = dict(env or {})

    def _build_env(self, extra: Mapping[str, str] | None) -> dict[str, str]:
        proc_env = dict(os.environ)
        proc_env.update(self.env)
        if extra:
            proc_env.update(extra)
        return proc_env

    async def run(
        self,
        executable: str,
        args: Sequence[str],
        cwd: Path | str,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
    ) -> ProcessOutput:
        """
        Run a process to completion.

        Args:
            executable: Program name (resolved on PATH) or path
            args: Argument vector, passed without a shell
            cwd: Working directory
            timeout: Max wall time in seconds (None = unbounded)
            env: Extra environment variables for this call
            check: Raise ProcessFailedError on non-zero exit

        Returns:
            ProcessOutput with exit code and decoded output

        Raises:
            SpawnFailedError: The executable could not be started
            ProcessTimeoutError: The timeout elapsed; partial output attached
            ProcessFailedError: Non-zero exit and check=True
        """
        argv = [executable, *args]
        cwd_str = str(cwd)
        logger.debug(f"spawn: {argv} (cwd={cwd_str}, timeout={timeout})")

        start = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd_str,
                env=self._build_env(env),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            raise SpawnFailedError(
                f"Failed to start {executable}: {e.strerror or e}",
                detail={"executable": executable, "errno": e.errno, "cwd": cwd_str},
            ) from e

        stdout_buf = bytearray()
        stderr_buf = bytearray()
        readers = [
            asyncio.create_task(_drain(proc.stdout, stdout_buf)),
            asyncio.create_task(_drain(proc.stderr, stderr_buf)),
        ]
        timed_out = False

        try:
            try:
                await asyncio.wait_for(proc.wait(), timeout)
            except asyncio.TimeoutError:
                timed_out = True
                logger.warning(f"timeout after {timeout}s, killing pid={proc.pid}: {argv}")
                await self._kill(proc)
            # grandchildren holding the pipes open must not stall us past the grace period
            await asyncio.wait(readers, timeout=DRAIN_GRACE_SEC)
        finally:
            if proc.returncode is None:
                logger.warning(f"abandoning pid={proc.pid}, killing: {argv}")
                await self._kill(proc)
            for reader in readers:
                if not reader.done():
                    reader.cancel()

        duration_ms = (time.monotonic() - start) * 1000
        stdout = _decode(stdout_buf)
        stderr = _decode(stderr_buf)

        if timed_out:
            raise ProcessTimeoutError(
                f"{executable} timed out after {timeout}s",
                timeout=float(timeout or 0),
                stdout=stdout,
                stderr=stderr,
            )

        output = ProcessOutput(
            argv=argv,
            cwd=cwd_str,
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout,
            stderr=stderr,
            duration_ms=duration_ms,
        )
        logger.debug(f"exit {output.exit_code} in {duration_ms:.0f}ms: {argv}")

        if check and not output.success:
            raise ProcessFailedError(
                f"{executable} exited with code {output.exit_code}",
                exit_code=output.exit_code,
                stdout=stdout,
                stderr=stderr,
            )
        return output

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        """Kill the child's process group and reap it."""
        try:
            if os.name == "posix":
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
