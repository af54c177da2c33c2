"""
POSIX PTY process host using ptyprocess.

ptyprocess handles fork+exec and PTY allocation. Output is read without a
thread: the master fd is registered with ``loop.add_reader`` and each readable
event delivers one decoded chunk. EOF (or EIO, which Linux raises on the
master once the child is gone) ends the stream; the exit status is then
reaped in an executor so the loop never blocks on ``waitpid``.
"""

from __future__ import annotations

import asyncio
import codecs
import os

import ptyprocess
import structlog

from codexbridge.core.exceptions import ProcessNotRunning, SpawnFailure
from codexbridge.os.tty.base import ProcessHandle, PTYConfig

logger = structlog.get_logger()


class PtyProcessHandle(ProcessHandle):
    """Child process on a ptyprocess PTY, driven by the asyncio loop."""

    def __init__(self, config: PTYConfig) -> None:
        super().__init__(config)
        self._proc: ptyprocess.PtyProcess | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._reading = False

    def start(self) -> None:
        env = {**os.environ, **self.config.env}
        try:
            self._proc = ptyprocess.PtyProcess.spawn(
                self.config.command,
                dimensions=(self.config.rows, self.config.cols),
                env=env,
                cwd=self.config.cwd or None,
            )
        except (OSError, ptyprocess.PtyProcessError) as exc:
            raise SpawnFailure(f"Cannot start {self.config.command[0]!r}: {exc}") from exc

        self._loop = asyncio.get_running_loop()
        self._loop.add_reader(self._proc.fd, self._on_readable)
        self._reading = True
        logger.debug("pty_spawned", pid=self._proc.pid, command=self.config.command[0])

    def is_alive(self) -> bool:
        return self._proc is not None and not self._exited and self._proc.isalive()

    @property
    def pid(self) -> int:
        return self._proc.pid if self._proc is not None else -1

    def write(self, text: str) -> None:
        if self._proc is None or not self.is_alive():
            raise ProcessNotRunning("process has exited")
        self._proc.write(text.encode("utf-8"))

    def kill(self, sig: int) -> None:
        if self._proc is None or not self.is_alive():
            raise ProcessNotRunning("process has exited")
        self._proc.kill(sig)

    # ------------------------------------------------------------------
    # Reader
    # ------------------------------------------------------------------

    def _on_readable(self) -> None:
        assert self._proc is not None
        try:
            data = os.read(self._proc.fd, self.config.read_chunk_bytes)
        except OSError:
            data = b""
        if not data:
            self._end_of_stream()
            return
        self._notify_data(self._decoder.decode(data))

    def _end_of_stream(self) -> None:
        if not self._reading:
            return
        self._reading = False
        assert self._proc is not None and self._loop is not None
        self._loop.remove_reader(self._proc.fd)
        self._notify_data(self._decoder.decode(b"", final=True))
        self._loop.create_task(self._reap(), name=f"pty_reap:{self._proc.pid}")

    async def _reap(self) -> None:
        assert self._proc is not None and self._loop is not None
        proc = self._proc
        await self._loop.run_in_executor(None, _wait_and_close, proc)
        logger.debug("pty_exited", pid=proc.pid, status=proc.exitstatus, signal=proc.signalstatus)
        self._notify_exit(proc.exitstatus, proc.signalstatus)


def _wait_and_close(proc: ptyprocess.PtyProcess) -> None:
    """Blocking reap — run in an executor."""
    try:
        proc.wait()
    except ptyprocess.PtyProcessError:
        pass  # already reaped by isalive()
    try:
        proc.close()
    except OSError:
        pass


def spawn_pty(config: PTYConfig) -> PtyProcessHandle:
    """Start *config.command* on a new PTY. Raises SpawnFailure."""
    handle = PtyProcessHandle(config)
    handle.start()
    return handle
