"""Shared fakes for CodexBridge tests: a scripted PTY handle, spawner and renderer."""

from __future__ import annotations

import pytest

from codexbridge.core.config import StreamingConfig
from codexbridge.core.exceptions import ProcessNotRunning, SpawnFailure
from codexbridge.core.session.models import DisplaySnapshot
from codexbridge.os.tty.base import ProcessHandle, PTYConfig


class FakeHandle(ProcessHandle):
    """ProcessHandle whose output and exit are driven by the test."""

    def __init__(self, config: PTYConfig) -> None:
        super().__init__(config)
        self.alive = False
        self.writes: list[str] = []
        self.signals: list[int] = []

    def start(self) -> None:
        self.alive = True

    def is_alive(self) -> bool:
        return self.alive and not self._exited

    @property
    def pid(self) -> int:
        return 4242

    def write(self, text: str) -> None:
        if not self.is_alive():
            raise ProcessNotRunning("process has exited")
        self.writes.append(text)

    def kill(self, sig: int) -> None:
        if not self.is_alive():
            raise ProcessNotRunning("process has exited")
        self.signals.append(sig)

    # Test drivers

    def emit_data(self, text: str) -> None:
        self._notify_data(text)

    def emit_exit(self, code: int | None = 0, sig: int | None = None) -> None:
        self.alive = False
        self._notify_exit(code, sig)


class FakeSpawner:
    """Spawner returning FakeHandles; set ``fail`` to simulate a missing binary."""

    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []
        self.configs: list[PTYConfig] = []
        self.fail = False

    def __call__(self, config: PTYConfig) -> FakeHandle:
        self.configs.append(config)
        if self.fail:
            raise SpawnFailure("Cannot start 'codex': No such file or directory")
        handle = FakeHandle(config)
        handle.start()
        self.handles.append(handle)
        return handle

    @property
    def last(self) -> FakeHandle:
        return self.handles[-1]


class RecordingRenderer:
    """Renderer that records snapshots; optionally fails the next N renders."""

    def __init__(self) -> None:
        self.snapshots: list[DisplaySnapshot] = []
        self.fail_next = 0

    async def render(self, snapshot: DisplaySnapshot) -> None:
        if self.fail_next:
            self.fail_next -= 1
            raise RuntimeError("slack unavailable")
        self.snapshots.append(snapshot)

    @property
    def last(self) -> DisplaySnapshot:
        return self.snapshots[-1]


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def fast_streaming() -> StreamingConfig:
    """Timings short enough for tests (bypasses the production range checks)."""
    return StreamingConfig.model_construct(
        debounce_s=0.01,
        inactivity_s=0.05,
        start_timeout_s=0.03,
        max_output_chars=2900,
    )
