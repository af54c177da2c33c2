"""
Abstract process host interface.

A ProcessHandle is one child process attached to a pseudo-terminal. It is
event driven: output and exit are delivered through two callbacks registered
explicitly by the owner, and input/signals go the other way through
``write()`` and ``kill()``.

Concrete implementation:
  PtyProcessHandle — ptyprocess + asyncio reader (macOS, Linux)

Callbacks run on the event loop thread, in the order the child produced the
output. ``on_exit`` fires exactly once, after the last ``on_data``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

from codexbridge.core.constants import PTY_COLS, PTY_ROWS, READ_CHUNK_BYTES

DataCallback = Callable[[str], None]
ExitCallback = Callable[[int | None, int | None], None]


@dataclass
class PTYConfig:
    """Configuration for one child process."""

    command: list[str]  # argv to exec
    env: dict[str, str] = field(default_factory=dict)  # overlaid on os.environ
    cwd: str = ""
    cols: int = PTY_COLS
    rows: int = PTY_ROWS
    read_chunk_bytes: int = READ_CHUNK_BYTES


class ProcessHandle(ABC):
    """Abstract child process on a PTY."""

    def __init__(self, config: PTYConfig) -> None:
        self.config = config
        self._on_data: DataCallback | None = None
        self._on_exit: ExitCallback | None = None
        self._exited = False

    def set_callbacks(self, on_data: DataCallback, on_exit: ExitCallback) -> None:
        """Register the owner's callbacks. Replaces any previous pair."""
        self._on_data = on_data
        self._on_exit = on_exit

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    def start(self) -> None:
        """Spawn the child. Raises SpawnFailure if it cannot be started."""

    @abstractmethod
    def is_alive(self) -> bool:
        """Return True while the child process is running."""

    @property
    @abstractmethod
    def pid(self) -> int:
        """PID of the child, or -1 before start."""

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    @abstractmethod
    def write(self, text: str) -> None:
        """Write *text* to the child's terminal. Raises ProcessNotRunning after exit."""

    @abstractmethod
    def kill(self, sig: int) -> None:
        """Send *sig* to the child. Raises ProcessNotRunning after exit."""

    # ------------------------------------------------------------------
    # Event delivery
    # ------------------------------------------------------------------

    def _notify_data(self, text: str) -> None:
        if text and not self._exited and self._on_data is not None:
            self._on_data(text)

    def _notify_exit(self, code: int | None, sig: int | None) -> None:
        if self._exited:
            return
        self._exited = True
        if self._on_exit is not None:
            self._on_exit(code, sig)


Spawner = Callable[[PTYConfig], ProcessHandle]
"""Starts a child process and returns its handle; raises SpawnFailure."""
