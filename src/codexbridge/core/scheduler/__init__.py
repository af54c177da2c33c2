"""Render scheduling — debounce and inactivity timers."""

from codexbridge.core.scheduler.timer import ResettableTimer
from codexbridge.core.scheduler.updates import Renderer, UpdateScheduler

__all__ = ["Renderer", "ResettableTimer", "UpdateScheduler"]
