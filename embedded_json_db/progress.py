from __future__ import annotations
from typing import Any, Callable, Dict, Optional

ProgressCallback = Callable[[Dict[str, Any]], None]


class Progress:
    """
    Forwards {"phase", "pct", "msg"} events to an optional callback.
    """
    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._cb = callback

    def emit(self, phase: str, pct: int, msg: str = "") -> None:
        if self._cb is None:
            return
        self._cb({"phase": phase, "pct": max(0, min(100, int(pct))), "msg": msg})

    def scan(self, phase: str, done: int, total: int) -> None:
        if self._cb is None or total <= 0:
            return
        self.emit(phase, done * 100 // total)
