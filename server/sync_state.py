from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

import settings
from errors import SyncInProgress


class SyncPhase(str, Enum):
    IDLE = 'idle'
    SYNCING = 'syncing'
    SUCCESS = 'success'
    ERROR = 'error'


class SyncStateMachine:
    """idle -> syncing -> success|error -> idle.

    ``begin`` refuses to start while a sync is in flight. Success and error
    fall back to idle after ``display_interval`` seconds or on ``acknowledge``.
    """

    def __init__(
        self,
        display_interval: float = settings.SYNC_STATUS_DISPLAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.display_interval = display_interval
        self._clock = clock
        self._phase = SyncPhase.IDLE
        self._operation: Optional[str] = None
        self._reason: Optional[str] = None
        self._settled_at: Optional[float] = None
        self._changed_at = datetime.now(timezone.utc)

    def _move(self, phase: SyncPhase, reason: Optional[str] = None) -> None:
        self._phase = phase
        self._reason = reason
        self._changed_at = datetime.now(timezone.utc)
        self._settled_at = self._clock() if phase in (SyncPhase.SUCCESS, SyncPhase.ERROR) else None

    @property
    def phase(self) -> SyncPhase:
        if (
            self._settled_at is not None
            and self.display_interval >= 0
            and self._clock() - self._settled_at >= self.display_interval
        ):
            self._move(SyncPhase.IDLE)
        return self._phase

    @property
    def reason(self) -> Optional[str]:
        return self._reason if self.phase == SyncPhase.ERROR else None

    @property
    def is_syncing(self) -> bool:
        return self._phase == SyncPhase.SYNCING

    def begin(self, operation: str) -> None:
        if self.is_syncing:
            raise SyncInProgress()
        self._operation = operation
        self._move(SyncPhase.SYNCING)

    def succeed(self) -> None:
        self._move(SyncPhase.SUCCESS)

    def fail(self, reason: str) -> None:
        self._move(SyncPhase.ERROR, reason)

    def acknowledge(self) -> None:
        if self._phase in (SyncPhase.SUCCESS, SyncPhase.ERROR):
            self._move(SyncPhase.IDLE)

    def status(self) -> Dict[str, Any]:
        phase = self.phase
        return {
            'state': phase.value,
            'operation': self._operation,
            'reason': self._reason if phase == SyncPhase.ERROR else None,
            'changed_at': self._changed_at.isoformat(),
        }
