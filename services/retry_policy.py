"""Status transitions for queue entries after a sync attempt.

    new -> awaiting -> completed
                    -> new (retry, batch_id reset to 0)
                    -> failed (retry limit reached)

``completed`` and ``failed`` are terminal: a failure reported against them is
ignored so ``retry_count`` never exceeds the limit.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from core.settings import QUEUE
from datetime_utils import utc_now
from models.queue_entry import RecordStatus


TERMINAL_STATUSES = (RecordStatus.COMPLETED.value, RecordStatus.FAILED.value)


@dataclass(frozen=True)
class LifecycleState:
    status: str
    retry_count: int = 0
    batch_id: int = 0
    processed_datetime: Optional[datetime] = None


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = QUEUE.max_retries

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be positive, got {self.max_retries}")

    def on_success(self, state: LifecycleState, now: Optional[datetime] = None) -> LifecycleState:
        return replace(
            state,
            status=RecordStatus.COMPLETED.value,
            processed_datetime=now or utc_now(),
        )

    def on_failure(self, state: LifecycleState) -> LifecycleState:
        if self.is_terminal(state.status):
            return state
        retry_count = (state.retry_count or 0) + 1
        if retry_count >= self.max_retries:
            return replace(state, status=RecordStatus.FAILED.value, retry_count=retry_count)
        return replace(
            state,
            status=RecordStatus.NEW.value,
            retry_count=retry_count,
            batch_id=0,
        )

    @staticmethod
    def is_terminal(status: str) -> bool:
        return status in TERMINAL_STATUSES


__all__ = ["LifecycleState", "RetryPolicy", "TERMINAL_STATUSES"]
