"""Ports connecting long-running work to a job runner."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class JobHandle(Protocol):
    """Progress sink and cancellation flag of one background job."""

    def report_progress(self, percent: int, message: str | None = None) -> None: ...

    def is_cancelled(self) -> bool: ...


@runtime_checkable
class JobCheckpointStore(Protocol):
    """Durable record of the work items a job already finished."""

    def load(self, job_id: str) -> set[str]: ...

    def mark_done(self, job_id: str, item_id: str) -> None: ...

    def clear(self, job_id: str) -> None: ...
