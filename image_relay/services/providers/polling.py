"""
Job polling state machine for providers that return a job handle.

submitted -> processing -> succeeded | failed, or timed-out once the attempt
budget is spent. The transition function is pure; poll_job drives it with an
injected status source and sleep so tests can run without waiting.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from ...config.settings import PollingConfig

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.TIMED_OUT)


# Provider status strings -> job state
_STATUS_MAP = {
    "starting": JobState.SUBMITTED,
    "queued": JobState.SUBMITTED,
    "processing": JobState.PROCESSING,
    "succeeded": JobState.SUCCEEDED,
    "failed": JobState.FAILED,
    "canceled": JobState.FAILED,
    "cancelled": JobState.FAILED,
}


def next_state(status: Optional[str], attempts: int, max_attempts: int) -> JobState:
    """
    Transition for one observed job status.

    Args:
        status: Status string reported by the provider
        attempts: Polls performed so far
        max_attempts: Poll budget
    """
    state = _STATUS_MAP.get((status or "").lower(), JobState.PROCESSING)
    if not state.terminal and attempts >= max_attempts:
        return JobState.TIMED_OUT
    return state


@dataclass
class PollOutcome:
    state: JobState
    job: Dict[str, Any]
    attempts: int


async def poll_job(
    job: Dict[str, Any],
    fetch_status: Callable[[], Awaitable[Dict[str, Any]]],
    policy: PollingConfig = PollingConfig(),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "job",
) -> PollOutcome:
    """
    Poll a submitted job until it reaches a terminal state.

    The wait between polls is an awaited sleep, so cancelling the calling
    task aborts polling mid-wait.

    Args:
        job: Initial job payload returned by the submit call
        fetch_status: Coroutine returning the latest job payload
        policy: Interval, attempt budget and progress cadence
        sleep: Awaitable delay (injected in tests)
        label: Name used in progress logs
    """
    attempts = 0
    state = next_state(job.get("status"), attempts, policy.max_attempts)

    while not state.terminal:
        await sleep(policy.interval)
        job = await fetch_status()
        attempts += 1
        state = next_state(job.get("status"), attempts, policy.max_attempts)

        if attempts % policy.progress_every == 0 and not state.terminal:
            elapsed = int(attempts * policy.interval)
            logger.info(f"Still processing {label}... ({elapsed}s elapsed)")

    return PollOutcome(state=state, job=job, attempts=attempts)
