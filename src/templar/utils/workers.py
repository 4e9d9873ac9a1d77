"""Worker pool sizing.

Rendering is CPU-bound. On free-threaded builds (PEP 703) threads run in
parallel, so the pool scales with the CPU count; with a GIL, extra threads
only help while fragments block on I/O, so the pool stays small.

Override with the ``TEMPLAR_MAX_WORKERS`` environment variable.
"""

from __future__ import annotations

import os
import sys
from enum import Enum


class WorkloadType(Enum):
    RENDER = "render"  # CPU-bound instruction execution
    COMPILE = "compile"  # CPU-bound, short-lived
    IO_BOUND = "io_bound"  # fragments that block on files or network


# Per-job threshold below which a thread pool costs more than it saves.
_MIN_PARALLEL_TASKS = {
    WorkloadType.RENDER: 4,
    WorkloadType.COMPILE: 8,
    WorkloadType.IO_BOUND: 2,
}

_GIL_WORKER_CAP = 4


def is_free_threading_enabled() -> bool:
    """True when running on a free-threaded interpreter with the GIL off."""
    check = getattr(sys, "_is_gil_enabled", None)
    if check is None:
        return False
    return not check()


def _env_override() -> int | None:
    raw = os.environ.get("TEMPLAR_MAX_WORKERS")
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def get_optimal_workers(
    task_count: int,
    workload_type: WorkloadType = WorkloadType.RENDER,
    max_workers: int | None = None,
) -> int:
    """Choose a worker count for ``task_count`` jobs.

    Args:
        task_count: Number of independent jobs
        workload_type: Kind of work the jobs do
        max_workers: Explicit cap (wins over everything else)

    Returns:
        At least 1, never more than ``task_count``.
    """
    if task_count <= 1:
        return 1
    if max_workers is not None:
        return max(1, min(max_workers, task_count))
    override = _env_override()
    if override is not None:
        return min(override, task_count)

    cpus = os.cpu_count() or 1
    if workload_type is WorkloadType.IO_BOUND:
        workers = cpus * 4
    elif is_free_threading_enabled():
        workers = cpus
    else:
        workers = min(cpus, _GIL_WORKER_CAP)
    return max(1, min(workers, task_count))


def should_parallelize(
    task_count: int,
    workload_type: WorkloadType = WorkloadType.RENDER,
) -> bool:
    """True if ``task_count`` jobs are worth dispatching to a pool."""
    return task_count >= _MIN_PARALLEL_TASKS[workload_type]
