"""Templar Batch — render many (template, data) pairs concurrently.

CompiledTemplates are immutable and every render owns its scripting
context, so independent jobs can run on a plain thread pool with no
locking:

    ```python
    jobs = [RenderJob(program, {"host": h}) for h in hosts]
    for job in BatchRenderer(Renderer()).submit(jobs):
        if job.status is JobStatus.COMPLETED:
            write(job.output)
    ```

One job failing never aborts the others: its exception is stored on the
job and the batch carries on. A CancelToken stops jobs that have not
started yet; jobs already running finish normally.

"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from templar.renderer import Renderer
from templar.template.compiled import CompiledTemplate
from templar.utils.workers import WorkloadType, get_optimal_workers, should_parallelize

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class RenderJob:
    """One render request and, after the batch, its outcome.

    Attributes:
        template: Program to render (None when it failed to compile)
        data: Variables bound for this job only
        key: Caller's label for the job (e.g. the output path)
        status: Lifecycle state
        output: Rendered text when COMPLETED
        error: Exception when FAILED
        elapsed: Wall time spent rendering, in seconds
    """

    template: CompiledTemplate | None
    data: Mapping[str, Any] = field(default_factory=dict)
    key: str | None = None
    status: JobStatus = JobStatus.PENDING
    output: str | None = None
    error: BaseException | None = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is JobStatus.COMPLETED


class CancelToken:
    """Thread-safe cancellation flag shared by the caller and the workers."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class BatchRenderer:
    """Fan independent render jobs out over a worker pool.

    Args:
        renderer: Renderer shared by all workers (it holds no per-call state)
        max_workers: Pool size cap; defaults to ``get_optimal_workers()``

    """

    __slots__ = ("_max_workers", "_renderer")

    def __init__(self, renderer: Renderer | None = None, max_workers: int | None = None):
        self._renderer = renderer if renderer is not None else Renderer()
        self._max_workers = max_workers

    @property
    def renderer(self) -> Renderer:
        return self._renderer

    def submit(
        self,
        jobs: Iterable[RenderJob],
        cancel: CancelToken | None = None,
    ) -> list[RenderJob]:
        """Run every PENDING job and return all jobs in input order.

        Jobs in any other state are returned untouched. Each job that ran
        ends COMPLETED, FAILED or CANCELLED.
        """
        batch = list(jobs)
        pending = [job for job in batch if job.status is JobStatus.PENDING]
        if not pending:
            return batch

        if self._max_workers is None and not should_parallelize(len(pending), WorkloadType.RENDER):
            workers = 1
        else:
            workers = get_optimal_workers(
                len(pending), WorkloadType.RENDER, max_workers=self._max_workers
            )
        logger.debug("dispatching %d render jobs on %d workers", len(pending), workers)

        if workers == 1:
            for job in pending:
                self._run(job, cancel)
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="templar") as pool:
                # map() preserves submission order; results are on the jobs
                list(pool.map(lambda job: self._run(job, cancel), pending))

        failed = sum(1 for job in batch if job.status is JobStatus.FAILED)
        if failed:
            logger.debug("batch finished: %d of %d jobs failed", failed, len(batch))
        return batch

    def _run(self, job: RenderJob, cancel: CancelToken | None) -> RenderJob:
        if cancel is not None and cancel.cancelled:
            job.status = JobStatus.CANCELLED
            return job

        job.status = JobStatus.RUNNING
        start = time.perf_counter()
        try:
            if job.template is None:
                raise ValueError("render job has no template")
            job.output = self._renderer.render(job.template, job.data)
        except Exception as e:
            job.error = e
            job.status = JobStatus.FAILED
            logger.warning(
                "render job %s failed: %s",
                job.key or (job.template.name if job.template else None) or "<template>",
                e,
            )
        else:
            job.status = JobStatus.COMPLETED
        finally:
            job.elapsed = time.perf_counter() - start
        return job
