"""In-memory registry of dashboard generation jobs.

Each job runs ``generate_prototype`` as its own asyncio task and records an
ordered list of events (``status`` milestones, then one ``complete`` or
``error``). Subscribers replay the list from the start and then wait for new
entries, so a client that connects late still sees every event.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from typing import Any

from protoforge.config import ProviderConfig
from protoforge.errors import ErrorKind
from protoforge.parser.models import GenerationRequest
from protoforge.pipeline import GenerationFailure, GenerationSuccess, ProgressEvent, generate_prototype

logger = logging.getLogger(__name__)

Runner = Callable[..., Awaitable[GenerationSuccess | GenerationFailure]]

MAX_FINISHED_JOBS = 100


class GenerationJob:
    """One running or finished generation."""

    def __init__(self, job_id: str, request: GenerationRequest) -> None:
        self.id = job_id
        self.request = request
        self.events: list[dict[str, Any]] = []
        self.done = False
        self.result: GenerationSuccess | GenerationFailure | None = None
        self.task: asyncio.Task[None] | None = None
        self._condition = asyncio.Condition()

    async def publish(self, event: str, data: dict[str, Any], *, final: bool = False) -> None:
        async with self._condition:
            self.events.append({"event": event, "data": data})
            if final:
                self.done = True
            self._condition.notify_all()

    async def stream(self) -> AsyncIterator[dict[str, Any]]:
        """Yield every event from the first one until the job finishes."""
        index = 0
        while True:
            async with self._condition:
                await self._condition.wait_for(lambda: len(self.events) > index or self.done)
                pending = self.events[index:]
                finished = self.done
            for event in pending:
                yield event
            index += len(pending)
            if finished and index >= len(self.events):
                return


class JobRegistry:
    """Creates jobs and keeps them addressable by id.

    Running jobs are always kept. Of the finished ones only the most recent
    *max_finished* stay addressable; older ones are dropped when a new job
    starts.
    """

    def __init__(
        self,
        runner: Runner = generate_prototype,
        max_finished: int = MAX_FINISHED_JOBS,
    ) -> None:
        self._runner = runner
        self._max_finished = max_finished
        self._jobs: dict[str, GenerationJob] = {}

    def get(self, job_id: str) -> GenerationJob | None:
        return self._jobs.get(job_id)

    def start(
        self,
        request: GenerationRequest,
        provider_config: ProviderConfig,
        output_root: Path,
    ) -> GenerationJob:
        """Register a job and schedule it on the running event loop."""
        self._prune()
        job = GenerationJob(uuid.uuid4().hex, request)
        self._jobs[job.id] = job
        job.task = asyncio.create_task(self._run(job, provider_config, output_root))
        return job

    def _prune(self) -> None:
        finished = [job_id for job_id, job in self._jobs.items() if job.done]
        for job_id in finished[: max(len(finished) - self._max_finished, 0)]:
            del self._jobs[job_id]

    async def _run(
        self,
        job: GenerationJob,
        provider_config: ProviderConfig,
        output_root: Path,
    ) -> None:
        async def on_progress(event: ProgressEvent) -> None:
            await job.publish("status", {
                "stage": event.stage.value,
                "message": event.message,
                "progress": event.progress,
            })

        try:
            result = await self._runner(
                job.request,
                provider_config,
                output_root,
                on_progress=on_progress,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Generation job %s crashed", job.id)
            result = GenerationFailure(reason=ErrorKind.INTERNAL_ERROR, message=f"Unexpected error: {exc}")

        job.result = result
        if isinstance(result, GenerationSuccess):
            await job.publish("complete", {
                "success": True,
                "outputPath": str(result.output_path),
                "project": result.output_path.name,
                "data": result.document.to_json_dict(),
            }, final=True)
        else:
            await job.publish("error", {
                "reason": result.reason.value,
                "message": result.message,
            }, final=True)
