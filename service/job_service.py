# service/job_service.py
import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from fastapi import Request, UploadFile
from config.settings import settings
from core.extractor import extract_archive
from core.log_broker import LogBroker
from core.packager import ResponsePayload, package
from core.pipeline import PipelineRunner
from model.job import Job, JobKind
from repository.workspace_repository import WorkspaceRepository
from util.errors import ClientDisconnected, JobFailed, PipelineError
from util.functions import first_line
from util.timing import timed

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SUCCESS = {
    JobKind.compile: "Compilation succeeded!",
    JobKind.compile_with_profiling: "Compilation + profiling finished.",
    JobKind.prove: "Proof + Verifier generated successfully.",
    JobKind.prove_with_verifier: "Proof + Verifier generated successfully.",
}


class JobService:
    def __init__(
        self,
        workspaces: WorkspaceRepository,
        pipeline: PipelineRunner,
        broker: LogBroker,
    ) -> None:
        self._workspaces = workspaces
        self._pipeline = pipeline
        self._broker = broker

    async def run(
        self, job: Job, file: UploadFile, request: Optional[Request] = None
    ) -> ResponsePayload:
        """
        Workspace -> extract -> stages -> collect -> package, then always clean up.
        Any PipelineError is relayed to the live log first, then surfaces as JobFailed.
        Logs: ids, kinds and sizes only (no payloads).
        """
        rid = job.request_id
        try:
            data = await file.read()
            await file.seek(0)
        except Exception:
            logger.error("job.upload.read.error job=%s", rid)
            raise

        workspace = self._workspaces.create(rid)
        job.workspace = workspace
        logger.info("job.start job=%s kind=%s bytes=%d", rid, job.kind.value, len(data))

        try:
            with timed(logger, "job", job=rid, kind=job.kind.value) as clock:
                await asyncio.to_thread(extract_archive, data, workspace)
                artifacts = await self._until_disconnect(
                    request, self._pipeline.execute(job, workspace), rid
                )
                payload = package(job, artifacts)
        except PipelineError as e:
            logger.error(
                "job.failed job=%s kind=%s err=%s", rid, job.kind.value, first_line(str(e))
            )
            self._broker.relay(rid, f"{job.kind.label} failed: {e}")
            raise JobFailed(str(e)) from e
        finally:
            await asyncio.to_thread(self._workspaces.cleanup, workspace)

        self._broker.relay(rid, _SUCCESS[job.kind])
        logger.info("job.ok job=%s kind=%s ms=%d", rid, job.kind.value, clock.ms)
        return payload

    @staticmethod
    async def _until_disconnect(
        request: Optional[Request], work: Awaitable[T], rid: str
    ) -> T:
        """
        Await `work` while polling the client; a dropped connection cancels the job
        (killing its running process) and raises ClientDisconnected.
        """
        task = asyncio.ensure_future(work)
        if request is None:
            return await task
        try:
            while True:
                done, _ = await asyncio.wait(
                    {task}, timeout=settings.DISCONNECT_POLL_SECONDS
                )
                if done:
                    return task.result()
                if await request.is_disconnected():
                    logger.warning("job.client_gone job=%s", rid)
                    raise ClientDisconnected()
        finally:
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
