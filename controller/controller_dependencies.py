# controller/controller_dependencies.py
from typing import List, Optional
from fastapi import Depends, File, Query, Request, UploadFile
from fastapi_limiter.depends import RateLimiter
from core.log_broker import log_broker
from core.pipeline import PipelineRunner
from model.job import JobOptions, Profiler
from repository.workspace_repository import WorkspaceRepository
from service.job_service import JobService
from config.settings import settings
from util.errors import InvalidRequestId, PayloadTooLarge, UploadMissing
from util.functions import is_valid_request_id, new_request_id

# Content-Length also counts multipart boundaries and headers.
_MULTIPART_SLACK = 64 * 1024


def get_job_service() -> JobService:
    _workspaces = WorkspaceRepository()
    _pipeline = PipelineRunner(broker=log_broker)
    _service = JobService(_workspaces, _pipeline, log_broker)
    return _service


def rate_limits() -> List:
    if not settings.RATE_LIMIT_ENABLED:
        return []
    return [
        Depends(
            RateLimiter(
                times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS
            )
        )
    ]


def resolve_request_id(requestId: Optional[str] = Query(None)) -> str:
    if not requestId:
        return new_request_id()
    if not is_valid_request_id(requestId):
        raise InvalidRequestId()
    return requestId


def job_options(
    includeStarknetVerifier: bool = Query(False),
    profilers: List[Profiler] = Query(default=[]),
) -> JobOptions:
    return JobOptions(
        profilers=profilers, include_starknet_verifier=includeStarknetVerifier
    )


async def enforce_max_upload_size(
    request: Request, file: Optional[UploadFile] = File(None)
) -> UploadFile:
    if file is None:
        raise UploadMissing()

    # Fast pre-check via Content-Length if present
    MAX_BYTES = settings.MAX_FILE_MB * 1024 * 1024
    cl = request.headers.get("content-length")
    if cl and cl.isdigit() and int(cl) > MAX_BYTES + _MULTIPART_SLACK:
        raise PayloadTooLarge(settings.MAX_FILE_MB)

    # Hard cap while reading initial bytes (works even if no Content-Length)
    blob = await file.read(MAX_BYTES + 1)
    if len(blob) > MAX_BYTES:
        raise PayloadTooLarge(settings.MAX_FILE_MB)
    if not blob:
        raise UploadMissing()

    # Reset so downstream can re-read file stream
    await file.seek(0)
    return file
